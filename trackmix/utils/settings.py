# trackmix/utils/settings.py
import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def config_dir() -> Path:
    # $TRACKMIX_HOME wins so tests and portable installs can relocate everything
    if env := os.environ.get("TRACKMIX_HOME"):
        return Path(env).expanduser()
    return Path.home() / ".trackmix"


def settings_file() -> Path:
    return config_dir() / "settings.json"


DEFAULT_SETTINGS = {
    "mkvmerge_path": "mkvmerge",
    "ffprobe_path": "ffprobe",
    "probe_timeout_sec": 180,

    # Mix queue
    "max_concurrent_mix_jobs": 1,      # worker pool width, applied at startup
    "mix_timeout_sec": 3600,           # 0 => no timeout
    "history_limit": 200,              # finished jobs kept in the list, 0 => unlimited
    "persist_history": True,           # keep job history in history.json
    "normalize_track_flags": True,     # clear names, default=yes, forced=no on mixed tracks

    # Language written for tracks that carry no tag of their own
    "default_languages": {"video": "ja", "audio": "ja", "subtitle": "zh-Hans"},

    "last_output_dir": "",
    "log_level": "INFO",
    # layout persistence:
    # "center_split_sizes": [...],
    # "v_split_sizes": [...],
}

# key -> minimum accepted value
_INT_KEYS = {
    "probe_timeout_sec": 0,
    "max_concurrent_mix_jobs": 1,
    "mix_timeout_sec": 0,
    "history_limit": 0,
}


def _coerce(data: dict) -> dict:
    out = {**DEFAULT_SETTINGS, **data}
    for key, minimum in _INT_KEYS.items():
        value = out.get(key)
        try:
            if isinstance(value, bool):
                raise ValueError
            value = int(value)
            if value < minimum:
                raise ValueError
        except (TypeError, ValueError):
            logger.warning("Invalid setting %s=%r, using %r", key, out.get(key), DEFAULT_SETTINGS[key])
            value = DEFAULT_SETTINGS[key]
        out[key] = value
    langs = out.get("default_languages")
    if not isinstance(langs, dict):
        langs = {}
    out["default_languages"] = {**DEFAULT_SETTINGS["default_languages"], **langs}
    return out


def load_settings(path: Path | None = None) -> dict:
    p = path or settings_file()
    if p.exists():
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                return _coerce(data)
            logger.warning("Settings file %s does not hold an object, using defaults", p)
        except (OSError, ValueError) as e:
            logger.warning("Could not read settings file %s: %s", p, e)
    # First run or broken file → write defaults so the file exists
    settings = _coerce({})
    save_settings(settings, p)
    return settings


def save_settings(data: dict, path: Path | None = None) -> None:
    p = path or settings_file()
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(data, indent=2), encoding="utf-8")
    except OSError as e:
        logger.error("Could not write settings file %s: %s", p, e)
