import re
from pathlib import Path

MATROSKA_EXTS = {".mkv", ".mka", ".mks", ".mk3d", ".webm"}
VIDEO_EXTS = ["mkv", "mp4", "avi", "mov", "ts", "m2ts", "webm", "mpg", "mpeg"]
SUBTITLE_EXTS = ["srt", "ass", "ssa", "vtt", "sup", "sub"]

_PARTIAL_TAG = ".partial"


def safe_name(s: str) -> str:
    s = re.sub(r'[\\/:*?"<>|]+', " ", s).strip()
    s = re.sub(r"\s+", " ", s)
    return s or "Unnamed"


def is_matroska(path: Path) -> bool:
    return Path(path).suffix.lower() in MATROSKA_EXTS


def extensions_for(kind: str) -> list[str]:
    if kind == "subtitle":
        return VIDEO_EXTS + SUBTITLE_EXTS
    return list(VIDEO_EXTS)


def normalize_output_path(raw) -> Path | None:
    """Expanded output path with `.mkv` added when there is no extension; None if unusable."""
    if raw is None:
        return None
    s = str(raw).strip()
    if not s or s.endswith(("/", "\\")):
        return None
    p = Path(s).expanduser()
    if not p.name or p.name in (".", ".."):
        return None
    if p.exists() and p.is_dir():
        return None
    if not p.suffix:
        p = p.with_suffix(".mkv")
    return p


def partial_path_for(output: Path, job_id: int | None = None) -> Path:
    """Sibling file the muxer writes to before the result is moved into place."""
    tag = f".{job_id}{_PARTIAL_TAG}" if job_id is not None else _PARTIAL_TAG
    return output.with_name(f"{output.stem}{tag}{output.suffix or '.mkv'}")


def default_output_path(source: Path | None, out_dir: str | None = None) -> Path:
    base = safe_name(source.stem) if source else "mixed"
    folder = Path(out_dir) if out_dir else (source.parent if source else Path.home())
    return folder / f"{base}_mixed.mkv"
