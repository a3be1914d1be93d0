import logging
import subprocess
import threading
from pathlib import Path

from PySide6.QtCore import QObject, Signal, Slot

from ..errors import ProbeError, ProbeErrorKind
from ..models.track import ProbedFile, TrackKind
from ..parsers.ffprobe_json import load_probe, looks_unsupported, parse_probe
from ..parsers.mkvmerge_json import load_identify, parse_identify
from ..utils.paths import is_matroska

logger = logging.getLogger(__name__)


class TrackProber:
    """Lists the tracks of a media file via `mkvmerge -J` or `ffprobe`."""

    def __init__(self, settings: dict, use_cache: bool = True):
        self.settings = settings
        self.use_cache = use_cache
        self._cache: dict[tuple, ProbedFile] = {}
        self._lock = threading.Lock()

    def probe(self, path, kind: TrackKind | None = None) -> ProbedFile:
        p = Path(path).expanduser()
        try:
            st = p.stat()
        except (FileNotFoundError, NotADirectoryError):
            raise ProbeError(ProbeErrorKind.FILE_NOT_FOUND, str(p)) from None
        except OSError as e:
            raise ProbeError(ProbeErrorKind.INSPECTION_FAILED, f"cannot stat {p}: {e}") from e
        if not p.is_file():
            raise ProbeError(ProbeErrorKind.FILE_NOT_FOUND, f"{p} is not a regular file")
        p = p.resolve()

        key = (str(p), st.st_mtime_ns, st.st_size, kind)
        if self.use_cache:
            with self._lock:
                if (hit := self._cache.get(key)) is not None:
                    return hit

        if is_matroska(p):
            result = self._probe_mkvmerge(p, kind, st.st_size, st.st_mtime_ns)
        else:
            result = self._probe_ffprobe(p, kind, st.st_mtime_ns)
        logger.debug("Probed %s: %d track(s)", p, len(result.tracks))

        if self.use_cache:
            with self._lock:
                self._cache = {k: v for k, v in self._cache.items() if k[0] != key[0]}
                self._cache[key] = result
        return result

    def _run(self, tool: str, cmd: list[str]) -> subprocess.CompletedProcess:
        timeout = float(self.settings.get("probe_timeout_sec", 180)) or None
        try:
            return subprocess.run(cmd, capture_output=True, text=True, encoding="utf-8",
                                  errors="replace", timeout=timeout)
        except FileNotFoundError:
            raise ProbeError(ProbeErrorKind.INSPECTION_FAILED, f"{tool} not found (check Preferences).") from None
        except subprocess.TimeoutExpired:
            raise ProbeError(ProbeErrorKind.INSPECTION_FAILED, f"{tool} timed out after {timeout:g}s") from None
        except OSError as e:
            raise ProbeError(ProbeErrorKind.INSPECTION_FAILED, f"cannot run {tool}: {e}") from e

    def _probe_mkvmerge(self, p: Path, kind, size: int, mtime_ns: int) -> ProbedFile:
        cmd = [self.settings.get("mkvmerge_path") or "mkvmerge", "-J", str(p)]
        proc = self._run("mkvmerge", cmd)
        if proc.returncode != 0:
            # mkvmerge still prints its JSON for unrecognized files, with recognized=false
            try:
                data = load_identify(proc.stdout)
            except ProbeError:
                data = None
            if data is not None and (data.get("container") or {}).get("recognized") is False:
                return parse_identify(data, p, kind, size, mtime_ns)
            detail = (proc.stderr or proc.stdout or "").strip()
            raise ProbeError(ProbeErrorKind.INSPECTION_FAILED,
                             f"mkvmerge failed (rc={proc.returncode}): {detail}".rstrip(": "))
        return parse_identify(load_identify(proc.stdout), p, kind, size, mtime_ns)

    def _probe_ffprobe(self, p: Path, kind, mtime_ns: int) -> ProbedFile:
        cmd = [self.settings.get("ffprobe_path") or "ffprobe", "-v", "error",
               "-print_format", "json", "-show_format", "-show_streams", str(p)]
        proc = self._run("ffprobe", cmd)
        if proc.returncode != 0:
            detail = (proc.stderr or "").strip()
            if looks_unsupported(detail):
                raise ProbeError(ProbeErrorKind.UNSUPPORTED_CONTAINER, detail)
            raise ProbeError(ProbeErrorKind.INSPECTION_FAILED,
                             f"ffprobe failed (rc={proc.returncode}): {detail}".rstrip(": "))
        return parse_probe(load_probe(proc.stdout), p, kind, mtime_ns)


class InfoProbeWorker(QObject):
    probed = Signal(str, str, object, str)  # kind, path, ProbedFile | None, err

    def __init__(self, settings: dict, prober: TrackProber | None = None):
        super().__init__()
        self.settings = settings
        self.prober = prober or TrackProber(settings)

    @Slot(str, str)
    def probe(self, kind: str, path: str):
        err, result = "", None
        try:
            result = self.prober.probe(path, TrackKind.parse(kind))
        except ProbeError as e:
            err = e.detail or e.kind.value
            if e.kind == ProbeErrorKind.FILE_NOT_FOUND:
                err = f"File not found: {e.detail}"
            elif e.kind == ProbeErrorKind.UNSUPPORTED_CONTAINER:
                err = f"Unsupported container: {e.detail}"
            logger.warning("Probe of %s failed: %s", path, e)
        except Exception as e:
            logger.exception("Unexpected error probing %s", path)
            err = str(e)
        self.probed.emit(kind, path, result, err)
