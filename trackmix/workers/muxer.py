# trackmix/workers/muxer.py
import logging
import re
import shlex
import subprocess
import threading
import time
from collections import deque
from pathlib import Path
from typing import Callable, Iterable

from ..errors import MixErrorKind, MixExecutionError
from ..models.job import MuxTrack
from ..models.track import TrackKind

logger = logging.getLogger(__name__)

_PROGRESS = re.compile(r"^(?:#GUI#progress\s+|Progress:\s*)(\d+)%")
_GUI_TAG = re.compile(r"^#GUI#(\w+)\s*")

# per kind: (option that picks tracks, options that drop the other kinds)
_KIND_ARGS = {
    TrackKind.VIDEO: ("--video-tracks", ["--no-audio", "--no-subtitles"]),
    TrackKind.AUDIO: ("--audio-tracks", ["--no-video", "--no-subtitles"]),
    TrackKind.SUBTITLE: ("--subtitle-tracks", ["--no-video", "--no-audio"]),
}


def parse_progress(line: str) -> int | None:
    if m := _PROGRESS.match(line.strip()):
        return max(0, min(100, int(m.group(1))))
    return None


def _group(tracks: Iterable[MuxTrack]) -> list[tuple[Path, TrackKind, list[MuxTrack]]]:
    groups: list[tuple[Path, TrackKind, list[MuxTrack]]] = []
    for t in tracks:
        if groups and groups[-1][0] == t.path and groups[-1][1] == t.kind:
            groups[-1][2].append(t)
        else:
            groups.append((t.path, t.kind, [t]))
    return groups


def build_mux_command(mkvmerge: str, output: Path, tracks: list[MuxTrack],
                      normalize_flags: bool = True) -> list[str]:
    """
    One mkvmerge call for the whole job.

    Consecutive tracks of the same (file, kind) become one mkvmerge input;
    `--track-order` pins the output to exactly the order the tracks were given.
    """
    cmd = [mkvmerge, "--gui-mode", "-o", str(output)]
    order = []
    for file_idx, (path, kind, items) in enumerate(_group(tracks)):
        pick, drop = _KIND_ARGS[kind]
        cmd.extend([pick, ",".join(t.track_id for t in items), *drop])
        for t in items:
            if normalize_flags:
                cmd.extend([
                    "--track-name", f"{t.track_id}:",
                    "--default-track-flag", f"{t.track_id}:yes",
                    "--forced-display-flag", f"{t.track_id}:no",
                ])
            if t.language:
                cmd.extend(["--language", f"{t.track_id}:{t.language}"])
            order.append(f"{file_idx}:{t.track_id}")
        cmd.append(str(path))
    if order:
        cmd.extend(["--track-order", ",".join(order)])
    return cmd


class MkvmergeMuxer:
    """Runs mkvmerge for a mix job; raises MixExecutionError when it does not succeed."""

    poll_interval = 0.1

    def __init__(self, settings: dict):
        self.settings = settings

    def mux(self, output: Path, tracks: list[MuxTrack], *,
            cancel: threading.Event | None = None,
            timeout: float | None = None,
            on_progress: Callable[[int], None] | None = None,
            on_line: Callable[[str], None] | None = None) -> str:
        mk = self.settings.get("mkvmerge_path") or "mkvmerge"
        cmd = build_mux_command(mk, output, tracks, bool(self.settings.get("normalize_track_flags", True)))
        cmdline = shlex.join(cmd)
        logger.info("$ %s", cmdline)

        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError:
            raise MixExecutionError(MixErrorKind.SUBPROCESS_FAILED, "mkvmerge not found (check Preferences).") from None
        except OSError as e:
            raise MixExecutionError(MixErrorKind.SUBPROCESS_FAILED, f"cannot start mkvmerge: {e}") from e

        tail: deque[str] = deque(maxlen=40)
        errors: list[str] = []

        def pump():
            for raw in proc.stdout:
                line = raw.strip()
                if not line:
                    continue
                if (pct := parse_progress(line)) is not None:
                    if on_progress:
                        on_progress(pct)
                    continue
                tag = _GUI_TAG.match(line)
                if tag:
                    line = line[tag.end():]
                    if tag.group(1) == "error":
                        errors.append(line)
                elif line.startswith("Error:"):
                    errors.append(line)
                tail.append(line)
                if on_line:
                    on_line(line)

        reader = threading.Thread(target=pump, name="mkvmerge-output", daemon=True)
        reader.start()

        deadline = time.monotonic() + timeout if timeout else None
        stopped_for: MixErrorKind | None = None
        while True:
            try:
                proc.wait(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                pass
            if cancel is not None and cancel.is_set():
                stopped_for = MixErrorKind.CANCELLED
            elif deadline is not None and time.monotonic() >= deadline:
                stopped_for = MixErrorKind.TIMEOUT
            if stopped_for:
                self._terminate(proc)
                break

        rc = proc.wait()
        reader.join(timeout=5)
        proc.stdout.close()

        if stopped_for == MixErrorKind.CANCELLED:
            raise MixExecutionError(MixErrorKind.CANCELLED, "Cancelled while mkvmerge was running.")
        if stopped_for == MixErrorKind.TIMEOUT:
            raise MixExecutionError(MixErrorKind.TIMEOUT, f"mkvmerge did not finish within {timeout:g}s and was stopped.")
        if rc != 0:
            detail = " | ".join(errors or list(tail)[-3:]) or "no output"
            raise MixExecutionError(MixErrorKind.SUBPROCESS_FAILED, f"mkvmerge exited with code {rc}: {detail}")
        return cmdline

    @staticmethod
    def _terminate(proc: subprocess.Popen) -> None:
        proc.terminate()
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            logger.warning("mkvmerge (pid %s) ignored terminate, killing", proc.pid)
            proc.kill()
