import os
import stat
import sys
import threading
from pathlib import Path

import pytest

from trackmix.models.job import MixInput
from trackmix.models.track import TrackKind

FAKE_MKVMERGE = """#!{python}
import json, os, sys, time

args = sys.argv[1:]
log = os.environ.get("FAKE_MKVMERGE_LOG")
if log:
    with open(log, "a", encoding="utf-8") as fh:
        fh.write(json.dumps(args) + "\\n")

mode = os.environ.get("FAKE_MKVMERGE_MODE", "ok")
out = args[args.index("-o") + 1]

if mode == "ok":
    print("#GUI#progress 50%", flush=True)
    with open(out, "wb") as fh:
        fh.write(b"\\x1aE\\xdf\\xa3" + b"\\0" * 64)
    print("#GUI#progress 100%", flush=True)
    sys.exit(0)
if mode == "fail":
    open(out, "wb").close()
    print("#GUI#error The file 'missing.mka' could not be opened for reading.", flush=True)
    sys.exit(2)
if mode == "empty":
    open(out, "wb").close()
    sys.exit(0)
if mode == "hang":
    open(out, "wb").close()
    time.sleep(60)
sys.exit(3)
"""


@pytest.fixture
def fake_mkvmerge(tmp_path: Path, monkeypatch) -> Path:
    if os.name == "nt":
        pytest.skip("fake mkvmerge relies on a shebang script")
    script = tmp_path / "bin" / "mkvmerge"
    script.parent.mkdir()
    script.write_text(FAKE_MKVMERGE.format(python=sys.executable), encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    monkeypatch.setenv("FAKE_MKVMERGE_LOG", str(tmp_path / "mkvmerge_calls.log"))
    return script


@pytest.fixture(autouse=True)
def trackmix_home(tmp_path: Path, monkeypatch) -> Path:
    home = tmp_path / "home"
    monkeypatch.setenv("TRACKMIX_HOME", str(home))
    return home


@pytest.fixture
def sources(tmp_path: Path) -> dict[str, Path]:
    src = tmp_path / "src"
    src.mkdir()
    files = {
        "video": src / "ep01.mkv",
        "audio": src / "ep01.jpn.mka",
        "subtitle": src / "ep01.ass",
    }
    for p in files.values():
        p.write_bytes(b"media")
    return files


@pytest.fixture
def scenario_a_inputs(sources) -> list[MixInput]:
    return [
        MixInput(path=sources["video"], kind=TrackKind.VIDEO, track_ids=("0",)),
        MixInput(path=sources["audio"], kind=TrackKind.AUDIO, track_ids=("1",), track_langs={"1": "jpn"}),
    ]


class FakeMuxer:
    """Records every call; `behavior(output, tracks, cancel)` decides what happens."""

    def __init__(self, behavior=None):
        self.behavior = behavior
        self.calls = []
        self._lock = threading.Lock()

    def mux(self, output, tracks, *, cancel=None, timeout=None, on_progress=None, on_line=None):
        with self._lock:
            self.calls.append((output, list(tracks)))
        if on_progress:
            on_progress(50)
        if self.behavior is not None:
            return self.behavior(output, tracks, cancel)
        output.write_bytes(b"mixed")
        return "fake-mkvmerge"


@pytest.fixture
def fake_muxer():
    return FakeMuxer
