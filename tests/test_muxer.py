import json
import threading
from pathlib import Path

import pytest

from trackmix.errors import MixErrorKind, MixExecutionError
from trackmix.models.job import MuxTrack
from trackmix.models.track import TrackKind
from trackmix.workers.muxer import MkvmergeMuxer, build_mux_command, parse_progress

V = Path("/media/ep01.mkv")
A = Path("/media/ep01.jpn.mka")


def test_build_command_for_video_plus_relabelled_audio():
    tracks = [
        MuxTrack(V, "0", TrackKind.VIDEO, None),
        MuxTrack(A, "1", TrackKind.AUDIO, "jpn"),
    ]
    cmd = build_mux_command("mkvmerge", Path("/out/ep01.partial.mkv"), tracks, normalize_flags=False)
    assert cmd == [
        "mkvmerge", "--gui-mode", "-o", "/out/ep01.partial.mkv",
        "--video-tracks", "0", "--no-audio", "--no-subtitles", str(V),
        "--audio-tracks", "1", "--no-video", "--no-subtitles", "--language", "1:jpn", str(A),
        "--track-order", "0:0,1:1",
    ]


def test_build_command_groups_tracks_from_same_file_and_normalizes_flags():
    tracks = [
        MuxTrack(V, "0", TrackKind.VIDEO, None),
        MuxTrack(V, "2", TrackKind.AUDIO, None),
        MuxTrack(V, "1", TrackKind.AUDIO, "en"),
    ]
    cmd = build_mux_command("mkvmerge", Path("o.mkv"), tracks)

    assert cmd.count(str(V)) == 2
    assert cmd[cmd.index("--audio-tracks") + 1] == "2,1"
    assert cmd[-2:] == ["--track-order", "0:0,1:2,1:1"]
    pairs = set(zip(cmd, cmd[1:]))
    assert ("--default-track-flag", "2:yes") in pairs
    assert ("--forced-display-flag", "1:no") in pairs
    assert ("--track-name", "0:") in pairs
    assert ("--language", "1:en") in pairs
    assert ("--language", "2:") not in pairs


@pytest.mark.parametrize("line, pct", [
    ("#GUI#progress 42%", 42),
    ("Progress: 7%", 7),
    ("  #GUI#progress 100%  ", 100),
    ("#GUI#warning something", None),
    ("Multiplexing took 3 seconds.", None),
])
def test_parse_progress(line, pct):
    assert parse_progress(line) == pct


def _muxer(script):
    return MkvmergeMuxer({"mkvmerge_path": str(script), "normalize_track_flags": True})


def test_mux_success_reports_progress(tmp_path, fake_mkvmerge):
    out = tmp_path / "o.partial.mkv"
    progress, lines = [], []

    cmdline = _muxer(fake_mkvmerge).mux(
        out, [MuxTrack(V, "0", TrackKind.VIDEO, "ja")],
        on_progress=progress.append, on_line=lines.append)

    assert out.stat().st_size > 0
    assert progress == [50, 100]
    assert "--gui-mode" in cmdline
    logged = json.loads((tmp_path / "mkvmerge_calls.log").read_text().splitlines()[0])
    assert logged[logged.index("-o") + 1] == str(out)
    assert "0:ja" in logged


def test_mux_nonzero_exit_raises_with_error_lines(tmp_path, fake_mkvmerge, monkeypatch):
    monkeypatch.setenv("FAKE_MKVMERGE_MODE", "fail")
    with pytest.raises(MixExecutionError) as ei:
        _muxer(fake_mkvmerge).mux(tmp_path / "o.mkv", [MuxTrack(V, "0", TrackKind.VIDEO, None)])
    assert ei.value.kind == MixErrorKind.SUBPROCESS_FAILED
    assert "exited with code 2" in ei.value.detail
    assert "could not be opened" in ei.value.detail


def test_mux_timeout_stops_process(tmp_path, fake_mkvmerge, monkeypatch):
    monkeypatch.setenv("FAKE_MKVMERGE_MODE", "hang")
    with pytest.raises(MixExecutionError) as ei:
        _muxer(fake_mkvmerge).mux(tmp_path / "o.mkv", [MuxTrack(V, "0", TrackKind.VIDEO, None)], timeout=0.3)
    assert ei.value.kind == MixErrorKind.TIMEOUT


def test_mux_cancel_stops_process(tmp_path, fake_mkvmerge, monkeypatch):
    monkeypatch.setenv("FAKE_MKVMERGE_MODE", "hang")
    cancel = threading.Event()
    threading.Timer(0.3, cancel.set).start()
    with pytest.raises(MixExecutionError) as ei:
        _muxer(fake_mkvmerge).mux(tmp_path / "o.mkv", [MuxTrack(V, "0", TrackKind.VIDEO, None)], cancel=cancel)
    assert ei.value.kind == MixErrorKind.CANCELLED


def test_mux_missing_executable(tmp_path):
    muxer = MkvmergeMuxer({"mkvmerge_path": str(tmp_path / "nope" / "mkvmerge")})
    with pytest.raises(MixExecutionError) as ei:
        muxer.mux(tmp_path / "o.mkv", [MuxTrack(V, "0", TrackKind.VIDEO, None)])
    assert ei.value.kind == MixErrorKind.SUBPROCESS_FAILED
    assert "not found" in ei.value.detail
