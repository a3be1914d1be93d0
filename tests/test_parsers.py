import json
from pathlib import Path

import pytest

from trackmix.errors import ProbeError, ProbeErrorKind
from trackmix.models.track import TrackKind
from trackmix.parsers.ffprobe_json import load_probe, looks_unsupported, parse_probe
from trackmix.parsers.mkvmerge_json import load_identify, parse_identify
from trackmix.parsers.track_info import flag_from, format_bytes, pretty_lang_from_code

MKV = Path("/media/ep01.mkv")

IDENTIFY = {
    "container": {"recognized": True, "supported": True, "type": "Matroska",
                  "properties": {"file_size": 1048576}},
    "tracks": [
        {"id": 0, "type": "video", "codec": "AVC/H.264/MPEG-4p10",
         "properties": {"codec_id": "V_MPEG4/ISO/AVC", "language": "und", "pixel_dimensions": "1920x1080",
                        "default_track": True, "forced_track": False}},
        {"id": 1, "type": "audio", "codec": "FLAC",
         "properties": {"language": "jpn", "language_ietf": "ja", "audio_channels": 2,
                        "audio_sampling_frequency": 48000, "track_name": "Main"}},
        {"id": 2, "type": "subtitles", "codec": "SubStationAlpha",
         "properties": {"language": "chi", "encoding": "UTF-8", "forced_track": True}},
    ],
    "errors": [],
}


def test_parse_identify_maps_every_track():
    pf = parse_identify(IDENTIFY, MKV, mtime_ns=7)

    assert pf.track_ids() == ["0", "1", "2"]
    assert pf.mtime_ns == 7
    video, audio, sub = pf.tracks
    assert video.kind == TrackKind.VIDEO
    assert video.codec == "AVC/H.264/MPEG-4p10"
    assert video.attributes == "1920x1080"
    assert video.is_default is True and video.is_forced is False
    assert video.container == "Matroska" and video.file_size == "1.00 MB"
    assert audio.lang == "ja" and audio.language_name == "Japanese"
    assert audio.attributes == "2ch 48000 Hz"
    assert audio.track_name == "Main"
    # absent flags are unknown, not false
    assert audio.is_default is None and audio.is_forced is None
    assert sub.kind == TrackKind.SUBTITLE
    assert sub.language_name == "Chinese" and sub.charset == "UTF-8"


def test_parse_identify_filters_by_kind():
    pf = parse_identify(IDENTIFY, MKV, kind=TrackKind.AUDIO)
    assert pf.track_ids() == ["1"]
    assert pf.kind == TrackKind.AUDIO


def test_parse_identify_file_without_tracks_is_valid():
    pf = parse_identify({"container": {"recognized": True, "supported": True}, "tracks": []}, MKV)
    assert pf.tracks == ()


def test_parse_identify_uses_fallback_size():
    data = {"container": {"recognized": True}, "tracks": [{"id": 0, "type": "video", "codec": "VP9"}]}
    assert parse_identify(data, MKV, fallback_size=512).tracks[0].file_size == "512 B"


def test_parse_identify_unrecognized_container():
    data = {"container": {"recognized": False, "supported": False}, "errors": ["not a media file"]}
    with pytest.raises(ProbeError) as ei:
        parse_identify(data, MKV)
    assert ei.value.kind == ProbeErrorKind.UNSUPPORTED_CONTAINER
    assert "not a media file" in ei.value.detail


@pytest.mark.parametrize("data", [{}, {"tracks": [{"type": "video"}], "container": {"recognized": True}}])
def test_parse_identify_incomplete_output(data):
    with pytest.raises(ProbeError) as ei:
        parse_identify(data, MKV)
    assert ei.value.kind == ProbeErrorKind.INSPECTION_FAILED


@pytest.mark.parametrize("raw", ["", "not json", "[1, 2]"])
def test_load_identify_rejects_garbage(raw):
    with pytest.raises(ProbeError) as ei:
        load_identify(raw)
    assert ei.value.kind == ProbeErrorKind.INSPECTION_FAILED


PROBE = {
    "streams": [
        {"index": 0, "codec_type": "video", "codec_name": "h264", "width": 1280, "height": 720,
         "r_frame_rate": "24000/1001", "disposition": {"default": 1, "forced": 0}},
        {"index": 1, "codec_type": "audio", "codec_name": "aac", "channels": 6, "channel_layout": "5.1",
         "tags": {"language": "eng"}},
        {"index": 2, "codec_type": "data", "codec_name": "bin_data"},
        {"index": 3, "codec_type": "subtitle", "codec_name": "mov_text",
         "tags": {"language": "zh-Hant", "title": "Signs"}},
    ],
    "format": {"format_name": "mov,mp4,m4a,3gp,3g2,mj2", "size": "2048"},
}


def test_parse_probe_maps_streams_and_skips_data():
    pf = parse_probe(PROBE, Path("/media/ep01.mp4"))

    assert pf.track_ids() == ["0", "1", "3"]
    video, audio, sub = pf.tracks
    assert video.attributes == "1280x720 24000/1001"
    assert video.is_default is True and video.is_forced is False
    assert audio.attributes == "6ch 5.1" and audio.language_name == "English"
    assert audio.is_default is None
    assert sub.track_name == "Signs" and sub.language_name == "Chinese (Traditional)"
    assert sub.file_size == "2.00 KB"


def test_parse_probe_empty_result_is_unsupported():
    with pytest.raises(ProbeError) as ei:
        parse_probe({}, Path("/x.bin"))
    assert ei.value.kind == ProbeErrorKind.UNSUPPORTED_CONTAINER


def test_load_probe_and_unsupported_detection():
    assert load_probe(json.dumps(PROBE))["format"]["size"] == "2048"
    assert looks_unsupported("/x.bin: Invalid data found when processing input")
    assert not looks_unsupported("Permission denied")


@pytest.mark.parametrize("code, name", [
    ("jpn", "Japanese"), ("ja", "Japanese"), ("ger", "German"), ("zh-Hans", "Chinese (Simplified)"),
    ("zh_TW", "Chinese (Traditional)"), ("en-US", "English"), ("xyz", None), ("", None), (None, None),
])
def test_pretty_lang_from_code(code, name):
    assert pretty_lang_from_code(code) == name


def test_format_bytes_and_flags():
    assert format_bytes(None) is None
    assert format_bytes(999) == "999 B"
    assert format_bytes(1536) == "1.50 KB"
    assert flag_from(None) is None
    assert flag_from("1") is True
    assert flag_from(0) is False
    assert flag_from("maybe") is None
