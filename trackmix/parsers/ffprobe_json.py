# trackmix/parsers/ffprobe_json.py
import json
from pathlib import Path

from ..errors import ProbeError, ProbeErrorKind
from ..models.track import ProbedFile, Track, TrackKind
from .track_info import clean, flag_from, format_bytes, pretty_lang_from_code, to_int

_KINDS = {"video": TrackKind.VIDEO, "audio": TrackKind.AUDIO, "subtitle": TrackKind.SUBTITLE}

# ffprobe's wording when libavformat cannot open the input at all
_UNRECOGNIZED = ("invalid data found when processing input", "unknown format")


def looks_unsupported(stderr: str) -> bool:
    s = (stderr or "").lower()
    return any(m in s for m in _UNRECOGNIZED)


def _attributes(kind: TrackKind, stream: dict, tags: dict) -> str | None:
    if kind == TrackKind.VIDEO:
        parts = []
        w, h = to_int(stream.get("width")), to_int(stream.get("height"))
        if w and h:
            parts.append(f"{w}x{h}")
        if (rate := clean(stream.get("r_frame_rate"))) and rate != "0/0":
            parts.append(rate)
        return " ".join(parts) or None
    if kind == TrackKind.AUDIO:
        parts = []
        if (ch := to_int(stream.get("channels"))) is not None:
            parts.append(f"{ch}ch")
        if layout := clean(stream.get("channel_layout")):
            parts.append(layout)
        return " ".join(parts) or None
    return clean(tags.get("title"))


def load_probe(output: str | bytes) -> dict:
    try:
        data = json.loads(output)
    except (TypeError, ValueError) as e:
        raise ProbeError(ProbeErrorKind.INSPECTION_FAILED, f"unparseable ffprobe output: {e}") from e
    if not isinstance(data, dict):
        raise ProbeError(ProbeErrorKind.INSPECTION_FAILED, "ffprobe output is not a JSON object")
    return data


def parse_probe(data: dict, path: Path, kind: TrackKind | None = None,
                mtime_ns: int | None = None) -> ProbedFile:
    """Map `ffprobe -print_format json -show_format -show_streams` output onto a ProbedFile."""
    fmt = data.get("format") or {}
    streams = data.get("streams")
    if streams is None and not fmt:
        raise ProbeError(ProbeErrorKind.UNSUPPORTED_CONTAINER, "ffprobe found no format or streams")

    container = clean(fmt.get("format_name"))
    file_size = format_bytes(to_int(fmt.get("size")))

    tracks = []
    for pos, stream in enumerate(streams or []):
        t_kind = _KINDS.get(str(stream.get("codec_type", "")).lower())
        if t_kind is None or (kind is not None and t_kind != kind):
            continue
        tags = stream.get("tags") or {}
        disposition = stream.get("disposition") or {}
        lang = clean(tags.get("language"))
        index = to_int(stream.get("index"))
        tracks.append(Track(
            track_id=str(index if index is not None else pos),
            kind=t_kind,
            codec=clean(stream.get("codec_name")) or "unknown",
            lang=lang,
            language_name=pretty_lang_from_code(lang),
            track_name=clean(tags.get("title")),
            is_default=flag_from(disposition.get("default")),
            is_forced=flag_from(disposition.get("forced")),
            charset=clean(tags.get("charset")) or clean(tags.get("encoding")),
            attributes=_attributes(t_kind, stream, tags),
            container=container,
            file_size=file_size,
        ))
    return ProbedFile(path=path, tracks=tuple(tracks), kind=kind, mtime_ns=mtime_ns)
