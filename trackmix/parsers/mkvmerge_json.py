# trackmix/parsers/mkvmerge_json.py
import json
from pathlib import Path

from ..errors import ProbeError, ProbeErrorKind
from ..models.track import ProbedFile, Track, TrackKind
from .track_info import clean, flag_from, format_bytes, pretty_lang_from_code, to_int

_KINDS = {"video": TrackKind.VIDEO, "audio": TrackKind.AUDIO,
          "subtitles": TrackKind.SUBTITLE, "subtitle": TrackKind.SUBTITLE}


def _attributes(kind: TrackKind, props: dict) -> str | None:
    if kind == TrackKind.VIDEO:
        return clean(props.get("pixel_dimensions"))
    if kind == TrackKind.AUDIO:
        parts = []
        if (ch := to_int(props.get("audio_channels"))) is not None:
            parts.append(f"{ch}ch")
        freq = props.get("audio_sampling_frequency")
        if isinstance(freq, (int, float)) and not isinstance(freq, bool):
            parts.append(f"{round(freq)} Hz")
        return " ".join(parts) or None
    return None


def load_identify(output: str | bytes) -> dict:
    try:
        data = json.loads(output)
    except (TypeError, ValueError) as e:
        raise ProbeError(ProbeErrorKind.INSPECTION_FAILED, f"unparseable mkvmerge output: {e}") from e
    if not isinstance(data, dict):
        raise ProbeError(ProbeErrorKind.INSPECTION_FAILED, "mkvmerge output is not a JSON object")
    return data


def parse_identify(data: dict, path: Path, kind: TrackKind | None = None,
                   fallback_size: int | None = None, mtime_ns: int | None = None) -> ProbedFile:
    """Map `mkvmerge -J` output onto a ProbedFile."""
    container = data.get("container") or {}
    if container.get("recognized") is False or container.get("supported") is False:
        errors = "; ".join(str(e) for e in data.get("errors") or []) or "container not recognized by mkvmerge"
        raise ProbeError(ProbeErrorKind.UNSUPPORTED_CONTAINER, errors)

    tracks_raw = data.get("tracks")
    if tracks_raw is None and not container:
        raise ProbeError(ProbeErrorKind.INSPECTION_FAILED, "mkvmerge output has no container or track data")

    props_c = container.get("properties") or {}
    container_type = clean(container.get("type"))
    size = to_int(props_c.get("file_size"))
    file_size = format_bytes(size if size is not None else fallback_size)

    tracks = []
    for raw in tracks_raw or []:
        t_kind = _KINDS.get(str(raw.get("type", "")).lower())
        if t_kind is None or (kind is not None and t_kind != kind):
            continue
        if raw.get("id") is None:
            raise ProbeError(ProbeErrorKind.INSPECTION_FAILED, "mkvmerge reported a track without an id")
        props = raw.get("properties") or {}
        lang = clean(props.get("language_ietf")) or clean(props.get("language"))
        codec = clean(props.get("codec_name")) or clean(raw.get("codec")) or clean(props.get("codec_id")) or "unknown"
        tracks.append(Track(
            track_id=str(raw["id"]),
            kind=t_kind,
            codec=codec,
            lang=lang,
            language_name=pretty_lang_from_code(lang),
            track_name=clean(props.get("track_name")),
            is_default=flag_from(props.get("default_track")),
            is_forced=flag_from(props.get("forced_track")),
            charset=clean(props.get("encoding")),
            attributes=_attributes(t_kind, props),
            container=container_type,
            file_size=file_size,
        ))
    return ProbedFile(path=path, tracks=tuple(tracks), kind=kind, mtime_ns=mtime_ns)
