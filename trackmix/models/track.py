# trackmix/models/track.py
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class TrackKind(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    SUBTITLE = "subtitle"

    @classmethod
    def parse(cls, value: "str | TrackKind") -> "TrackKind":
        if isinstance(value, TrackKind):
            return value
        v = str(value).strip().lower()
        if v in ("subtitles", "subs", "sub"):  # mkvmerge says "subtitles"
            v = "subtitle"
        return cls(v)

    @property
    def label(self) -> str:
        return self.value.title()


@dataclass(frozen=True)
class Track:
    """One stream inside a probed file. Missing metadata stays None."""
    track_id: str
    kind: TrackKind
    codec: str
    lang: str | None = None
    language_name: str | None = None
    track_name: str | None = None
    is_default: bool | None = None
    is_forced: bool | None = None
    charset: str | None = None
    attributes: str | None = None
    container: str | None = None
    file_size: str | None = None


@dataclass(frozen=True)
class ProbedFile:
    path: Path
    tracks: tuple[Track, ...] = field(default_factory=tuple)
    kind: TrackKind | None = None   # filter applied while probing, None => all kinds
    mtime_ns: int | None = None

    def track(self, track_id: str) -> Track | None:
        return next((t for t in self.tracks if t.track_id == track_id), None)

    def track_ids(self) -> list[str]:
        return [t.track_id for t in self.tracks]
