# trackmix/models/job.py
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import NamedTuple

from .track import TrackKind
from ..errors import InvalidTransition


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = {JobStatus.SUCCESS, JobStatus.FAILED, JobStatus.CANCELLED}

# The only legal moves; anything else is rejected.
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.RUNNING, JobStatus.CANCELLED}),
    JobStatus.RUNNING: frozenset({JobStatus.SUCCESS, JobStatus.FAILED, JobStatus.CANCELLED}),
    JobStatus.SUCCESS: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


class MuxTrack(NamedTuple):
    """One resolved track handed to the muxer, in output order."""
    path: Path
    track_id: str
    kind: TrackKind
    language: str | None  # None => keep the language stored in the source


@dataclass(frozen=True)
class MixInput:
    path: Path
    kind: TrackKind
    track_ids: tuple[str, ...]
    track_langs: dict[str, str] = field(default_factory=dict, hash=False, compare=True)

    def language_for(self, track_id: str) -> str | None:
        lang = (self.track_langs.get(track_id) or "").strip()
        return lang or None

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "kind": self.kind.value,
            "track_ids": list(self.track_ids),
            "track_langs": dict(self.track_langs),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MixInput":
        # accepts the camelCase keys used by the frontend payloads too
        ids = data.get("track_ids", data.get("trackIds")) or []
        langs = data.get("track_langs", data.get("trackLangs")) or {}
        return cls(
            path=Path(data["path"]),
            kind=TrackKind.parse(data["kind"]),
            track_ids=tuple(str(t) for t in ids),
            # None or blank means "keep the source tag", not a language
            track_langs={str(k): str(v).strip() for k, v in langs.items() if v is not None and str(v).strip()},
        )


@dataclass(frozen=True)
class MixJob:
    id: int
    created_at: datetime
    output_path: Path
    inputs: tuple[MixInput, ...]

    def resolved_tracks(self) -> list[MuxTrack]:
        return [
            MuxTrack(inp.path, tid, inp.kind, inp.language_for(tid))
            for inp in self.inputs
            for tid in inp.track_ids
        ]

    @property
    def track_count(self) -> int:
        return sum(len(inp.track_ids) for inp in self.inputs)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "output_path": str(self.output_path),
            "inputs": [inp.to_dict() for inp in self.inputs],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MixJob":
        return cls(
            id=int(data["id"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            output_path=Path(data["output_path"]),
            inputs=tuple(MixInput.from_dict(d) for d in data.get("inputs", [])),
        )


@dataclass
class MixJobRecord:
    """Mutable status of a MixJob. Only the job store mutates it."""
    job: MixJob
    status: JobStatus = JobStatus.QUEUED
    message: str | None = None
    progress: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def id(self) -> int:
        return self.job.id

    def can_move_to(self, status: JobStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.status]

    def move_to(self, status: JobStatus, message: str | None = None, now: datetime | None = None) -> None:
        if not self.can_move_to(status):
            raise InvalidTransition(self.id, self.status, status)
        now = now or datetime.now()
        if status == JobStatus.RUNNING:
            self.started_at = now
        if status.is_terminal:
            self.finished_at = now
            if status == JobStatus.SUCCESS:
                self.progress = 100
        self.status = status
        if message is not None:
            self.message = message

    def snapshot(self) -> "MixJobRecord":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "job": self.job.to_dict(),
            "status": self.status.value,
            "message": self.message,
            "progress": self.progress,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MixJobRecord":
        started, finished = data.get("started_at"), data.get("finished_at")
        return cls(
            job=MixJob.from_dict(data["job"]),
            status=JobStatus(data.get("status", "queued")),
            message=data.get("message"),
            progress=int(data.get("progress") or 0),
            started_at=datetime.fromisoformat(started) if started else None,
            finished_at=datetime.fromisoformat(finished) if finished else None,
        )
