# trackmix/mixing/job_store.py
from __future__ import annotations

import logging
import threading
from typing import Callable

from ..errors import JobNotFound
from ..models.job import JobStatus, MixJobRecord

logger = logging.getLogger(__name__)

# Listener events
ADDED, UPDATED, PROGRESS, REMOVED = "added", "updated", "progress", "removed"

Listener = Callable[[str, MixJobRecord], None]


class JobStore:
    """
    Thread-safe collection of MixJobRecords in insertion order.

    Every read hands out a snapshot copy taken under the lock, so a reader never
    sees a record halfway through a transition. Listeners are called after the
    lock is released, with (event, snapshot).
    """

    def __init__(self, history_limit: int | None = None):
        self.history_limit = history_limit
        self._lock = threading.RLock()
        self._records: dict[int, MixJobRecord] = {}
        self._high_water = 0  # highest id ever stored, survives clear and eviction
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def _notify(self, events: list[tuple[str, MixJobRecord]]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for event, snap in events:
            for cb in listeners:
                try:
                    cb(event, snap)
                except Exception:
                    logger.exception("Job store listener failed on %s for job %s", event, snap.id)

    def add(self, record: MixJobRecord) -> MixJobRecord:
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"job {record.id} already stored")
            self._records[record.id] = record
            self._high_water = max(self._high_water, record.id)
            events = [(ADDED, record.snapshot())]
            events += self._evict()
        self._notify(events)
        return events[0][1]

    def restore(self, records: list[MixJobRecord], next_id: int | None = None) -> None:
        """Bulk-load persisted records (startup only, no notifications)."""
        with self._lock:
            for r in records:
                self._records.setdefault(r.id, r)
                self._high_water = max(self._high_water, r.id)
            if next_id:
                self._high_water = max(self._high_water, int(next_id) - 1)
            self._evict()

    def transition(self, job_id: int, status: JobStatus, message: str | None = None) -> MixJobRecord:
        with self._lock:
            rec = self._get(job_id)
            rec.move_to(status, message)
            events = [(UPDATED, rec.snapshot())]
            if status.is_terminal:
                events += self._evict()
        self._notify(events)
        return events[0][1]

    def set_progress(self, job_id: int, pct: int) -> MixJobRecord | None:
        with self._lock:
            rec = self._get(job_id)
            pct = max(0, min(100, int(pct)))
            if rec.status != JobStatus.RUNNING or pct == rec.progress:
                return None
            rec.progress = pct
            snap = rec.snapshot()
        self._notify([(PROGRESS, snap)])
        return snap

    def _get(self, job_id: int) -> MixJobRecord:
        try:
            return self._records[job_id]
        except KeyError:
            raise JobNotFound(job_id) from None

    def get(self, job_id: int) -> MixJobRecord:
        with self._lock:
            return self._get(job_id).snapshot()

    def __contains__(self, job_id: int) -> bool:
        with self._lock:
            return job_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def list(self, newest_first: bool = False) -> list[MixJobRecord]:
        with self._lock:
            snaps = [r.snapshot() for r in self._records.values()]
        if newest_first:
            snaps.sort(key=lambda r: (r.job.created_at, r.id), reverse=True)
        return snaps

    def counts(self) -> dict[JobStatus, int]:
        out = {s: 0 for s in JobStatus}
        with self._lock:
            for r in self._records.values():
                out[r.status] += 1
        return out

    def max_id(self) -> int:
        """Highest id ever stored, including records since cleared or evicted."""
        with self._lock:
            return self._high_water

    def clear_finished(self) -> int:
        with self._lock:
            gone = [r for r in self._records.values() if r.status.is_terminal]
            for r in gone:
                del self._records[r.id]
            events = [(REMOVED, r.snapshot()) for r in gone]
        self._notify(events)
        return len(gone)

    def _evict(self) -> list[tuple[str, MixJobRecord]]:
        # Oldest finished records go first; queued/running are never evicted.
        if self.history_limit is None:
            return []
        finished = [r for r in self._records.values() if r.status.is_terminal]
        excess = len(finished) - self.history_limit
        events = []
        for r in finished[:max(0, excess)]:
            del self._records[r.id]
            events.append((REMOVED, r.snapshot()))
            logger.debug("Evicted finished job %s from history", r.id)
        return events
