# trackmix/mixing/history.py
import json
import logging
import os
import threading
from pathlib import Path

from ..models.job import JobStatus, MixJobRecord
from .job_store import PROGRESS, JobStore

logger = logging.getLogger(__name__)

HISTORY_VERSION = 1

INTERRUPTED_MSG = "Interrupted: the application exited while this job was running."
NOT_STARTED_MSG = "Not started before the application exited."


def recover(records: list[MixJobRecord]) -> list[MixJobRecord]:
    """
    Settle jobs left unfinished by a previous run.

    A `running` job's mkvmerge process did not survive the restart, so it is
    failed. A `queued` job is cancelled. Neither is started again
    automatically; the user can resubmit.
    """
    for rec in records:
        if rec.status == JobStatus.RUNNING:
            rec.move_to(JobStatus.FAILED, INTERRUPTED_MSG)
        elif rec.status == JobStatus.QUEUED:
            rec.move_to(JobStatus.CANCELLED, NOT_STARTED_MSG)
    return records


class HistoryFile:
    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self.next_id = 1  # set by load(), ids below it were handed out before

    def load(self) -> list[MixJobRecord]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Could not read job history %s: %s", self.path, e)
            return []
        records = []
        if isinstance(data, dict):
            try:
                self.next_id = max(1, int(data.get("next_id") or 1))
            except (TypeError, ValueError):
                logger.warning("Ignoring bad next_id in %s: %r", self.path, data.get("next_id"))
        for item in (data.get("jobs") if isinstance(data, dict) else None) or []:
            try:
                records.append(MixJobRecord.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable history entry: %s", e)
        self.next_id = max([self.next_id] + [r.id + 1 for r in records])
        return recover(records)

    def save(self, store: JobStore) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        with self._lock:
            # snapshot while holding the file lock so an older state never lands last
            payload = {
                "version": HISTORY_VERSION,
                "next_id": store.max_id() + 1,
                "jobs": [r.to_dict() for r in store.list()],
            }
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
                os.replace(tmp, self.path)
            except OSError as e:
                logger.error("Could not write job history %s: %s", self.path, e)

    def attach(self, store: JobStore):
        """Save the store on every status change (progress ticks are skipped)."""
        def on_change(event, record):
            if event != PROGRESS:
                self.save(store)
        return store.subscribe(on_change)
