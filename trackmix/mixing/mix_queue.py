# trackmix/mixing/mix_queue.py
from __future__ import annotations

import itertools
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Iterable, Protocol

from ..errors import (InvalidTransition, JobNotFound, MixErrorKind, MixExecutionError,
                      SubmissionError, SubmissionErrorKind)
from ..models.job import JobStatus, MixInput, MixJob, MixJobRecord, MuxTrack
from ..models.track import TrackKind
from ..utils.paths import normalize_output_path, partial_path_for
from .job_store import JobStore

logger = logging.getLogger(__name__)


class Muxer(Protocol):
    def mux(self, output: Path, tracks: list[MuxTrack], *, cancel=None, timeout=None,
            on_progress=None, on_line=None) -> str: ...


def validate_submission(output_path, inputs: Iterable[MixInput | dict] | None) -> tuple[Path, list[MixInput]]:
    """Normalize a submission or raise SubmissionError. Inputs with no tracks are dropped."""
    out = normalize_output_path(output_path)
    if out is None:
        raise SubmissionError(SubmissionErrorKind.INVALID_OUTPUT_PATH, f"unusable output path {output_path!r}")

    cleaned: list[MixInput] = []
    for inp in inputs or []:
        try:
            if isinstance(inp, dict):
                inp = MixInput.from_dict(inp)
            kind = TrackKind.parse(inp.kind)
        except (KeyError, ValueError, AttributeError) as e:
            raise SubmissionError(SubmissionErrorKind.INVALID_INPUT, f"malformed input: {e}") from e
        path_s = str(inp.path).strip() if inp.path is not None else ""
        if not path_s or path_s == ".":
            raise SubmissionError(SubmissionErrorKind.INVALID_INPUT, "track source path is empty")
        ids = tuple(dict.fromkeys(s for s in (str(t).strip() for t in inp.track_ids) if s))
        if not ids:
            continue
        langs = {}
        for tid, lang in (inp.track_langs or {}).items():
            tid, lang = str(tid).strip(), str(lang or "").strip()
            if tid in ids and lang:
                langs[tid] = lang
        cleaned.append(MixInput(path=Path(path_s).expanduser(), kind=kind, track_ids=ids, track_langs=langs))

    if not cleaned:
        raise SubmissionError(SubmissionErrorKind.EMPTY_INPUTS, "no tracks selected for mixing")
    if any(out.absolute() == inp.path.absolute() for inp in cleaned):
        raise SubmissionError(SubmissionErrorKind.INVALID_OUTPUT_PATH, f"output {out} would overwrite a source file")
    return out, cleaned


class MixQueue:
    """
    Runs mix jobs on a fixed-size worker pool.

    Jobs start in submission order (the pool's work queue is FIFO). Every state
    change goes through the JobStore, which rejects illegal transitions. A
    worker never lets an exception escape: execution errors and internal faults
    both end as a `failed` record and the pool keeps going.
    """

    def __init__(self, muxer: Muxer, store: JobStore | None = None, max_workers: int = 1,
                 timeout: float | None = None, next_id: int | None = None):
        if int(max_workers) < 1:
            raise ValueError("max_workers must be a positive integer")
        self.muxer = muxer
        self.store = store if store is not None else JobStore()
        self.max_workers = int(max_workers)
        self.timeout = timeout or None
        start = next_id if next_id is not None else self.store.max_id() + 1
        self._ids = itertools.count(max(start, self.store.max_id() + 1))
        self._submit_lock = threading.Lock()
        self._cancel_events: dict[int, threading.Event] = {}
        self._closed = False
        self._changed = threading.Condition()
        self.store.subscribe(self._on_store_change)
        self._pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="mix-worker")

    @classmethod
    def from_settings(cls, settings: dict, muxer: Muxer, store: JobStore | None = None,
                      next_id: int | None = None) -> MixQueue:
        if store is None:
            store = JobStore(history_limit=settings.get("history_limit") or None)
        return cls(
            muxer,
            store=store,
            next_id=next_id,
            max_workers=settings.get("max_concurrent_mix_jobs", 1),
            timeout=settings.get("mix_timeout_sec") or None,
        )

    def _on_store_change(self, event, record):
        with self._changed:
            self._changed.notify_all()

    # --- submission / control -------------------------------------------

    def submit(self, output_path, inputs) -> int:
        out, cleaned = validate_submission(output_path, inputs)
        # id assignment, store insert and pool hand-off happen together so
        # concurrent submitters can't reorder the FIFO
        with self._submit_lock:
            if self._closed:
                raise RuntimeError("mix queue has been shut down")
            job = MixJob(id=next(self._ids), created_at=datetime.now(), output_path=out, inputs=tuple(cleaned))
            self._cancel_events[job.id] = threading.Event()
            self.store.add(MixJobRecord(job))
            self._pool.submit(self._run, job.id)
        logger.info("[job=%s] Queued: %d track(s) -> %s", job.id, job.track_count, out)
        return job.id

    def resubmit(self, job_id: int) -> int:
        """Queue a finished job again as a brand-new job; the old record stays as it is."""
        rec = self.store.get(job_id)
        if not rec.status.is_terminal:
            raise InvalidTransition(job_id, rec.status, JobStatus.QUEUED)
        return self.submit(rec.job.output_path, list(rec.job.inputs))

    def cancel(self, job_id: int) -> bool:
        rec = self.store.get(job_id)
        if rec.status == JobStatus.QUEUED:
            try:
                self.store.transition(job_id, JobStatus.CANCELLED, "Cancelled before it started.")
                logger.info("[job=%s] Cancelled while queued", job_id)
                return True
            except InvalidTransition:
                rec = self.store.get(job_id)  # a worker picked it up meanwhile
        if rec.status == JobStatus.RUNNING:
            if (ev := self._cancel_events.get(job_id)) is not None:
                ev.set()
                logger.info("[job=%s] Cancel requested while running", job_id)
                return True
        return False

    def shutdown(self, cancel_running: bool = True, wait: bool = True) -> None:
        with self._submit_lock:
            self._closed = True
        for rec in self.store.list():
            if rec.status == JobStatus.QUEUED or (cancel_running and rec.status == JobStatus.RUNNING):
                self.cancel(rec.id)
        self._pool.shutdown(wait=wait)

    def wait_for(self, job_id: int, timeout: float | None = None) -> MixJobRecord | None:
        """
        Block until the job is terminal (or timeout); returns the latest snapshot,
        or None once the record has been evicted or cleared from the store.
        """
        def done():
            try:
                return self.store.get(job_id).status.is_terminal
            except JobNotFound:
                return True
        with self._changed:
            self._changed.wait_for(done, timeout)
        try:
            return self.store.get(job_id)
        except JobNotFound:
            return None

    def wait_idle(self, timeout: float | None = None) -> bool:
        def idle():
            c = self.store.counts()
            return c[JobStatus.QUEUED] == 0 and c[JobStatus.RUNNING] == 0
        with self._changed:
            return self._changed.wait_for(idle, timeout)

    # --- worker side -------------------------------------------------------

    def _run(self, job_id: int) -> None:
        try:
            try:
                rec = self.store.transition(job_id, JobStatus.RUNNING)
            except (InvalidTransition, JobNotFound):
                logger.debug("[job=%s] Skipped, no longer queued", job_id)
                return
            logger.info("[job=%s] Started", job_id)
            self._execute(rec.job)
        except Exception as e:
            logger.exception("[job=%s] Internal error in mix worker", job_id)
            try:
                self._finish(job_id, JobStatus.FAILED, f"Internal error: {e}")
            except Exception:
                logger.exception("[job=%s] Could not record failure", job_id)
        finally:
            self._cancel_events.pop(job_id, None)

    def _execute(self, job: MixJob) -> None:
        cancel = self._cancel_events.get(job.id) or threading.Event()
        tracks = job.resolved_tracks()
        partial = partial_path_for(job.output_path, job.id)
        try:
            missing = [str(p) for p in dict.fromkeys(t.path for t in tracks) if not p.is_file()]
            if missing:
                raise MixExecutionError(MixErrorKind.SOURCE_MISSING, "Source file not found: " + ", ".join(missing))
            if cancel.is_set():
                raise MixExecutionError(MixErrorKind.CANCELLED, "Cancelled before mkvmerge started.")
            job.output_path.parent.mkdir(parents=True, exist_ok=True)
            if partial.exists():
                partial.unlink()

            self.muxer.mux(
                partial, tracks,
                cancel=cancel,
                timeout=self.timeout,
                on_progress=lambda pct: self.store.set_progress(job.id, pct),
                on_line=lambda line: logger.debug("[job=%s] %s", job.id, line),
            )

            if not partial.exists():
                raise MixExecutionError(MixErrorKind.OUTPUT_MISSING, "mkvmerge reported success but wrote no file.")
            if partial.stat().st_size == 0:
                raise MixExecutionError(MixErrorKind.OUTPUT_EMPTY, "mkvmerge reported success but the output is empty.")
            os.replace(partial, job.output_path)
        except MixExecutionError as e:
            self._discard(job.id, partial)
            status = JobStatus.CANCELLED if e.kind == MixErrorKind.CANCELLED else JobStatus.FAILED
            logger.warning("[job=%s] %s: %s", job.id, status.value, e)
            self._finish(job.id, status, e.detail or e.kind.value)
            return
        except OSError as e:
            self._discard(job.id, partial)
            logger.warning("[job=%s] I/O error: %s", job.id, e)
            self._finish(job.id, JobStatus.FAILED, f"I/O error: {e}")
            return
        except BaseException:
            self._discard(job.id, partial)
            raise

        self._finish(job.id, JobStatus.SUCCESS, f"Wrote {job.track_count} track(s) to {job.output_path}")
        logger.info("[job=%s] Finished: %s", job.id, job.output_path)

    def _finish(self, job_id: int, status: JobStatus, message: str) -> None:
        try:
            self.store.transition(job_id, status, message)
        except InvalidTransition as e:
            logger.warning("[job=%s] Ignored transition: %s", job_id, e)

    @staticmethod
    def _discard(job_id: int, partial: Path) -> None:
        try:
            partial.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("[job=%s] Could not remove partial output %s: %s", job_id, partial, e)
