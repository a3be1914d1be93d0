from datetime import datetime
from pathlib import Path

import pytest

from trackmix.errors import InvalidTransition, JobNotFound
from trackmix.mixing.job_store import ADDED, PROGRESS, REMOVED, UPDATED, JobStore
from trackmix.models.job import ALLOWED_TRANSITIONS, JobStatus, MixInput, MixJob, MixJobRecord
from trackmix.models.track import TrackKind


def record(job_id, created=None):
    job = MixJob(
        id=job_id,
        created_at=created or datetime(2026, 1, 1, 12, 0, job_id % 60),
        output_path=Path(f"/out/{job_id}.mkv"),
        inputs=(MixInput(Path("/src/a.mkv"), TrackKind.VIDEO, ("0",)),),
    )
    return MixJobRecord(job)


def finish(store, job_id, status=JobStatus.SUCCESS):
    store.transition(job_id, JobStatus.RUNNING)
    return store.transition(job_id, status, "done")


@pytest.mark.parametrize("start", list(JobStatus))
def test_only_listed_transitions_are_allowed(start):
    for target in JobStatus:
        rec = record(1)
        rec.status = start
        if target in ALLOWED_TRANSITIONS[start]:
            rec.move_to(target)
            assert rec.status == target
        else:
            with pytest.raises(InvalidTransition):
                rec.move_to(target)
            assert rec.status == start


def test_move_to_stamps_times_and_progress():
    rec = record(1)
    t0, t1 = datetime(2026, 1, 1, 10), datetime(2026, 1, 1, 11)
    rec.move_to(JobStatus.RUNNING, now=t0)
    rec.move_to(JobStatus.SUCCESS, "ok", now=t1)
    assert (rec.started_at, rec.finished_at, rec.progress, rec.message) == (t0, t1, 100, "ok")


def test_snapshots_are_isolated():
    store = JobStore()
    store.add(record(1))
    snap = store.get(1)
    snap.status = JobStatus.FAILED
    assert store.get(1).status == JobStatus.QUEUED
    assert store.get(1) == store.get(1)


def test_unknown_and_duplicate_ids():
    store = JobStore()
    store.add(record(1))
    with pytest.raises(ValueError):
        store.add(record(1))
    with pytest.raises(JobNotFound) as ei:
        store.transition(5, JobStatus.RUNNING)
    assert ei.value.job_id == 5
    assert 1 in store and 5 not in store


def test_illegal_transition_leaves_record_unchanged():
    store = JobStore()
    store.add(record(1))
    finish(store, 1)
    with pytest.raises(InvalidTransition):
        store.transition(1, JobStatus.RUNNING)
    assert store.get(1).status == JobStatus.SUCCESS


def test_listeners_receive_events_and_can_unsubscribe():
    store = JobStore()
    events = []
    unsubscribe = store.subscribe(lambda ev, rec: events.append((ev, rec.id, rec.status, rec.progress)))

    store.add(record(1))
    store.transition(1, JobStatus.RUNNING)
    assert store.set_progress(1, 40).progress == 40
    assert store.set_progress(1, 40) is None
    store.transition(1, JobStatus.SUCCESS)
    unsubscribe()
    store.add(record(2))

    assert events == [
        (ADDED, 1, JobStatus.QUEUED, 0),
        (UPDATED, 1, JobStatus.RUNNING, 0),
        (PROGRESS, 1, JobStatus.RUNNING, 40),
        (UPDATED, 1, JobStatus.SUCCESS, 100),
    ]


def test_progress_ignored_unless_running():
    store = JobStore()
    store.add(record(1))
    assert store.set_progress(1, 10) is None
    assert store.get(1).progress == 0


def test_failing_listener_does_not_break_store():
    store = JobStore()
    store.subscribe(lambda ev, rec: 1 / 0)
    store.add(record(1))
    assert store.transition(1, JobStatus.CANCELLED).status == JobStatus.CANCELLED


def test_eviction_drops_oldest_finished_only():
    store = JobStore(history_limit=1)
    removed = []
    store.subscribe(lambda ev, rec: ev == REMOVED and removed.append(rec.id))
    for i in range(1, 6):
        store.add(record(i))
    store.transition(5, JobStatus.RUNNING)
    finish(store, 1)
    finish(store, 2, JobStatus.FAILED)

    assert removed == [1]
    assert [r.id for r in store.list()] == [2, 3, 4, 5]
    assert store.counts()[JobStatus.QUEUED] == 2
    assert store.counts()[JobStatus.RUNNING] == 1


def test_list_order_and_clear_finished():
    store = JobStore()
    for i in (1, 2, 3):
        store.add(record(i))
    finish(store, 2)
    assert [r.id for r in store.list(newest_first=True)] == [3, 2, 1]

    assert store.clear_finished() == 1
    assert [r.id for r in store.list()] == [1, 3]
    assert store.max_id() == 3


def test_restore_is_silent():
    store = JobStore()
    events = []
    store.subscribe(lambda ev, rec: events.append(ev))
    store.restore([record(7)])
    assert events == []
    assert store.max_id() == 7


def test_max_id_survives_clear_and_eviction():
    store = JobStore(history_limit=0)
    store.add(record(1))
    store.add(record(2))
    store.transition(2, JobStatus.CANCELLED)
    assert 2 not in store
    assert store.max_id() == 2

    store.restore([], next_id=10)
    assert store.max_id() == 9
