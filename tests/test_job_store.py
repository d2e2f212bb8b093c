"""Job store tests.

Covers merge semantics, attempt counting, log history, silent misses on
unknown ids, write-through persistence and the console queries.
"""

from datetime import datetime, timedelta, timezone

import pytest

from autoposter.models.job import (
    DEFAULT_CHANNEL,
    DEFAULT_TITLE,
    InvalidStateTransition,
    JobStatus,
    LogLevel,
    PostJob,
)
from autoposter.stores.jobs import JobStore


def _iso(minutes: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(minutes=minutes)).isoformat()


def test_upsert_inserts_with_defaults(job_store):
    job = job_store.upsert()

    assert job.id
    assert job.title == DEFAULT_TITLE
    assert job.channel == DEFAULT_CHANNEL
    assert job.status == JobStatus.DRAFT
    assert job.attempts == 0
    assert job.tags == []
    assert job.created_at
    assert job.scheduled_for is None
    assert job.error_message is None


def test_upsert_inserts_new_jobs_at_head(job_store):
    first = job_store.upsert(title="First")
    second = job_store.upsert(title="Second")

    assert [job.id for job in job_store.jobs] == [second.id, first.id]


def test_upsert_merges_only_provided_fields(job_store):
    """Fields omitted from a merge keep their value; provided ones win."""
    job = job_store.upsert(title="Original", content="Body", tags=["a", "b"], prompt="brief")

    job_store.upsert(id=job.id, title="Renamed")
    job_store.upsert({"id": job.id, "content": "Second body"})
    merged = job_store.upsert(id=job.id, tags=["c"], title="Final")

    assert merged.id == job.id
    assert merged.title == "Final"
    assert merged.content == "Second body"
    assert merged.tags == ["c"]
    assert merged.prompt == "brief"
    assert merged.channel == DEFAULT_CHANNEL
    assert merged.created_at == job.created_at
    assert len(job_store.jobs) == 1


def test_upsert_accepts_camel_case_and_model_input(job_store):
    job = job_store.upsert({"title": "Camel", "scheduledFor": "2030-01-01T10:00:00+00:00"})
    assert job.scheduled_for == "2030-01-01T10:00:00+00:00"

    merged = job_store.upsert(PostJob(id=job.id, title="Model input"))
    assert merged.title == "Model input"
    assert merged.scheduled_for == "2030-01-01T10:00:00+00:00"


def test_upsert_never_changes_created_at(job_store):
    job = job_store.upsert(title="Post")
    merged = job_store.upsert(id=job.id, created_at="1999-01-01T00:00:00+00:00")
    assert merged.created_at == job.created_at


def test_upsert_rejects_unknown_fields(job_store):
    with pytest.raises(ValueError, match="bogus"):
        job_store.upsert(title="Post", bogus=True)
    assert job_store.jobs == []


def test_upsert_status_change_goes_through_transition_table(job_store):
    job = job_store.upsert(status=JobStatus.PUBLISHED, content="Done")

    with pytest.raises(InvalidStateTransition):
        job_store.upsert(id=job.id, status=JobStatus.FAILED)

    assert job_store.get_job(job.id).status == JobStatus.PUBLISHED


def test_upsert_into_failed_counts_as_attempt(job_store):
    job = job_store.upsert(status=JobStatus.PUBLISHING)

    failed = job_store.upsert(id=job.id, status=JobStatus.FAILED, error_message="boom")
    assert failed.attempts == 1

    # Explicit attempts win over the implicit increment
    queued = job_store.upsert(id=job.id, status=JobStatus.QUEUED)
    explicit = job_store.upsert(id=queued.id, status=JobStatus.FAILED, attempts=5)
    assert explicit.attempts == 5


def test_attempts_equal_number_of_failed_transitions(job_store):
    """attempts counts transitions into failed, exactly."""
    job = job_store.upsert(title="Flaky")
    sequence = [
        JobStatus.QUEUED,
        JobStatus.PUBLISHING,
        JobStatus.FAILED,
        JobStatus.QUEUED,
        JobStatus.PUBLISHING,
        JobStatus.FAILED,
        JobStatus.SCHEDULED,
        JobStatus.PUBLISHING,
        JobStatus.PUBLISHED,
    ]

    for status in sequence:
        job_store.update_status(job.id, status)

    final = job_store.get_job(job.id)
    assert final.status == JobStatus.PUBLISHED
    assert final.attempts == sequence.count(JobStatus.FAILED) == 2


def test_update_status_sets_and_clears_error_message(job_store):
    job = job_store.upsert(status=JobStatus.PUBLISHING)

    failed = job_store.update_status(job.id, JobStatus.FAILED, "LinkedIn API returned 401")
    assert failed.error_message == "LinkedIn API returned 401"

    queued = job_store.update_status(job.id, "queued")
    assert queued.status == JobStatus.QUEUED
    assert queued.error_message is None
    assert queued.attempts == 1


def test_update_status_on_missing_job_is_silent_noop(job_store, uow_factory):
    job = job_store.upsert(title="Existing")
    before = job_store.jobs

    assert job_store.update_status("does-not-exist", JobStatus.FAILED, "boom") is None

    assert job_store.jobs == before
    reloaded = JobStore(uow_factory)
    reloaded.load()
    assert reloaded.get_job(job.id) == before[0]


def test_illegal_update_status_leaves_job_untouched(job_store):
    job = job_store.upsert(status=JobStatus.PUBLISHED)

    with pytest.raises(InvalidStateTransition):
        job_store.update_status(job.id, JobStatus.FAILED, "late failure")

    unchanged = job_store.get_job(job.id)
    assert unchanged.status == JobStatus.PUBLISHED
    assert unchanged.attempts == 0
    assert unchanged.error_message is None


def test_append_log_preserves_order_with_distinct_ids(job_store):
    job = job_store.upsert(title="Logged")

    for index in range(5):
        job_store.append_log(job.id, LogLevel.INFO, f"step {index}")

    logs = job_store.get_logs(job.id)
    assert [entry.message for entry in logs] == [f"step {index}" for index in range(5)]
    assert len({entry.id for entry in logs}) == 5
    assert all(entry.job_id == job.id for entry in logs)


def test_append_log_keeps_arrival_order_not_timestamp_order(job_store):
    job_store.append_log("remote-job", "warn", "late", timestamp="2030-01-01T10:05:00Z")
    entry = job_store.append_log("remote-job", "error", "early", timestamp="2030-01-01T10:00:00Z")

    assert entry.level == LogLevel.ERROR
    assert entry.timestamp == "2030-01-01T10:00:00Z"
    assert [e.message for e in job_store.get_logs("remote-job")] == ["late", "early"]


def test_get_logs_for_unknown_job_is_empty(job_store):
    assert job_store.get_logs("unknown") == []


def test_snapshots_are_detached_from_the_store(job_store):
    job = job_store.upsert(title="Snapshot", tags=["a"])

    job.title = "Mutated"
    job.tags.append("b")
    job_store.get_logs(job.id).append(None)

    stored = job_store.get_job(job.id)
    assert stored.title == "Snapshot"
    assert stored.tags == ["a"]
    assert job_store.get_logs(job.id) == []


def test_state_survives_reload(job_store, uow_factory):
    job = job_store.upsert(title="Persisted", tags=["x"], status=JobStatus.QUEUED)
    job_store.update_status(job.id, JobStatus.PUBLISHING)
    job_store.append_log(job.id, LogLevel.INFO, "Publishing")

    reloaded = JobStore(uow_factory)
    reloaded.load()

    assert reloaded.jobs == job_store.jobs
    assert reloaded.get_logs(job.id) == job_store.get_logs(job.id)


def test_persisted_document_uses_camel_case(job_store, uow_factory):
    job = job_store.upsert(title="Wire", error_message="oops", status=JobStatus.FAILED)
    job_store.append_log(job.id, LogLevel.ERROR, "oops")

    with uow_factory() as uow:
        payload = uow.documents.get("posts").payload

    stored = payload["jobs"][0]
    assert stored["errorMessage"] == "oops"
    assert stored["createdAt"] == job.created_at
    assert stored["status"] == "failed"
    assert payload["logs"][job.id][0]["jobId"] == job.id


def test_reset_clears_jobs_and_logs(job_store, uow_factory):
    job = job_store.upsert(title="Gone")
    job_store.append_log(job.id, LogLevel.INFO, "bye")

    job_store.reset()

    assert job_store.jobs == []
    assert job_store.get_logs(job.id) == []
    reloaded = JobStore(uow_factory)
    reloaded.load()
    assert reloaded.jobs == []


def test_list_jobs_filters_by_status_and_title(job_store):
    job_store.upsert(title="Launch recap", status=JobStatus.PUBLISHED)
    job_store.upsert(title="Weekly update", status=JobStatus.SCHEDULED)
    job_store.upsert(title="Launch teaser", status=JobStatus.FAILED)

    assert {job.title for job in job_store.list_jobs(search="LAUNCH")} == {
        "Launch recap",
        "Launch teaser",
    }
    assert [job.title for job in job_store.list_jobs(status=JobStatus.FAILED)] == ["Launch teaser"]
    assert job_store.list_jobs(status=JobStatus.QUEUED) == []


def test_scheduled_jobs_sorted_soonest_first(job_store):
    job_store.upsert(title="Later", status=JobStatus.SCHEDULED, scheduled_for=_iso(120))
    job_store.upsert(title="Sooner", status=JobStatus.SCHEDULED, scheduled_for=_iso(30))
    job_store.upsert(title="Draft", scheduled_for=_iso(10))

    assert [job.title for job in job_store.scheduled_jobs()] == ["Sooner", "Later"]


def test_seed_demo_data_only_into_empty_store(job_store):
    seeded = job_store.seed_demo_data()

    assert [job.status for job in seeded] == [
        JobStatus.PUBLISHED,
        JobStatus.SCHEDULED,
        JobStatus.FAILED,
    ]
    failed = seeded[2]
    assert failed.attempts == 2
    assert failed.error_message == "LinkedIn API returned 401"

    assert job_store.seed_demo_data() == []
    assert len(job_store.jobs) == 3


def test_failed_save_leaves_memory_matching_database(job_store, uow_factory, monkeypatch):
    job = job_store.upsert(title="Kept", status=JobStatus.QUEUED)
    job_store.append_log(job.id, LogLevel.INFO, "queued")

    def fail(payload):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(job_store._persistence, "save", fail)

    with pytest.raises(RuntimeError):
        job_store.upsert(title="Lost")
    with pytest.raises(RuntimeError):
        job_store.update_status(job.id, JobStatus.FAILED, "boom")
    with pytest.raises(RuntimeError):
        job_store.append_log(job.id, LogLevel.ERROR, "lost")
    with pytest.raises(RuntimeError):
        job_store.reset()

    assert [j.title for j in job_store.jobs] == ["Kept"]
    stored = job_store.get_job(job.id)
    assert stored.status == JobStatus.QUEUED
    assert stored.attempts == 0
    assert [entry.message for entry in job_store.get_logs(job.id)] == ["queued"]

    reloaded = JobStore(uow_factory)
    reloaded.load()
    assert [j.model_dump() for j in reloaded.jobs] == [j.model_dump() for j in job_store.jobs]
    assert [e.message for e in reloaded.get_logs(job.id)] == ["queued"]
