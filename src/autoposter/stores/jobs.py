"""Job store - system of record for post jobs and their log histories.

All mutations are synchronous and write the full document through to the
database before returning. Callers receive snapshot copies; the store's own
records are never handed out.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import structlog

from autoposter.models.job import (
    DEFAULT_CHANNEL,
    JobLogEntry,
    JobStatus,
    LogLevel,
    PostJob,
    transition_to,
)
from autoposter.stores.persistence import DocumentPersistence
from autoposter.uow import UnitOfWork

logger = structlog.get_logger(__name__)

POSTS_DOCUMENT = "posts"
POSTS_VERSION = 1

# Fields a merge never overwrites
_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


class JobStore:
    """State machine and persisted collection of PostJob records."""

    def __init__(self, uow_factory: Callable[[], UnitOfWork]):
        self._persistence = DocumentPersistence(uow_factory, POSTS_DOCUMENT, POSTS_VERSION)
        self._jobs: list[PostJob] = []
        self._logs: dict[str, list[JobLogEntry]] = {}

    def load(self) -> None:
        """Restore jobs and logs from the persisted document."""
        payload = self._persistence.load()
        if not payload:
            return
        self._jobs = [PostJob.model_validate(item) for item in payload.get("jobs", [])]
        self._logs = {
            job_id: [JobLogEntry.model_validate(item) for item in entries]
            for job_id, entries in payload.get("logs", {}).items()
        }
        logger.debug("jobs.loaded", jobs=len(self._jobs), logged_jobs=len(self._logs))

    # Queries

    @property
    def jobs(self) -> list[PostJob]:
        """Snapshot of all jobs, newest first."""
        return [job.model_copy(deep=True) for job in self._jobs]

    def get_job(self, job_id: str) -> PostJob | None:
        """Retrieve a job snapshot by id.

        Returns:
            PostJob if found, None otherwise
        """
        job = self._find(job_id)
        return job.model_copy(deep=True) if job else None

    def list_jobs(self, status: Optional[JobStatus] = None, search: str = "") -> list[PostJob]:
        """Filter jobs by status and case-insensitive title substring."""
        needle = search.lower()
        return [
            job.model_copy(deep=True)
            for job in self._jobs
            if (status is None or job.status == status) and needle in job.title.lower()
        ]

    def scheduled_jobs(self) -> list[PostJob]:
        """Scheduled jobs with a slot, soonest first."""
        upcoming = [
            job for job in self._jobs if job.status == JobStatus.SCHEDULED and job.scheduled_for
        ]
        upcoming.sort(key=lambda job: _parse_timestamp(job.scheduled_for or ""))
        return [job.model_copy(deep=True) for job in upcoming]

    def get_logs(self, job_id: str) -> list[JobLogEntry]:
        """Logs for a job in append order; empty when none exist."""
        return [entry.model_copy() for entry in self._logs.get(job_id, [])]

    # Mutations

    def upsert(self, job: PostJob | dict[str, Any] | None = None, **fields: Any) -> PostJob:
        """Merge into an existing job or insert a new one.

        Fields may be given as a PostJob, a dict (snake_case or camelCase keys)
        and/or keyword arguments; keyword arguments win. With an ``id`` matching
        an existing job only the provided fields are merged. Otherwise a new job
        is inserted at the head of the collection with defaults filled.

        A status change carried by a merge goes through the transition table;
        moving into failed increments attempts unless attempts is also given.

        Returns:
            Snapshot of the resulting job

        Raises:
            ValueError: If a field name is unknown
            InvalidStateTransition: If a merge changes status illegally
        """
        provided = _provided_fields(job)
        provided.update(_from_wire(fields))
        unknown = set(provided) - set(PostJob.model_fields)
        if unknown:
            raise ValueError(f"Unknown job field(s): {', '.join(sorted(unknown))}")

        job_id = provided.get("id")
        existing = self._find(job_id) if job_id else None

        if existing is None:
            created = PostJob.model_validate(provided)
            self._commit(jobs=[created, *self._jobs])
            logger.info("jobs.created", job_id=created.id, status=created.status.value)
            return created.model_copy(deep=True)

        changes = {key: value for key, value in provided.items() if key not in _IMMUTABLE_FIELDS}
        merged = PostJob.model_validate({**existing.model_dump(), **changes})
        if merged.status != existing.status:
            transition_to(existing.status, merged.status)
            if merged.status == JobStatus.FAILED and "attempts" not in changes:
                merged.attempts = existing.attempts + 1

        self._commit(jobs=self._replaced(merged))
        logger.info("jobs.merged", job_id=merged.id, fields=sorted(changes))
        return merged.model_copy(deep=True)

    def update_status(
        self, job_id: str, status: JobStatus | str, error_message: Optional[str] = None
    ) -> PostJob | None:
        """Move a job to status, recording error_message.

        Attempts increment iff the new status is failed. A missing job is a
        silent no-op since UI actions may race with a reset.

        Returns:
            Snapshot of the updated job, or None if the job does not exist

        Raises:
            InvalidStateTransition: If the transition is not legal
        """
        status = JobStatus(status)
        existing = self._find(job_id)
        if existing is None:
            logger.debug("jobs.status.missing_job", job_id=job_id, status=status.value)
            return None

        transition_to(existing.status, status)
        attempts = existing.attempts + (1 if status == JobStatus.FAILED else 0)
        updated = existing.model_copy(
            update={"status": status, "error_message": error_message, "attempts": attempts}
        )
        self._commit(jobs=self._replaced(updated))

        logger.info(
            "jobs.status.updated",
            job_id=job_id,
            from_status=existing.status.value,
            to_status=status.value,
            attempts=attempts,
            error_message=error_message,
        )
        return updated.model_copy(deep=True)

    def append_log(
        self,
        job_id: str,
        level: LogLevel | str,
        message: str,
        timestamp: Optional[str] = None,
    ) -> JobLogEntry:
        """Append a log entry to a job's history, creating the history if absent.

        Returns:
            The stored entry with its fresh id
        """
        entry = JobLogEntry(job_id=job_id, level=LogLevel(level), message=message)
        if timestamp:
            entry.timestamp = timestamp
        self._commit(logs={**self._logs, job_id: [*self._logs.get(job_id, []), entry]})
        logger.debug("jobs.log.appended", job_id=job_id, level=entry.level.value)
        return entry.model_copy()

    def reset(self) -> None:
        """Clear all jobs and logs."""
        self._commit(jobs=[], logs={})
        logger.info("jobs.reset")

    def seed_demo_data(self) -> list[PostJob]:
        """Insert demo jobs when the store is empty.

        Returns:
            The seeded jobs (empty if the store already held jobs)
        """
        if self._jobs:
            return []

        base = datetime.now(timezone.utc)
        samples = [
            {
                "title": "Launch recap",
                "status": JobStatus.PUBLISHED,
                "created_at": (base - timedelta(minutes=180)).isoformat(),
                "channel": DEFAULT_CHANNEL,
                "attempts": 1,
                "tags": ["launch", "product"],
                "content": "We just launched our auto-poster!",
            },
            {
                "title": "Weekly update",
                "status": JobStatus.SCHEDULED,
                "created_at": (base - timedelta(minutes=60)).isoformat(),
                "scheduled_for": (base + timedelta(minutes=120)).isoformat(),
                "channel": DEFAULT_CHANNEL,
                "attempts": 0,
                "tags": ["update"],
                "content": "Drafting next week's update.",
            },
            {
                "title": "AI tips",
                "status": JobStatus.FAILED,
                "created_at": (base - timedelta(minutes=240)).isoformat(),
                "scheduled_for": (base - timedelta(minutes=180)).isoformat(),
                "channel": DEFAULT_CHANNEL,
                "attempts": 2,
                "tags": ["ai", "tips"],
                "content": "Sharing AI best practices.",
                "error_message": "LinkedIn API returned 401",
            },
        ]
        return [self.upsert(sample) for sample in samples]

    # Internals

    def _find(self, job_id: Optional[str]) -> PostJob | None:
        for job in self._jobs:
            if job.id == job_id:
                return job
        return None

    def _replaced(self, job: PostJob) -> list[PostJob]:
        return [job if current.id == job.id else current for current in self._jobs]

    def _commit(
        self,
        jobs: Optional[list[PostJob]] = None,
        logs: Optional[dict[str, list[JobLogEntry]]] = None,
    ) -> None:
        """Persist the next collections, then make them current.

        A failed save leaves memory as it was, matching the database.
        """
        jobs = self._jobs if jobs is None else jobs
        logs = self._logs if logs is None else logs
        self._persistence.save(
            {
                "jobs": [job.model_dump(mode="json", by_alias=True) for job in jobs],
                "logs": {
                    job_id: [entry.model_dump(mode="json", by_alias=True) for entry in entries]
                    for job_id, entries in logs.items()
                },
            }
        )
        self._jobs = jobs
        self._logs = logs

def _provided_fields(job: PostJob | dict[str, Any] | None) -> dict[str, Any]:
    if job is None:
        return {}
    if isinstance(job, PostJob):
        return job.model_dump(exclude_unset=True)
    return _from_wire(dict(job))


def _from_wire(values: dict[str, Any]) -> dict[str, Any]:
    """Map camelCase keys onto field names; other keys pass through."""
    aliases = {field.alias: name for name, field in PostJob.model_fields.items() if field.alias}
    return {aliases.get(key, key): value for key, value in values.items()}


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
