"""PostJob entity - Social post work item with lifecycle status tracking."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_TITLE = "Untitled Post"
DEFAULT_CHANNEL = "linkedin"


def new_id() -> str:
    """Generate an opaque client-side identifier."""
    return uuid4().hex


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string (UTC)."""
    return datetime.now(timezone.utc).isoformat()


class JobStatus(str, Enum):
    """PostJob lifecycle status."""

    DRAFT = "draft"
    QUEUED = "queued"
    SCHEDULED = "scheduled"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    FAILED = "failed"


class JobEvent(str, Enum):
    """Events that drive a job from one status to the next."""

    SAVE_DRAFT = "save_draft"
    ENQUEUE = "enqueue"
    SCHEDULE = "schedule"
    START_PUBLISH = "start_publish"
    SUCCEED = "succeed"
    FAIL = "fail"


class LogLevel(str, Enum):
    """Severity of a job log entry."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid job state transition."""

    def __init__(self, status: JobStatus, event: JobEvent):
        self.status = status
        self.event = event
        super().__init__(
            f"Cannot apply '{event.value}' to a job in {status.value} state "
            f"(would move to {EVENT_TARGETS[event].value})."
        )


# Status each event moves a job into
EVENT_TARGETS: dict[JobEvent, JobStatus] = {
    JobEvent.SAVE_DRAFT: JobStatus.DRAFT,
    JobEvent.ENQUEUE: JobStatus.QUEUED,
    JobEvent.SCHEDULE: JobStatus.SCHEDULED,
    JobEvent.START_PUBLISH: JobStatus.PUBLISHING,
    JobEvent.SUCCEED: JobStatus.PUBLISHED,
    JobEvent.FAIL: JobStatus.FAILED,
}

STATUS_EVENTS: dict[JobStatus, JobEvent] = {target: event for event, target in EVENT_TARGETS.items()}

_EDITABLE = frozenset(
    {
        JobEvent.SAVE_DRAFT,
        JobEvent.ENQUEUE,
        JobEvent.SCHEDULE,
        JobEvent.START_PUBLISH,
        JobEvent.FAIL,
    }
)

# Legal events per status. Enqueue (manual retry) is accepted everywhere.
TRANSITIONS: dict[JobStatus, frozenset[JobEvent]] = {
    JobStatus.DRAFT: _EDITABLE,
    JobStatus.QUEUED: _EDITABLE,
    JobStatus.SCHEDULED: _EDITABLE,
    JobStatus.PUBLISHING: frozenset({JobEvent.ENQUEUE, JobEvent.SUCCEED, JobEvent.FAIL}),
    JobStatus.PUBLISHED: frozenset({JobEvent.ENQUEUE}),
    JobStatus.FAILED: _EDITABLE - {JobEvent.FAIL},
}


def next_status(status: JobStatus, event: JobEvent) -> JobStatus:
    """Apply an event to a status.

    Args:
        status: Current job status
        event: Event to apply

    Returns:
        Status the job moves into

    Raises:
        InvalidStateTransition: If the event is not legal from the current status
    """
    if event not in TRANSITIONS[status]:
        raise InvalidStateTransition(status, event)
    return EVENT_TARGETS[event]


def transition_to(status: JobStatus, target: JobStatus) -> JobStatus:
    """Move from status to target through the event that produces target."""
    return next_status(status, STATUS_EVENTS[target])


class _WireModel(BaseModel):
    """camelCase on the wire and in persisted documents, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
        extra="ignore",
    )


class PostJob(_WireModel):
    """PostJob tracks a single social post from draft to published."""

    id: str = Field(default_factory=new_id)
    title: str = DEFAULT_TITLE
    channel: str = DEFAULT_CHANNEL
    tags: list[str] = Field(default_factory=list)
    content: str = ""
    prompt: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    scheduled_for: Optional[str] = None
    status: JobStatus = JobStatus.DRAFT
    attempts: int = Field(default=0, ge=0)
    error_message: Optional[str] = None


class JobLogEntry(_WireModel):
    """Append-only event attached to exactly one job."""

    id: str = Field(default_factory=new_id)
    job_id: str
    timestamp: str = Field(default_factory=utc_now_iso)
    level: LogLevel = LogLevel.INFO
    message: str
