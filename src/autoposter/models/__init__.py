"""Domain models and SQLModel database entities.

The document table is imported here to ensure it is registered with SQLModel
metadata before tables are created.
"""

from autoposter.models.document import PersistedDocument
from autoposter.models.job import (
    InvalidStateTransition,
    JobEvent,
    JobLogEntry,
    JobStatus,
    LogLevel,
    PostJob,
    next_status,
)
from autoposter.models.settings import UserSettings

__all__ = [
    "PersistedDocument",
    "PostJob",
    "JobLogEntry",
    "JobStatus",
    "JobEvent",
    "LogLevel",
    "InvalidStateTransition",
    "next_status",
    "UserSettings",
]
