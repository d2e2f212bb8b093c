"""PersistedDocument entity - Versioned JSON blob for client-side state."""

from datetime import datetime, timezone

from pydantic import field_validator
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PersistedDocument(SQLModel, table=True):
    """One row per persisted document (jobs, settings), written in full on every change."""

    __tablename__ = "documents"  # type: ignore[assignment]

    name: str = Field(primary_key=True, max_length=64)
    version: int = Field(default=1, ge=1)
    payload: dict = Field(sa_column=Column(JSON, nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name is alphanumeric + underscores/dashes only."""
        if not v.replace("_", "").replace("-", "").isalnum():
            raise ValueError("Document name must be alphanumeric with underscores or dashes only")
        return v
