"""Composer service - post creation flows over the job store and API client.

Every network call made here is followed by a status transition on the job
that triggered it, success or failure, so the local record never stays in
``publishing`` after the call returns.
"""

from dataclasses import dataclass
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field, field_validator

from autoposter.models.job import (
    DEFAULT_CHANNEL,
    DEFAULT_TITLE,
    JobStatus,
    LogLevel,
    PostJob,
    utc_now_iso,
)
from autoposter.services.exceptions import (
    ApiError,
    ContentValidationError,
    JobNotFoundError,
    ServiceError,
)
from autoposter.services.publisher.client import ApiClient
from autoposter.stores.jobs import JobStore

logger = structlog.get_logger(__name__)

NO_CONTENT_MESSAGE = "No content provided"
MANUAL_RETRY_MESSAGE = "Job manually retried from console"


def split_tags(value: Any) -> list[str]:
    """Normalize comma separated text or a sequence into trimmed, non-empty tags."""
    if value is None:
        return []
    parts = value.split(",") if isinstance(value, str) else list(value)
    return [str(part).strip() for part in parts if str(part).strip()]


class PostDraft(BaseModel):
    """Composer input for a new post."""

    title: str = DEFAULT_TITLE
    tags: list[str] = Field(default_factory=list)
    channel: str = DEFAULT_CHANNEL
    prompt: Optional[str] = None
    content: str = ""
    scheduled_for: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> list[str]:
        return split_tags(v)

    def job_fields(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "tags": self.tags,
            "channel": self.channel,
            "prompt": self.prompt,
            "content": self.content,
        }


@dataclass
class PublishOutcome:
    """Result of a publish attempt.

    Attributes:
        job: Job snapshot after the final status transition
        remote_id: Id assigned by the publishing service, if any
        error: Normalized API error, or the local validation error, when the publish failed
    """

    job: PostJob
    remote_id: Optional[str] = None
    error: Optional[ServiceError] = None

    @property
    def published(self) -> bool:
        return self.job.status == JobStatus.PUBLISHED


class ComposerService:
    """Save, schedule, publish and retry post jobs."""

    def __init__(self, job_store: JobStore, api_client: ApiClient):
        self.job_store = job_store
        self.api_client = api_client

    async def generate(self, prompt: str, tags: Any = None) -> str:
        """Generate post content from a brief.

        Raises:
            ContentValidationError: If the brief is empty
            ApiError: If generation failed
        """
        if not prompt or not prompt.strip():
            raise ContentValidationError("Generation brief cannot be empty")
        content = await self.api_client.generate_post_content(
            description=prompt, skills=split_tags(tags)
        )
        logger.info("composer.generated", length=len(content))
        return content

    def save_draft(self, draft: PostDraft) -> PostJob:
        """Store the draft as a new job in draft status."""
        return self.job_store.upsert(status=JobStatus.DRAFT, **draft.job_fields())

    def schedule(self, draft: PostDraft) -> PostJob:
        """Store the draft as a scheduled job; nothing is sent yet."""
        job = self.job_store.upsert(
            status=JobStatus.SCHEDULED,
            scheduled_for=draft.scheduled_for or utc_now_iso(),
            **draft.job_fields(),
        )
        logger.info("composer.scheduled", job_id=job.id, scheduled_for=job.scheduled_for)
        return job

    async def publish(self, draft: PostDraft) -> PublishOutcome:
        """Create a job in publishing status and publish it immediately."""
        job = self.job_store.upsert(status=JobStatus.PUBLISHING, **draft.job_fields())
        return await self._deliver(job)

    async def publish_job(self, job_id: str) -> PublishOutcome:
        """Publish an existing job (queued, scheduled, draft or failed).

        Raises:
            JobNotFoundError: If the job does not exist
            InvalidStateTransition: If the job cannot move to publishing
        """
        job = self.job_store.update_status(job_id, JobStatus.PUBLISHING)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return await self._deliver(job)

    def retry_job(self, job_id: str) -> PostJob | None:
        """Move a job back to the queue and annotate its log.

        Returns:
            Updated job, or None if the job does not exist
        """
        job = self.job_store.update_status(job_id, JobStatus.QUEUED)
        if job is None:
            return None
        self.job_store.append_log(job_id, LogLevel.INFO, MANUAL_RETRY_MESSAGE)
        logger.info("composer.retry_triggered", job_id=job_id, title=job.title)
        return job

    async def _deliver(self, job: PostJob) -> PublishOutcome:
        if not job.content.strip():
            failed = self.job_store.update_status(job.id, JobStatus.FAILED, NO_CONTENT_MESSAGE)
            logger.warning("composer.publish.rejected", job_id=job.id, reason=NO_CONTENT_MESSAGE)
            return PublishOutcome(
                job=failed or job, error=ContentValidationError(NO_CONTENT_MESSAGE)
            )

        try:
            response = await self.api_client.publish_post(job.content)
        except ApiError as e:
            failed = self.job_store.update_status(job.id, JobStatus.FAILED, e.message)
            logger.error(
                "composer.publish.failed",
                job_id=job.id,
                status=e.status,
                request_id=e.request_id,
                error_message=e.message,
            )
            return PublishOutcome(job=failed or job, error=e)
        except Exception as e:
            # Unexpected error - record the failure before propagating
            self.job_store.update_status(job.id, JobStatus.FAILED, str(e) or type(e).__name__)
            raise

        published = self.job_store.update_status(job.id, JobStatus.PUBLISHED)
        remote_id = None if response.id is None else str(response.id)
        logger.info("composer.published", job_id=job.id, remote_id=remote_id)
        return PublishOutcome(job=published or job, remote_id=remote_id)
