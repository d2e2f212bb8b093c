"""Wire schemas for the remote publishing API."""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from autoposter.models.job import LogLevel


class GeneratePostContentRequest(BaseModel):
    """Body of POST /makePostContent."""

    description: str
    skills: list[str] = Field(default_factory=list)


class PublishPostRequest(BaseModel):
    """Body of POST /postPost."""

    text: str


class PublishPostResponse(BaseModel):
    """Successful POST /postPost result; any extra fields are kept."""

    model_config = ConfigDict(extra="allow")

    id: Optional[Union[str, int]] = None


class LogEvent(BaseModel):
    """One message of the GET /jobs/logs event stream."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str = Field(min_length=1)
    level: LogLevel = LogLevel.INFO
    message: str
    timestamp: str
