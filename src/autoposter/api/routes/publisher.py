"""Mock publishing API endpoints.

Implements the wire contract the client talks to:
- GET / - Liveness probe (plain text)
- POST /makePostContent - Generated content as plain text
- POST /postPost - Publish result with an id
- GET /jobs/logs - Server-sent events carrying job log entries
"""

import json
from typing import AsyncIterator
from uuid import uuid4

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, StreamingResponse

from autoposter.api.dependencies import require_bearer
from autoposter.services.publisher.schemas import (
    GeneratePostContentRequest,
    PublishPostRequest,
)

logger = structlog.get_logger(__name__)
router = APIRouter(dependencies=[Depends(require_bearer)], tags=["publisher"])


@router.get("/", response_class=PlainTextResponse)
async def health() -> str:
    return "autoposter mock publishing API"


@router.post("/makePostContent", response_class=PlainTextResponse)
async def make_post_content(payload: GeneratePostContentRequest) -> str:
    """Return canned content built from the description."""
    logger.info("mock.generate", skills=payload.skills)
    return f"Generated post for: {payload.description}"


@router.post("/postPost")
async def post_post(payload: PublishPostRequest) -> dict:
    """Accept a post and hand back a fresh id.

    Raises:
        HTTPException: 400 if the text is empty
    """
    if not payload.text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Post text is empty")
    post_id = f"mock-{uuid4().hex[:12]}"
    logger.info("mock.published", post_id=post_id)
    return {"id": post_id, "text": payload.text}


@router.get("/jobs/logs")
async def job_logs(request: Request) -> StreamingResponse:
    """Stream the configured log events, then end the stream."""
    events: list[dict] = list(request.app.state.log_events)

    async def event_source() -> AsyncIterator[str]:
        yield ": connected\n\n"
        for event in events:
            yield f"data: {json.dumps(event)}\n\n"

    return StreamingResponse(
        event_source(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
