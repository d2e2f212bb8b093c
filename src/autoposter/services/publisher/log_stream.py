"""Live job-log stream over server-sent events.

GET /jobs/logs is a persistent one-way event stream. Each message's data is
a JSON-encoded log event. Malformed messages are logged and dropped; they
never end the stream.
"""

from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

import httpx
import structlog
from pydantic import ValidationError

from autoposter.services.exceptions import ApiError, ApiNetworkError
from autoposter.services.publisher.errors import normalize_error_response
from autoposter.services.publisher.schemas import LogEvent

logger = structlog.get_logger(__name__)


@dataclass
class ServerSentEvent:
    """One dispatched server-sent event.

    Attributes:
        data: Data lines joined with newlines
        event: Event type ("message" when the server names none)
        id: Last event id seen on the stream
        retry: Reconnection delay requested by the server, in milliseconds
    """

    data: str
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None


@dataclass
class _EventBuffer:
    data: list[str] = field(default_factory=list)
    event: str = ""
    last_id: Optional[str] = None
    retry: Optional[int] = None

    def dispatch(self) -> Optional[ServerSentEvent]:
        if not self.data:
            self.event = ""
            return None
        message = ServerSentEvent(
            data="\n".join(self.data),
            event=self.event or "message",
            id=self.last_id,
            retry=self.retry,
        )
        self.data = []
        self.event = ""
        return message


async def iter_sse(lines: AsyncIterator[str]) -> AsyncIterator[ServerSentEvent]:
    """Parse an event-stream line iterator into events.

    Follows the text/event-stream format: ``field: value`` lines, a blank
    line dispatches the pending event, lines starting with ``:`` are comments.
    """
    buffer = _EventBuffer()
    async for raw_line in lines:
        line = raw_line.rstrip("\r\n")
        if not line:
            message = buffer.dispatch()
            if message is not None:
                yield message
            continue
        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "data":
            buffer.data.append(value)
        elif name == "event":
            buffer.event = value
        elif name == "id":
            if "\0" not in value:
                buffer.last_id = value
        elif name == "retry":
            if value.isdigit():
                buffer.retry = int(value)

    # Incomplete trailing event is discarded, as a browser EventSource does


class LogStream:
    """One open connection to the job-log event stream.

    Use as async context manager; the connection is closed on exit.

    Example:
        async with api_client.open_log_stream() as stream:
            async for event in stream:
                job_store.append_log(event.job_id, event.level, event.message, event.timestamp)
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.headers = headers
        # Connect timeout applies; reads wait indefinitely for the next event
        self.timeout = httpx.Timeout(timeout, read=None)
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._response: Optional[httpx.Response] = None
        self.closed = False

    async def __aenter__(self) -> "LogStream":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False

    async def open(self) -> None:
        """Connect to the stream.

        Raises:
            ApiNetworkError: If no response was received
            ApiError: If the server rejected the stream (non-2xx)
        """
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport)
        request = self._client.build_request("GET", self.url, headers=self.headers)
        try:
            self._response = await self._client.send(request, stream=True)
        except httpx.TransportError as e:
            await self.aclose()
            raise ApiNetworkError(
                f"Failed to open log stream: {str(e) or type(e).__name__}",
                details=type(e).__name__,
            ) from e

        if not self._response.is_success:
            await self._response.aread()
            error = normalize_error_response(self._response)
            await self.aclose()
            raise error

        logger.info("log_stream.opened", url=self.url)

    def __aiter__(self) -> AsyncIterator[LogEvent]:
        return self.events()

    async def events(self) -> AsyncIterator[LogEvent]:
        """Yield parsed log events until the server ends the stream."""
        if self._response is None:
            raise ApiError("Log stream is not open")

        async for message in iter_sse(self._response.aiter_lines()):
            if message.event != "message":
                continue
            try:
                yield LogEvent.model_validate_json(message.data)
            except ValidationError as e:
                logger.warning(
                    "log_stream.message.malformed",
                    data=message.data[:200],
                    error=str(e),
                )

    async def aclose(self) -> None:
        """Close the connection (idempotent)."""
        if self.closed:
            return
        self.closed = True
        if self._response is not None:
            await self._response.aclose()
        if self._client is not None:
            await self._client.aclose()
        logger.debug("log_stream.closed", url=self.url)
