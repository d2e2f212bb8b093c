"""Publishing API client with retry/backoff and error normalization.

Every call reads the base URL and credential from the settings store, so
settings changes apply to the next request and never to one in flight.
Transient failures (rate limits, gateway errors, no response at all) are
retried sequentially with exponential backoff and jitter; everything else
is raised immediately as a normalized ApiError.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog
from pydantic import ValidationError

from autoposter.services.exceptions import ApiError, ApiNetworkError, InvalidResponseError
from autoposter.services.publisher.errors import normalize_error_response
from autoposter.services.publisher.log_stream import LogStream
from autoposter.services.publisher.schemas import (
    GeneratePostContentRequest,
    PublishPostRequest,
    PublishPostResponse,
)
from autoposter.stores.settings import SettingsStore

logger = structlog.get_logger(__name__)

RETRY_STATUSES = frozenset({429, 502, 503, 504})
MAX_RETRIES = 3
BASE_DELAY_SECONDS = 1.0
MAX_DELAY_SECONDS = 5.0
MAX_JITTER_SECONDS = 0.2

LOG_STREAM_PATH = "/jobs/logs"

Sleep = Callable[[float], Awaitable[Any]]
Jitter = Callable[[float, float], float]


def compute_backoff(attempt: int, jitter: Jitter = random.uniform) -> float:
    """Delay before retry number attempt + 1.

    Base delay doubles per attempt, plus up to MAX_JITTER_SECONDS of random
    jitter, capped at MAX_DELAY_SECONDS.
    """
    delay = BASE_DELAY_SECONDS * 2**attempt + jitter(0.0, MAX_JITTER_SECONDS)
    return min(delay, MAX_DELAY_SECONDS)


def build_url(base_url: str, path: str) -> str:
    """Join base URL and path with exactly one slash between them."""
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{base_url.rstrip('/')}{path}"


def parse_response(response: httpx.Response) -> Any:
    """Parsed JSON when the content type says so, raw text otherwise.

    A body labelled JSON that does not parse (empty or malformed) degrades to
    its raw text; per-endpoint checks then reject it as an invalid result.
    """
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            logger.warning(
                "api.response.malformed_json",
                status=response.status_code,
                content_type=content_type,
            )
    return response.text


class ApiClient:
    """Stateless request layer for the remote publishing service."""

    def __init__(
        self,
        settings_store: SettingsStore,
        default_base_url: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
        jitter: Jitter = random.uniform,
    ):
        """Initialize API client.

        Args:
            settings_store: Source of base URL and credential (read per call)
            default_base_url: Used when the stored base URL is blank
            timeout: Per-attempt transport timeout in seconds
            transport: Optional httpx transport (tests, mock upstream)
            sleep: Awaitable used between retries
            jitter: random.uniform-compatible jitter source
        """
        self.settings_store = settings_store
        self.default_base_url = default_base_url
        self.timeout = timeout
        self.transport = transport
        self._sleep = sleep
        self._jitter = jitter

    def base_url(self) -> str:
        return self.settings_store.settings.api_base_url or self.default_base_url

    def _headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            **self.settings_store.auth_headers(),
            **(extra or {}),
        }

    async def request(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Send a request, retrying transient failures.

        Args:
            path: Path under the configured base URL
            method: HTTP method
            body: JSON-serializable request body
            headers: Caller headers (override defaults)

        Returns:
            Parsed JSON or raw text of the successful response

        Raises:
            ApiNetworkError: No response after all attempts
            ApiError: Non-retryable status, or retryable status after all attempts
        """
        url = build_url(self.base_url(), path)
        request_headers = self._headers(headers)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for attempt in range(MAX_RETRIES + 1):
                try:
                    response = await client.request(
                        method, url, json=body, headers=request_headers
                    )
                except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
                    # Misconfigured base URL will not improve on retry
                    logger.error("api.request.invalid_url", url=url, error=str(e))
                    raise ApiError(f"Invalid API URL '{url}': {e}", details=str(e)) from e
                except httpx.TransportError as e:
                    error = ApiNetworkError(
                        f"Network error: {str(e) or type(e).__name__}", details=type(e).__name__
                    )
                    if attempt == MAX_RETRIES:
                        logger.error(
                            "api.request.exhausted",
                            method=method,
                            url=url,
                            attempts=attempt + 1,
                            error_type=type(e).__name__,
                        )
                        raise error from e
                    await self._backoff(attempt, method, url, error)
                    continue

                if response.is_success:
                    logger.debug(
                        "api.request.succeeded",
                        method=method,
                        url=url,
                        status=response.status_code,
                        attempts=attempt + 1,
                    )
                    return parse_response(response)

                error = normalize_error_response(response)
                if response.status_code not in RETRY_STATUSES or attempt == MAX_RETRIES:
                    logger.error(
                        "api.request.failed",
                        method=method,
                        url=url,
                        status=error.status,
                        request_id=error.request_id,
                        error_message=error.message,
                        attempts=attempt + 1,
                    )
                    raise error
                await self._backoff(attempt, method, url, error)

        # Loop always returns or raises
        raise ApiError("Unknown error")

    async def _backoff(self, attempt: int, method: str, url: str, error: ApiError) -> None:
        delay = compute_backoff(attempt, self._jitter)
        logger.warning(
            "api.request.retry",
            method=method,
            url=url,
            status=error.status,
            error_message=error.message,
            attempt=attempt + 1,
            retry_in_seconds=round(delay, 3),
        )
        await self._sleep(delay)

    async def health(self) -> str:
        """Liveness probe (GET /)."""
        result = await self.request("/")
        return result if isinstance(result, str) else str(result)

    async def generate_post_content(self, description: str, skills: list[str]) -> str:
        """Ask the service to write post content.

        Returns:
            Generated content

        Raises:
            InvalidResponseError: If the service answered with empty content
            ApiError: Request failure (see request())
        """
        payload = GeneratePostContentRequest(description=description, skills=skills)
        result = await self.request("/makePostContent", method="POST", body=payload.model_dump())

        content = result
        if isinstance(result, dict):
            content = result.get("content") or result.get("text")
        if not isinstance(content, str) or not content.strip():
            raise InvalidResponseError(
                "Content generation returned an empty result", status=200, details=result
            )
        return content

    async def publish_post(self, text: str) -> PublishPostResponse:
        """Publish text to the channel.

        Raises:
            InvalidResponseError: If the service answered with a non-object body
            ApiError: Request failure (see request())
        """
        payload = PublishPostRequest(text=text)
        result = await self.request("/postPost", method="POST", body=payload.model_dump())
        if not isinstance(result, dict):
            raise InvalidResponseError(
                "Publish returned an unexpected response", status=200, details=result
            )
        try:
            return PublishPostResponse.model_validate(result)
        except ValidationError as e:
            raise InvalidResponseError(
                "Publish returned an unexpected response", status=200, details=result
            ) from e

    def open_log_stream(self, path: str = LOG_STREAM_PATH) -> LogStream:
        """Prepare the live job-log stream; enter it with ``async with``.

        The caller owns closing the stream.
        """
        headers = {"Accept": "text/event-stream", **self.settings_store.auth_headers()}
        return LogStream(
            build_url(self.base_url(), path),
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )
