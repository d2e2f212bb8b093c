"""pytest fixtures for autoposter tests.

Provides:
- clean_env: Autouse fixture removing AUTOPOSTER_* variables from the environment
- config: AppConfig pointing at an in-memory database and a fake upstream
- engine / uow_factory: Fresh in-memory SQLite database per test
- settings_store / job_store: Loaded stores over that database
- upstream: Scripted httpx.MockTransport standing in for the publishing API
- sleeps / api_client: ApiClient whose backoff waits are recorded, not slept
"""

import os
from typing import Callable, Union

import httpx
import pytest

from autoposter.core.config import AppConfig
from autoposter.core.database import create_db_engine, setup_db_session
from autoposter.services.publisher.client import ApiClient
from autoposter.stores.jobs import JobStore
from autoposter.stores.settings import SettingsStore, default_settings
from autoposter.uow import create_uow_factory

API_BASE_URL = "https://api.test"

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeUpstream:
    """Scripted publishing API.

    Replies are consumed in order; once the script runs out every request
    gets a plain 200 "ok". A reply may be a response, an exception to raise
    (e.g. httpx.ConnectError) or a callable taking the request.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.replies: list[Reply] = []

    def queue(self, *replies: Reply) -> None:
        self.replies.extend(replies)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.replies:
            return httpx.Response(200, text="ok")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def sse_response(*events: str, status_code: int = 200) -> httpx.Response:
    """Event-stream response whose body is the given raw SSE blocks."""
    return httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream"},
        content="".join(events).encode(),
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host environment variables out of AppConfig.

    Also enforces TZ=UTC so timestamp ordering is reproducible.
    """
    for key in list(os.environ):
        if key.startswith("AUTOPOSTER_") or key == "APP_ENV":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("TZ", "UTC")


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        APP_ENV="test",
        AUTOPOSTER_DATABASE_URL="sqlite://",
        AUTOPOSTER_API_BASE_URL=API_BASE_URL,
        AUTOPOSTER_REQUEST_TIMEOUT_SECONDS=5,
    )


@pytest.fixture
def engine(config):
    """Provide a fresh in-memory database with tables created."""
    engine = create_db_engine(config.database_url)
    yield engine
    engine.dispose()


@pytest.fixture
def uow_factory(engine):
    """Provide function-scoped UnitOfWork factory."""
    return create_uow_factory(setup_db_session(engine))


@pytest.fixture
def settings_store(uow_factory, config) -> SettingsStore:
    store = SettingsStore(uow_factory, default_settings(config))
    store.load()
    return store


@pytest.fixture
def job_store(uow_factory) -> JobStore:
    store = JobStore(uow_factory)
    store.load()
    return store


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def sleeps() -> list[float]:
    """Backoff delays requested by the API client, in order."""
    return []


@pytest.fixture
def api_client(settings_store, config, upstream, sleeps) -> ApiClient:
    """ApiClient against the fake upstream with a fixed 0.1s jitter."""

    async def record_sleep(delay: float) -> None:
        sleeps.append(delay)

    return ApiClient(
        settings_store,
        default_base_url=config.api_base_url,
        timeout=config.request_timeout_seconds,
        transport=upstream.transport(),
        sleep=record_sleep,
        jitter=lambda low, high: 0.1,
    )
