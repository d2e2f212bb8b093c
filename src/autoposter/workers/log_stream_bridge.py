"""Log stream bridge - feeds live job-log events into the job store.

The bridge's lifetime is a mount scope (``async with bridge:``). While
mounted and while ``enable_live_logs`` is on, it keeps exactly one stream
task running; turning the flag off or leaving the scope cancels the task,
which closes the connection.

A stream that ends or fails is re-opened with exponential backoff
(RECONNECT_INITIAL_DELAY doubling up to RECONNECT_MAX_DELAY, reset after a
successful connection) for as long as the bridge is mounted and enabled.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog

from autoposter.models.settings import UserSettings
from autoposter.services.exceptions import ApiError
from autoposter.services.publisher.client import ApiClient
from autoposter.services.publisher.schemas import LogEvent
from autoposter.stores.jobs import JobStore
from autoposter.stores.settings import SettingsStore

logger = structlog.get_logger(__name__)

RECONNECT_INITIAL_DELAY = 1.0
RECONNECT_MAX_DELAY = 30.0


class LogStreamBridge:
    """Scoped owner of the live log stream connection."""

    def __init__(
        self,
        api_client: ApiClient,
        job_store: JobStore,
        settings_store: SettingsStore,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.api_client = api_client
        self.job_store = job_store
        self.settings_store = settings_store
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._stopping: set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.mounted = False
        self.connected = False
        self.received = 0

    async def __aenter__(self) -> "LogStreamBridge":
        self.mount()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.unmount()
        return False

    @property
    def active(self) -> bool:
        """True while a stream task is running."""
        return self._task is not None and not self._task.done()

    def mount(self) -> None:
        """Start following the live-log flag (requires a running event loop)."""
        if self.mounted:
            return
        self.mounted = True
        self._unsubscribe = self.settings_store.subscribe(self._on_settings_change)
        self._sync(self.settings_store.settings.enable_live_logs)
        logger.debug("log_stream.bridge.mounted", active=self.active)

    async def unmount(self) -> None:
        """Stop following settings and close any open stream."""
        self.mounted = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cancel()
        await self._drain()
        logger.debug("log_stream.bridge.unmounted", received=self.received)

    async def wait_closed(self) -> None:
        """Wait until every cancelled stream task has finished closing."""
        await self._drain()

    def _on_settings_change(self, current: UserSettings, previous: UserSettings) -> None:
        if current.enable_live_logs != previous.enable_live_logs:
            self._sync(current.enable_live_logs)

    def _sync(self, enabled: bool) -> None:
        if self.mounted and enabled:
            if not self.active:
                self._task = asyncio.get_running_loop().create_task(self._run())
                logger.info("log_stream.bridge.started")
        else:
            self._cancel()

    def _cancel(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        if not task.done():
            task.cancel()
            self._stopping.add(task)
            task.add_done_callback(self._stopping.discard)
            logger.info("log_stream.bridge.stopped")

    async def _drain(self) -> None:
        if self._stopping:
            await asyncio.gather(*list(self._stopping), return_exceptions=True)

    async def _run(self) -> None:
        # A stream cancelled earlier in this tick closes before a new one opens
        await self._drain()
        delay = RECONNECT_INITIAL_DELAY
        while True:
            try:
                async with self.api_client.open_log_stream() as stream:
                    self.connected = True
                    delay = RECONNECT_INITIAL_DELAY
                    async for event in stream:
                        self._ingest(event)
                logger.info("log_stream.ended", retry_in_seconds=delay)

            except asyncio.CancelledError:
                raise

            except ApiError as e:
                logger.warning(
                    "log_stream.disconnected",
                    error_message=e.message,
                    status=e.status,
                    retry_in_seconds=delay,
                )

            except httpx.HTTPError as e:
                logger.warning(
                    "log_stream.disconnected",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    retry_in_seconds=delay,
                )

            except Exception as e:
                # Unexpected error while ingesting - log and reconnect with backoff
                logger.error(
                    "log_stream.bridge.error",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    exc_info=True,
                )

            finally:
                self.connected = False

            await self._sleep(delay)
            delay = min(delay * 2, RECONNECT_MAX_DELAY)

    def _ingest(self, event: LogEvent) -> None:
        self.job_store.append_log(event.job_id, event.level, event.message, event.timestamp)
        self.received += 1
