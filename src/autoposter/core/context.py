"""Application context - explicitly constructed services with init/teardown.

Stores and clients are built once per process (or per test) and passed to
whatever needs them; nothing is looked up from module globals.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from sqlalchemy import Engine

from autoposter.core.config import AppConfig
from autoposter.core.database import create_db_engine, setup_db_session
from autoposter.services.composer import ComposerService
from autoposter.services.publisher.client import ApiClient
from autoposter.stores.jobs import JobStore
from autoposter.stores.settings import SettingsStore, default_settings
from autoposter.uow import create_uow_factory
from autoposter.workers.log_stream_bridge import LogStreamBridge

logger = structlog.get_logger(__name__)


@dataclass
class AppContext:
    """Container for the process-wide services."""

    config: AppConfig
    settings_store: SettingsStore
    job_store: JobStore
    api_client: ApiClient
    composer: ComposerService
    engine: Engine

    def log_stream_bridge(self) -> LogStreamBridge:
        """New bridge bound to this context; enter it with ``async with``."""
        return LogStreamBridge(self.api_client, self.job_store, self.settings_store)

    def close(self) -> None:
        """Release database connections."""
        self.engine.dispose()
        logger.debug("context.closed")


def build_context(
    config: AppConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AppContext:
    """Construct and load every service for config.

    Args:
        config: Process configuration
        transport: Optional httpx transport shared by all API calls

    Returns:
        Ready-to-use AppContext with persisted state restored
    """
    engine = create_db_engine(config.database_url)
    session_factory = setup_db_session(engine)
    uow_factory = create_uow_factory(session_factory)

    settings_store = SettingsStore(uow_factory, default_settings(config))
    settings_store.load()

    job_store = JobStore(uow_factory)
    job_store.load()

    api_client = ApiClient(
        settings_store,
        default_base_url=config.api_base_url,
        timeout=config.request_timeout_seconds,
        transport=transport,
    )
    composer = ComposerService(job_store, api_client)

    logger.debug("context.ready", database_url=config.database_url)
    return AppContext(
        config=config,
        settings_store=settings_store,
        job_store=job_store,
        api_client=api_client,
        composer=composer,
        engine=engine,
    )
