"""Application configuration using Pydantic BaseSettings."""

import logging

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Process configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="AUTOPOSTER_LOG_LEVEL")

    # Local persistence (jobs and settings documents)
    database_url: str = Field(default="sqlite:///autoposter.db", alias="AUTOPOSTER_DATABASE_URL")

    # Publishing API connection defaults (seed the settings store)
    api_base_url: str = Field(default="http://localhost:8080", alias="AUTOPOSTER_API_BASE_URL")
    api_token: str = Field(default="", alias="AUTOPOSTER_API_TOKEN")
    timezone: str = Field(default="UTC", alias="AUTOPOSTER_TIMEZONE")
    request_timeout_seconds: float = Field(default=30.0, alias="AUTOPOSTER_REQUEST_TIMEOUT_SECONDS")

    # Mock upstream server
    mock_host: str = Field(default="127.0.0.1", alias="AUTOPOSTER_MOCK_HOST")
    mock_port: int = Field(default=8080, alias="AUTOPOSTER_MOCK_PORT")
    mock_token: str = Field(default="", alias="AUTOPOSTER_MOCK_TOKEN")


def configure_logging(config: AppConfig) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability
    """
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if config.app_env == "production":
        renderer = structlog.processors.JSONRenderer()
        processors = [
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ]
    else:
        processors = [
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
