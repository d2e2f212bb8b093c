"""FastAPI application factory for the mock publishing API.

Stands in for the remote publishing service during development and tests.
Every response carries an ``x-request-id`` header and errors use the
``{"error": {"message": ...}}`` envelope. A failure plan (list of status
codes) makes the next requests fail in order, to exercise client retries.
"""

from typing import Optional
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from autoposter.api.routes import publisher
from autoposter.core.config import AppConfig

logger = structlog.get_logger(__name__)


def _error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse({"error": {"message": message}}, status_code=status_code, headers=headers)


def create_app(
    config: Optional[AppConfig] = None,
    log_events: Optional[list[dict]] = None,
    failure_plan: Optional[list[int]] = None,
) -> FastAPI:
    """Create and configure the mock FastAPI application.

    Args:
        config: Configuration (bearer token requirement); loaded from env if omitted
        log_events: Events streamed by GET /jobs/logs
        failure_plan: Status codes returned, in order, before normal handling resumes

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="autoposter mock publishing API",
        description="Local stand-in for the remote post generation and publishing service",
        version="0.1.0",
    )
    app.state.config = config or AppConfig()  # type: ignore[call-arg]
    app.state.log_events = list(log_events or [])
    app.state.failure_plan = list(failure_plan or [])

    @app.middleware("http")
    async def request_id_and_failures(request: Request, call_next):
        request_id = uuid4().hex
        if app.state.failure_plan:
            status_code = app.state.failure_plan.pop(0)
            logger.info("mock.injected_failure", path=request.url.path, status=status_code)
            response = _error_response(status_code, f"Injected failure ({status_code})")
        else:
            response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"Invalid payload: {location} {first.get('msg', '')}".strip()
        return _error_response(400, message)

    app.include_router(publisher.router)

    return app


# Create app instance for uvicorn
app = create_app()
