"""FastAPI dependencies for the mock publishing API."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from autoposter.core.config import AppConfig


def get_config(request: Request) -> AppConfig:
    """Configuration the mock app was created with."""
    return request.app.state.config


async def require_bearer(
    authorization: Annotated[str | None, Header()] = None,
    config: AppConfig = Depends(get_config),
) -> None:
    """Reject requests without the configured bearer token.

    Disabled when AUTOPOSTER_MOCK_TOKEN is empty.

    Raises:
        HTTPException: 401 Unauthorized if the token is missing or wrong
    """
    if not config.mock_token:
        return
    if authorization != f"Bearer {config.mock_token}":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid bearer token",
        )
