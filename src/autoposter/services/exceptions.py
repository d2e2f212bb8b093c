"""Service error hierarchy for the publishing API client and composer.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- TransientError: Retryable errors (network, rate limits, gateway failures)
- PermanentError: Non-retryable errors (authentication, validation)
- ApiError: Normalized failure of a publishing API call
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class TransientError(ServiceError):
    """Transient error that may succeed on retry.

    Examples:
    - Network timeouts and connection failures
    - Rate limit exceeded (429)
    - Bad gateway / service unavailable / gateway timeout (502, 503, 504)
    """

    pass


class PermanentError(ServiceError):
    """Permanent error that will not succeed on retry.

    Examples:
    - Authentication failures (401, 403)
    - Invalid request parameters (400)
    - Publishing a job without content
    """

    pass


class ApiError(ServiceError):
    """Normalized error produced from any failing publishing API call.

    Attributes:
        message: Human-readable message extracted from the error body
        status: HTTP status code (None when no response was received)
        request_id: Correlation id from the x-request-id response header
        details: Raw body (or read error) kept for diagnostics
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.request_id = request_id
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serializable view of the normalized error."""
        return {
            "message": self.message,
            "status": self.status,
            "requestId": self.request_id,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, status={self.status!r}, "
            f"request_id={self.request_id!r})"
        )


class ApiNetworkError(ApiError, TransientError):
    """No response received (connection failure or transport timeout)."""

    pass


class InvalidResponseError(ApiError, PermanentError):
    """Successful HTTP response carrying an empty or unusable result."""

    pass


class ContentValidationError(PermanentError):
    """Local business rule rejected an operation before any network call."""

    pass


class JobNotFoundError(PermanentError):
    """Operation targeted a job id the store does not hold."""

    pass
