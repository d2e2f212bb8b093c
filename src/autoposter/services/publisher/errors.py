"""Normalization of failing publishing API responses."""

from typing import Any

import httpx

from autoposter.services.exceptions import ApiError


def normalize_error_response(response: httpx.Response) -> ApiError:
    """Build a normalized ApiError from a failing response.

    Message priority: error.message, error (string), message, a bare JSON
    string, the raw text body, then the HTTP reason phrase. A body that is
    not JSON falls back to text; a body that cannot be read at all yields a
    message derived from the read error.

    Args:
        response: Failing HTTP response (body already read)

    Returns:
        ApiError carrying message, status, request id and raw details
    """
    request_id = response.headers.get("x-request-id")
    message = response.reason_phrase or "Request failed"
    details: Any = None

    try:
        body = response.json()
    except (ValueError, httpx.StreamError):
        try:
            text = response.text
        except (httpx.StreamError, httpx.HTTPError) as e:
            message = f"Unable to read error response: {e}"
            details = str(e)
        else:
            if text:
                message = text
                details = text
    else:
        details = body
        if isinstance(body, str):
            if body:
                message = body
        elif isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and isinstance(error.get("message"), str):
                message = error["message"]
            elif isinstance(error, str) and error:
                message = error
            elif isinstance(body.get("message"), str):
                message = body["message"]

    return ApiError(message, status=response.status_code, request_id=request_id, details=details)
