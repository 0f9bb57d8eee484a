"""Classification of non-2xx API responses.

The remote API reports failures as a JSON document::

    {"error": "RecordInvalid", "description": "Record validation errors",
     "details": {"email": [{"description": "Email is already taken"}]}}

:func:`parse_api_error` decodes that shape strictly into an
:class:`~zdcli.exceptions.APIError`. When the body is not such a document
(HTML error pages, empty bodies, plain strings) the error is synthesised
from :data:`STATUS_MESSAGES` instead, so nothing untyped leaves this module.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import BaseModel, ValidationError, field_validator

from zdcli.exceptions import APIError

STATUS_MESSAGES: dict[int, str] = {
    400: "Bad Request",
    401: "Authentication Failed",
    403: "Access Denied",
    404: "Resource Not Found",
    422: "Invalid Input",
    429: "Rate Limit Exceeded",
    500: "Server Error",
    503: "Service Unavailable",
}

_STATUS_DESCRIPTIONS: dict[int, str] = {
    400: "The request was malformed or contained invalid parameters",
    401: "Invalid credentials or expired token",
    403: "You do not have permission to access this resource",
    404: "The requested resource does not exist",
    422: "The request contained invalid data",
    429: "Too many requests. Please wait before trying again",
    500: "The server encountered an error",
    503: "The service is temporarily unavailable",
}


class _RemoteError(BaseModel):
    """Strict shape of the remote error document."""

    error: str
    description: str = ""
    details: dict[str, Any] = {}

    @field_validator("error", mode="before")
    @classmethod
    def _flatten_error(cls, value: Any) -> Any:
        # Some endpoints nest the error: {"error": {"title": ..., "message": ...}}
        if isinstance(value, dict):
            return value.get("title") or value.get("message") or json.dumps(value)
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value: Any) -> Any:
        return value if value is not None else ""

    @field_validator("details", mode="before")
    @classmethod
    def _none_details(cls, value: Any) -> Any:
        return value if value is not None else {}


def status_message(status_code: int) -> str:
    """Return the fixed message for *status_code* (``"HTTP 418 Error"`` when unknown)."""
    if status_code in STATUS_MESSAGES:
        return STATUS_MESSAGES[status_code]
    if status_code >= 500:
        return STATUS_MESSAGES[500]
    return f"HTTP {status_code} Error"


def parse_api_error(status_code: int, body: bytes | str, operation: str = "") -> APIError:
    """Build an :class:`~zdcli.exceptions.APIError` from a failed response.

    Args:
        status_code: HTTP status of the response.
        body: Raw response body.
        operation: Name of the client operation that failed.

    Returns:
        The classified error (never raised here).
    """
    remote = _decode_remote_error(body)
    if remote is not None:
        return APIError(
            status_code,
            remote.error,
            remote.description,
            remote.details,
            operation=operation,
        )
    return APIError(
        status_code,
        status_message(status_code),
        _STATUS_DESCRIPTIONS.get(status_code, ""),
        operation=operation,
    )


def _decode_remote_error(body: bytes | str) -> Optional[_RemoteError]:
    if not body:
        return None
    try:
        return _RemoteError.model_validate_json(body)
    except ValidationError:
        return None


def suggestion_for(error: APIError) -> Optional[str]:
    """Return a next-step hint for the user, or ``None`` if there is none."""
    status = error.status_code
    if status == 401:
        return "Check your credentials with 'zd test', or run 'zd reauth' for OAuth instances."
    if status == 403:
        return "Your account may not have permission for this operation."
    if status == 404:
        return "Verify the ID is correct."
    if status == 422:
        return "Check your input values and try again."
    if status == 429:
        return "Wait a moment before retrying, and use --refresh less often."
    if status >= 500:
        return "The service may be having problems. Try again later."
    return None


def format_validation_details(error: APIError) -> list[str]:
    """Flatten ``error.details`` into ``"field: description"`` lines."""
    lines: list[str] = []
    for field, problems in error.details.items():
        if isinstance(problems, list):
            for problem in problems:
                if isinstance(problem, dict):
                    text = problem.get("description") or problem.get("error") or str(problem)
                else:
                    text = str(problem)
                lines.append(f"{field}: {text}")
        else:
            lines.append(f"{field}: {problems}")
    return lines
