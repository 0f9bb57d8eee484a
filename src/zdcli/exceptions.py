"""Exception hierarchy for zdcli.

All exceptions inherit from :class:`ZdError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`zdcli.exit_codes`.
The top-level error handler in :func:`zdcli.app.main` catches
``ZdError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    ZdError (exit 1)
    +-- InvalidUsageError      (exit 2)
    +-- AuthError              (exit 3)
    |   +-- CredentialError    (exit 3)
    |   +-- OAuthFlowError     (exit 3)
    +-- ConnectionError_       (exit 6)
    |   +-- DeadlineExceeded   (exit 6)
    +-- APIError               (exit derived from the HTTP status)
    +-- RetryExhaustedError    (exit of the last underlying error)
    +-- OperationCancelled     (exit 130)
    +-- ResponseDecodeError    (exit 1)
    +-- ConfigError            (exit 1)
    +-- CacheError             (exit 1, absorbed by the API client)
"""

from __future__ import annotations

from typing import Any, Optional

from zdcli.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CANCELLED,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_RATE_LIMITED,
    EXIT_SERVER_ERROR,
)


class ZdError(Exception):
    """Base exception for all zdcli errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`zdcli.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(ZdError):
    """Raised for invalid CLI arguments or out-of-range parameters."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(ZdError):
    """Raised when authentication fails outside an HTTP response (token exchange, refresh)."""

    exit_code = EXIT_AUTH_FAILURE


class CredentialError(AuthError):
    """Raised when an instance is missing a field its auth mode requires.

    Attributes:
        field: Name of the missing credential field.
    """

    def __init__(self, message: str, field: str = "") -> None:
        super().__init__(message)
        self.field = field


class OAuthFlowError(AuthError):
    """Raised when the OAuth authorization-code flow terminates without tokens.

    The ``reason`` attribute names the sub-step that failed so that callers
    can tell a forged callback apart from a provider error or a timeout.

    Attributes:
        reason: One of ``"state_mismatch"``, ``"provider_error"``,
            ``"malformed_callback"``, ``"timeout"``, ``"exchange_failed"``,
            or ``"listener_failed"``.
    """

    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


class ConnectionError_(ZdError):
    """Raised on network-level failures (DNS resolution, connection refused, reset).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class DeadlineExceeded(ConnectionError_):
    """Raised when a request does not complete within its timeout."""


class OperationCancelled(ZdError):
    """Raised when a wait is aborted by the caller's cancellation signal."""

    exit_code = EXIT_CANCELLED


class ResponseDecodeError(ZdError):
    """Raised when a 2xx response body does not match the expected shape."""


class ConfigError(ZdError):
    """Raised for configuration problems (missing instances, invalid JSON, bad names)."""

    exit_code = EXIT_GENERIC_FAILURE


class CacheError(ZdError):
    """Raised by :class:`~zdcli.cache.ResponseCache` when the disk store fails.

    The API client absorbs this error and degrades to a cache miss; it
    never reaches the command layer.
    """


class APIError(ZdError):
    """A classified non-2xx response from the remote API.

    Built by :func:`zdcli.client.errors.parse_api_error` from either the
    structured remote error document or the fixed status table. The exit
    code is derived from ``status_code``.

    Args:
        status_code: The HTTP status code of the response.
        message: Machine-level error (remote ``error`` field, or the
            status table entry).
        description: Human-readable description, possibly empty.
        details: Field-level validation details reported by the remote API.
        operation: Name of the client operation that failed
            (e.g. ``"list users"``).
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        description: str = "",
        details: Optional[dict[str, Any]] = None,
        operation: str = "",
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.description = description
        self.details = details or {}
        self.operation = operation
        super().__init__(self._render(), exit_code=_exit_code_for_status(status_code))

    def _render(self) -> str:
        if self.description:
            return f"{self.message}: {self.description}"
        return self.message

    @property
    def is_rate_limit(self) -> bool:
        """Whether the remote API throttled the request (HTTP 429)."""
        return self.status_code == 429

    @property
    def is_auth_error(self) -> bool:
        """Whether the credentials were rejected (HTTP 401 or 403)."""
        return self.status_code in (401, 403)

    @property
    def is_not_found(self) -> bool:
        """Whether the resource does not exist (HTTP 404)."""
        return self.status_code == 404

    @property
    def is_server_error(self) -> bool:
        """Whether the remote API failed (HTTP 5xx)."""
        return self.status_code >= 500


class RetryExhaustedError(ZdError):
    """Raised by :func:`~zdcli.client.retry.retry_with_backoff` after the last attempt.

    Args:
        attempts: Number of retries performed.
        last_error: The error produced by the final attempt.
    """

    def __init__(self, attempts: int, last_error: Exception) -> None:
        super().__init__(f"request failed after {attempts} retries: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
        if isinstance(last_error, ZdError):
            self.exit_code = last_error.exit_code


def _exit_code_for_status(status_code: int) -> int:
    if status_code in (401, 403):
        return EXIT_AUTH_FAILURE
    if status_code == 404:
        return EXIT_NOT_FOUND
    if status_code == 429:
        return EXIT_RATE_LIMITED
    if status_code >= 500:
        return EXIT_SERVER_ERROR
    return EXIT_GENERIC_FAILURE


def _unwrap(exc: BaseException) -> BaseException:
    if isinstance(exc, RetryExhaustedError):
        return exc.last_error
    return exc


def is_rate_limit_error(exc: BaseException) -> bool:
    """Return ``True`` if *exc* is (or wraps) an HTTP 429 :class:`APIError`."""
    exc = _unwrap(exc)
    return isinstance(exc, APIError) and exc.is_rate_limit


def is_auth_error(exc: BaseException) -> bool:
    """Return ``True`` if *exc* is (or wraps) an HTTP 401/403 :class:`APIError`."""
    exc = _unwrap(exc)
    return isinstance(exc, APIError) and exc.is_auth_error


def is_not_found_error(exc: BaseException) -> bool:
    """Return ``True`` if *exc* is (or wraps) an HTTP 404 :class:`APIError`."""
    exc = _unwrap(exc)
    return isinstance(exc, APIError) and exc.is_not_found
