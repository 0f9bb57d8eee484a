"""Opt-in retry with exponential backoff for rate limits and transient failures.

:func:`retry_with_backoff` wraps a callable that performs one HTTP request
and returns the :class:`httpx.Response`. It retries when the response is a
429 or a 5xx, or when the callable raises a transport error:

* **429** -- waits for the ``Retry-After`` header when present (capped at
  ``max_backoff``), otherwise the exponential delay.
* **5xx / transport error** -- waits ``initial_backoff * 2**attempt``,
  capped at ``max_backoff``.

Waits are cancellable: setting the caller's ``cancel_event`` aborts the
wait immediately with :class:`~zdcli.exceptions.OperationCancelled`, and a
wait that would overrun ``deadline`` raises
:class:`~zdcli.exceptions.DeadlineExceeded`.

The API client composes this helper in only when
:attr:`~zdcli.models.RequestConfig.retry` is enabled.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Optional

import httpx

from zdcli.client.errors import parse_api_error
from zdcli.exceptions import (
    ConnectionError_,
    DeadlineExceeded,
    OperationCancelled,
    RetryExhaustedError,
)
from zdcli.models import RequestConfig
from zdcli.output import get_output

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 30.0  # seconds

# Transport failures worth another attempt
RETRYABLE_EXCEPTIONS = (httpx.TransportError, ConnectionError_)


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy: attempt count and backoff bounds."""

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF

    @classmethod
    def from_request_config(cls, config: RequestConfig) -> RetryConfig:
        return cls(
            max_retries=config.max_retries,
            initial_backoff=config.initial_backoff,
            max_backoff=config.max_backoff,
        )


def should_retry(status_code: int) -> bool:
    """Return ``True`` for statuses the helper retries (429 and 5xx)."""
    return status_code == 429 or status_code >= 500


def calculate_backoff_delay(attempt: int, config: RetryConfig) -> float:
    """Exponential delay for *attempt* (0-indexed), capped at ``max_backoff``."""
    return min(config.initial_backoff * (2**attempt), config.max_backoff)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a ``Retry-After`` header (delta-seconds or HTTP-date) into seconds.

    Returns:
        The delay in seconds (never negative), or ``None`` if the header
        is missing or unparseable.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def retry_with_backoff(
    request_func: Callable[[], httpx.Response],
    config: Optional[RetryConfig] = None,
    cancel_event: Optional[threading.Event] = None,
    deadline: Optional[float] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
) -> httpx.Response:
    """Call *request_func* until it succeeds or the retry budget is spent.

    Args:
        request_func: Performs one request and returns its response.
        config: Retry policy; defaults to 3 retries, 1 s initial and 30 s
            maximum backoff.
        cancel_event: Setting this event aborts any pending wait.
        deadline: Absolute :func:`time.monotonic` timestamp after which no
            further waiting is allowed.
        on_retry: Called before each wait with ``(attempt, error, delay)``.

    Returns:
        The first response whose status is neither 429 nor 5xx. Other
        4xx responses are returned as-is for the caller to classify.

    Raises:
        RetryExhaustedError: After ``max_retries`` retries all failed; the
            final attempt's error is attached as ``last_error``.
        OperationCancelled: If *cancel_event* is set during a wait.
        DeadlineExceeded: If waiting would pass *deadline*.
    """
    config = config or RetryConfig()
    event = cancel_event or threading.Event()
    output = get_output()
    last_error: Exception

    for attempt in range(config.max_retries + 1):
        if event.is_set():
            raise OperationCancelled("request cancelled")

        try:
            response = request_func()
        except RETRYABLE_EXCEPTIONS as exc:
            last_error = exc
            delay = calculate_backoff_delay(attempt, config)
        else:
            if not should_retry(response.status_code):
                return response
            last_error = parse_api_error(response.status_code, response.content)
            delay = calculate_backoff_delay(attempt, config)
            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                if retry_after is not None:
                    delay = min(retry_after, config.max_backoff)

        if attempt >= config.max_retries:
            break

        output.debug(
            f"{last_error}, retrying in {delay:g}s "
            f"(attempt {attempt + 1}/{config.max_retries})"
        )
        if on_retry is not None:
            on_retry(attempt + 1, last_error, delay)
        _wait(delay, event, deadline)

    raise RetryExhaustedError(config.max_retries, last_error) from last_error


def _wait(delay: float, event: threading.Event, deadline: Optional[float]) -> None:
    """Sleep for *delay* seconds unless cancelled or past *deadline*."""
    if deadline is not None:
        remaining = deadline - time.monotonic()
        if remaining < delay:
            if event.wait(max(remaining, 0.0)):
                raise OperationCancelled("request cancelled")
            raise DeadlineExceeded("deadline exceeded while waiting to retry")
    if event.wait(delay):
        raise OperationCancelled("request cancelled")
