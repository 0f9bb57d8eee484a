"""Request pipeline shared by every resource family.

:class:`BaseClient` wraps :class:`httpx.Client` and layers on:

- **Auth** -- one ``Authorization`` header derived from the instance at
  construction time (see :mod:`zdcli.auth.token`).
- **Read-through cache** -- GETs consult the
  :class:`~zdcli.cache.ResponseCache` first and populate it after a
  successful fetch. Any cache failure degrades to a miss.
- **Write invalidation** -- successful writes delete the cache entry of
  the resource they touched. List and search entries are left to expire.
- **Error classification** -- non-2xx responses become
  :class:`~zdcli.exceptions.APIError`; transport failures become
  :class:`~zdcli.exceptions.ConnectionError_` or
  :class:`~zdcli.exceptions.DeadlineExceeded`.
- **Optional retry** -- when :attr:`~zdcli.models.RequestConfig.retry` is
  set, each call is composed through
  :func:`~zdcli.client.retry.retry_with_backoff`.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from zdcli import __version__
from zdcli.auth.token import authorization_header
from zdcli.cache import ResponseCache, make_cache_key
from zdcli.client.errors import parse_api_error
from zdcli.client.retry import RetryConfig, retry_with_backoff
from zdcli.config import get_cache_dir
from zdcli.exceptions import (
    CacheError,
    ConnectionError_,
    DeadlineExceeded,
    InvalidUsageError,
    ResponseDecodeError,
)
from zdcli.models import CacheConfig, Instance, RequestConfig
from zdcli.output import get_output

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

MAX_PER_PAGE = 100
DEFAULT_PER_PAGE = 100


class BaseClient:
    """Authenticated, cached access to one instance's REST API.

    Must be used as a context manager so that the underlying transport is
    properly opened and closed.

    Args:
        instance: The active instance. The client keeps its own copy.
        use_cache: Serve reads from the response cache when possible.
            ``False`` corresponds to the ``--refresh`` flag.
        cache: Explicit cache to use; by default one is opened in
            :func:`~zdcli.config.get_cache_dir`.
        cache_config: TTL and global on/off switch for the cache.
        request_config: Timeout, SSL verification, and retry policy.
        transport: Custom httpx transport (tests use
            :class:`httpx.MockTransport`).
        cancel_event: Aborts retry waits when set.

    Raises:
        CredentialError: If the instance lacks a field required by its
            auth mode.
    """

    def __init__(
        self,
        instance: Instance,
        use_cache: bool = True,
        cache: Optional[ResponseCache] = None,
        cache_config: Optional[CacheConfig] = None,
        request_config: Optional[RequestConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._instance = instance.model_copy(deep=True)
        self._auth_header = authorization_header(self._instance)
        self._request_config = request_config or RequestConfig()
        self._retry: Optional[RetryConfig] = None
        if self._request_config.retry:
            self._retry = RetryConfig.from_request_config(self._request_config)
        self._transport = transport
        self._cancel_event = cancel_event
        self._client: Optional[httpx.Client] = None

        cache_config = cache_config or CacheConfig()
        self._cache: Optional[ResponseCache] = None
        if use_cache and cache_config.enabled:
            self._cache = cache if cache is not None else _open_cache(cache_config)

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self):
        self._client = httpx.Client(
            base_url=self._instance.base_url,
            timeout=self._request_config.timeout,
            verify=self._request_config.verify_ssl,
            follow_redirects=True,
            headers={
                "Authorization": self._auth_header,
                "Accept": "application/json",
                "Content-Type": "application/json",
                "User-Agent": f"zd/{__version__}",
            },
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def instance(self) -> Instance:
        """A copy of the instance this client talks to."""
        return self._instance.model_copy(deep=True)

    @property
    def subdomain(self) -> str:
        return self._instance.subdomain

    @property
    def auth_header(self) -> str:
        """The ``Authorization`` header value sent with every request."""
        return self._auth_header

    @property
    def cache(self) -> Optional[ResponseCache]:
        """The response cache, or ``None`` when caching is off for this client."""
        return self._cache

    @property
    def cache_enabled(self) -> bool:
        return self._cache is not None

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    def test_connection(self) -> None:
        """Verify the credentials with a lightweight authenticated GET.

        The response body is not interpreted; only the status matters.

        Raises:
            APIError: If the API answers with a non-2xx status.
            ConnectionError_: If the API cannot be reached.
        """
        operation = "test connection"
        response = self._send("GET", "/users/me.json", operation)
        self._raise_for_status(response, operation)

    # ------------------------------------------------------------------ #
    # Pipeline
    # ------------------------------------------------------------------ #

    def _key(self, resource: str, *identity: Any, **params: Any) -> str:
        site = f"{self._instance.subdomain}.{self._instance.host}"
        return make_cache_key(site, resource, *identity, **params)

    def _fetch(
        self,
        operation: str,
        key: str,
        path: str,
        model: type[ModelT],
        params: Optional[dict[str, Any]] = None,
    ) -> ModelT:
        """Read *path*, serving it from the cache when a fresh entry exists."""
        output = get_output()

        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                try:
                    result = model.model_validate_json(cached)
                except ValidationError:
                    self._invalidate(key)
                else:
                    output.debug(f"Cache hit: {key}")
                    return result

        response = self._send("GET", path, operation, params=params)
        self._raise_for_status(response, operation)
        result = self._decode(response, model, operation)

        if self._cache is not None:
            try:
                self._cache.set(key, response.content)
            except CacheError as exc:
                logger.debug("Not caching %s: %s", key, exc)
        return result

    def _write(
        self,
        operation: str,
        method: str,
        path: str,
        json_body: Optional[dict[str, Any]] = None,
        model: Optional[type[ModelT]] = None,
        invalidate: tuple[str, ...] = (),
    ) -> Optional[ModelT]:
        """Send a write request and invalidate the keys it makes stale."""
        response = self._send(method, path, operation, json_body=json_body)
        self._raise_for_status(response, operation)
        for key in invalidate:
            self._invalidate(key)
        if model is None:
            return None
        return self._decode(response, model, operation)

    def _send(
        self,
        method: str,
        path: str,
        operation: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Execute one request (through the retry helper when enabled)."""
        assert self._client is not None, "Client not initialised -- use as context manager"
        client = self._client
        timeout = self._request_config.timeout
        get_output().debug(f"{method} {path}")

        def _once() -> httpx.Response:
            try:
                return client.request(method, path, params=params, json=json_body)
            except httpx.TimeoutException as exc:
                raise DeadlineExceeded(
                    f"failed to {operation}: no response within {timeout:g}s"
                ) from exc
            except httpx.TransportError as exc:
                raise ConnectionError_(f"failed to {operation}: {exc}") from exc

        if self._retry is None:
            return _once()
        deadline = time.monotonic() + self._request_config.retry_deadline
        return retry_with_backoff(
            _once, self._retry, cancel_event=self._cancel_event, deadline=deadline
        )

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if not response.is_success:
            raise parse_api_error(response.status_code, response.content, operation)

    def _decode(self, response: httpx.Response, model: type[ModelT], operation: str) -> ModelT:
        try:
            return model.model_validate_json(response.content)
        except ValidationError as exc:
            raise ResponseDecodeError(
                f"failed to {operation}: unexpected response body "
                f"({exc.error_count()} validation errors)"
            ) from exc

    def _invalidate(self, key: str) -> None:
        if self._cache is not None:
            self._cache.delete(key)


def page_params(page: int, per_page: int) -> dict[str, int]:
    """Validate paging input, clamping *per_page* to :data:`MAX_PER_PAGE`.

    Raises:
        InvalidUsageError: If *page* or *per_page* is below 1.
    """
    if page < 1:
        raise InvalidUsageError(f"page must be 1 or greater, got {page}")
    if per_page < 1:
        raise InvalidUsageError(f"per-page must be 1 or greater, got {per_page}")
    return {"page": page, "per_page": min(per_page, MAX_PER_PAGE)}


def _open_cache(config: CacheConfig) -> Optional[ResponseCache]:
    try:
        return ResponseCache(get_cache_dir(), config)
    except CacheError as exc:
        get_output().debug(f"Response cache disabled: {exc}")
        return None
