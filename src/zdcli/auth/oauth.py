"""OAuth2 authorization-code flow with a local callback listener.

This module implements the three-legged flow used by OAuth instances:

1. Build the authorization URL with the client id, the fixed loopback
   redirect URL, and a fresh anti-forgery ``state`` token.
2. Start a short-lived HTTP listener on the redirect URL's port and show
   the URL to the user (optionally opening a browser).
3. Wait until exactly one of {callback, timeout, cancellation} resolves
   the flow. A callback whose ``state`` does not match never reaches the
   token exchange.
4. Shut the listener down, then exchange the code for tokens.

:class:`OAuthFlow` tracks its progress in :class:`FlowState`. The wait is
backed by a :class:`concurrent.futures.Future` that is completed at most
once, so a duplicate or late callback cannot resolve the flow twice. The
listener is shut down on every exit path before :meth:`OAuthFlow.run`
returns or raises.

:func:`refresh_token` is the separate, non-interactive refresh operation.

See Also:
    :func:`zdcli.config.save_instance_tokens` -- persists the tokens
    returned here.
"""

from __future__ import annotations

import concurrent.futures
import enum
import html
import logging
import secrets
import threading
import time
import webbrowser
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlencode, urlparse

import httpx
from pydantic import BaseModel, ValidationError

from zdcli.exceptions import AuthError, OAuthFlowError, OperationCancelled, ZdError
from zdcli.models import DEFAULT_HOST, Instance
from zdcli.output import get_output

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_URL = "http://127.0.0.1:8080/callback"
DEFAULT_SCOPES: tuple[str, ...] = ("read", "write")
DEFAULT_FLOW_TIMEOUT = 300.0  # seconds
SHUTDOWN_GRACE = 5.0  # seconds
TOKEN_REQUEST_TIMEOUT = 30.0  # seconds
DEFAULT_EXPIRES_IN = 3600  # seconds, used when the provider omits expires_in

# Tokens this close to expiry are treated as expired.
EXPIRY_DELTA = timedelta(seconds=10)

_POLL_INTERVAL = 0.1  # seconds

SUCCESS_PAGE = """<!DOCTYPE html>
<html>
<head><title>Authorization Successful</title></head>
<body style="font-family: sans-serif; text-align: center; padding-top: 4em;">
<h1>Authorization Successful</h1>
<p>You have authorized zd. You can close this window and return to the terminal.</p>
</body>
</html>
"""


class FlowState(str, enum.Enum):
    """Lifecycle states of an :class:`OAuthFlow`."""

    IDLE = "idle"
    AUTH_URL_ISSUED = "auth_url_issued"
    AWAITING_CALLBACK = "awaiting_callback"
    CODE_RECEIVED = "code_received"
    CALLBACK_ERROR = "callback_error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    TOKEN_EXCHANGED = "token_exchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class OAuthConfig:
    """Client registration and endpoints for one instance."""

    subdomain: str
    client_id: str
    client_secret: str
    host: str = DEFAULT_HOST
    redirect_url: str = DEFAULT_REDIRECT_URL
    scopes: tuple[str, ...] = DEFAULT_SCOPES

    @property
    def authorization_endpoint(self) -> str:
        return f"https://{self.subdomain}.{self.host}/oauth/authorizations/new"

    @property
    def token_endpoint(self) -> str:
        return f"https://{self.subdomain}.{self.host}/oauth/tokens"

    @classmethod
    def from_instance(cls, instance: Instance, **overrides: Any) -> OAuthConfig:
        """Build the config from an OAuth :class:`~zdcli.models.Instance`."""
        values: dict[str, Any] = {
            "subdomain": instance.subdomain,
            "client_id": instance.oauth_client_id,
            "client_secret": instance.oauth_client_secret,
            "host": instance.host,
        }
        values.update(overrides)
        return cls(**values)


class OAuthToken(BaseModel):
    """Access/refresh token pair with an absolute UTC expiry."""

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expiry: Optional[datetime] = None

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Whether the access token can still be used.

        A token without an expiry never expires. Tokens within
        :data:`EXPIRY_DELTA` of their expiry count as expired.
        """
        if not self.access_token:
            return False
        if self.expiry is None:
            return True
        now = now or datetime.now(timezone.utc)
        expiry = self.expiry
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return now + EXPIRY_DELTA < expiry

    @classmethod
    def from_token_response(
        cls, data: dict[str, Any], now: Optional[datetime] = None
    ) -> OAuthToken:
        """Build a token from the provider's JSON token response.

        Raises:
            AuthError: If the response carries a non-string ``access_token``
                or a non-numeric ``expires_in``.
        """
        now = now or datetime.now(timezone.utc)
        expires_in = data.get("expires_in")
        if expires_in is None:
            expires_in = DEFAULT_EXPIRES_IN
        try:
            return cls(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                token_type=data.get("token_type") or "bearer",
                expiry=now + timedelta(seconds=float(expires_in)),
            )
        except (KeyError, TypeError, ValueError, OverflowError, ValidationError) as exc:
            raise AuthError(f"malformed token response: {exc}") from exc

    @classmethod
    def from_instance(cls, instance: Instance) -> OAuthToken:
        """Return the token currently stored on *instance*."""
        return cls(
            access_token=instance.oauth_access_token,
            refresh_token=instance.oauth_refresh_token or None,
            expiry=instance.oauth_expiry,
        )


def generate_state() -> str:
    """Return a fresh, unguessable anti-forgery ``state`` value."""
    return secrets.token_urlsafe(32)


def build_authorization_url(config: OAuthConfig, state: str) -> str:
    """Return the URL the user visits to approve access."""
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.redirect_url,
        "scope": " ".join(config.scopes),
        "state": state,
    }
    return f"{config.authorization_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class _Outcome:
    """Whatever resolved the wait: a code, or the terminal error."""

    state: FlowState
    code: Optional[str] = None
    error: Optional[ZdError] = field(default=None, compare=False)


class OAuthFlow:
    """One run of the authorization-code flow.

    A flow object is single-use: call :meth:`run` once. :meth:`cancel` may
    be called from any thread to abort the wait.

    Args:
        config: Client registration and endpoints.
        timeout: Seconds to wait for the callback before giving up.
        cancel_event: External cancellation signal, checked while waiting.
        open_browser: Open the authorization URL in the default browser.
        on_url: Called with the authorization URL once the listener is up.
            Defaults to printing it on stderr.

    Example::

        flow = OAuthFlow(OAuthConfig.from_instance(instance))
        token = flow.run()
    """

    def __init__(
        self,
        config: OAuthConfig,
        timeout: float = DEFAULT_FLOW_TIMEOUT,
        cancel_event: Optional[threading.Event] = None,
        open_browser: bool = True,
        on_url: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._config = config
        self._timeout = timeout
        self._cancel_event = cancel_event or threading.Event()
        self._open_browser = open_browser
        self._on_url = on_url or _show_url
        self._state = FlowState.IDLE
        self._state_token = generate_state()
        self._authorization_url: Optional[str] = None
        self._result: concurrent.futures.Future[_Outcome] = concurrent.futures.Future()
        self._lock = threading.Lock()
        self._server: Optional[HTTPServer] = None
        self.listening = threading.Event()

    @property
    def state(self) -> FlowState:
        """The current :class:`FlowState`."""
        return self._state

    @property
    def state_token(self) -> str:
        """The anti-forgery value the callback must echo back."""
        return self._state_token

    @property
    def authorization_url(self) -> Optional[str]:
        """The authorization URL, available once the flow has started."""
        return self._authorization_url

    @property
    def is_listening(self) -> bool:
        """Whether the callback listener currently holds its port."""
        return self._server is not None

    def cancel(self) -> None:
        """Abort the flow; a no-op once another outcome has won."""
        self._cancel_event.set()
        self._resolve(
            _Outcome(FlowState.CANCELLED, error=OperationCancelled("authorization cancelled"))
        )

    def run(self) -> OAuthToken:
        """Perform the flow and return the issued tokens.

        Raises:
            OAuthFlowError: On state mismatch, provider error, malformed
                callback, timeout, listener failure, or exchange failure.
            OperationCancelled: If the flow was cancelled.
        """
        if self._state != FlowState.IDLE:
            raise ZdError("an OAuth flow can only be run once")

        self._authorization_url = build_authorization_url(self._config, self._state_token)
        self._state = FlowState.AUTH_URL_ISSUED

        server, thread = self._start_listener()
        try:
            self._state = FlowState.AWAITING_CALLBACK
            self._on_url(self._authorization_url)
            if self._open_browser:
                self._launch_browser(self._authorization_url)
            outcome = self._wait()
        except (KeyboardInterrupt, SystemExit):
            # SIGINT arrives as SystemExit once the CLI handler is installed.
            self._resolve(
                _Outcome(FlowState.CANCELLED, error=OperationCancelled("authorization cancelled"))
            )
            self._state = FlowState.CANCELLED
            raise
        finally:
            self._stop_listener(server, thread)

        self._state = outcome.state
        if outcome.error is not None:
            raise outcome.error
        assert outcome.code is not None

        try:
            token = exchange_code(self._config, outcome.code)
        except AuthError as exc:
            self._state = FlowState.FAILED
            raise OAuthFlowError(
                f"failed to exchange authorization code for token: {exc}",
                reason="exchange_failed",
            ) from exc
        self._state = FlowState.TOKEN_EXCHANGED
        return token

    # ------------------------------------------------------------------ #
    # Resolution
    # ------------------------------------------------------------------ #

    def _resolve(self, outcome: _Outcome) -> bool:
        """Complete the wait with *outcome* unless something already did."""
        with self._lock:
            if self._result.done():
                return False
            self._result.set_result(outcome)
            return True

    def _wait(self) -> _Outcome:
        deadline = time.monotonic() + self._timeout
        while True:
            if self._cancel_event.is_set():
                self._resolve(
                    _Outcome(
                        FlowState.CANCELLED,
                        error=OperationCancelled("authorization cancelled"),
                    )
                )
            elif time.monotonic() >= deadline:
                self._resolve(
                    _Outcome(
                        FlowState.TIMEOUT,
                        error=OAuthFlowError(
                            f"timed out after {self._timeout:g}s waiting for authorization",
                            reason="timeout",
                        ),
                    )
                )
            try:
                return self._result.result(timeout=_POLL_INTERVAL)
            except concurrent.futures.TimeoutError:
                continue

    def _handle_callback(self, request_path: str, callback_path: str) -> tuple[int, str]:
        """Classify one request to the listener and return ``(status, html)``."""
        parsed = urlparse(request_path)
        if parsed.path != callback_path:
            return 404, "<html><body><h2>Not found</h2></body></html>"

        params = parse_qs(parsed.query)
        state = params.get("state", [""])[0]
        code = params.get("code", [""])[0]
        err = params.get("error", [""])[0]
        err_desc = params.get("error_description", [""])[0]

        if not secrets.compare_digest(state.encode("utf-8"), self._state_token.encode("utf-8")):
            outcome = _Outcome(
                FlowState.CALLBACK_ERROR,
                error=OAuthFlowError(
                    "state mismatch - possible CSRF attack", reason="state_mismatch"
                ),
            )
            status, body = 400, "Invalid state parameter. Please try again."
        elif err or err_desc:
            outcome = _Outcome(
                FlowState.CALLBACK_ERROR,
                error=OAuthFlowError(
                    f"authorization failed: {err} - {err_desc}", reason="provider_error"
                ),
            )
            status, body = 400, f"Authorization failed: {err} - {err_desc}"
        elif not code:
            outcome = _Outcome(
                FlowState.CALLBACK_ERROR,
                error=OAuthFlowError(
                    "no authorization code received", reason="malformed_callback"
                ),
            )
            status, body = 400, "No authorization code received."
        else:
            outcome = _Outcome(FlowState.CODE_RECEIVED, code=code)
            status, body = 200, ""

        if not self._resolve(outcome):
            return 409, _page("This authorization request has already completed.")
        if status == 200:
            return status, SUCCESS_PAGE
        return status, _page(body)

    # ------------------------------------------------------------------ #
    # Listener
    # ------------------------------------------------------------------ #

    def _start_listener(self) -> tuple[HTTPServer, threading.Thread]:
        parsed = urlparse(self._config.redirect_url)
        port = parsed.port or 80
        callback_path = parsed.path or "/"
        flow = self

        class CallbackHandler(BaseHTTPRequestHandler):
            # Bounds how long a stalled client can delay shutdown.
            timeout = SHUTDOWN_GRACE

            def do_GET(self) -> None:
                status, body = flow._handle_callback(self.path, callback_path)
                payload = body.encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("callback listener: " + format, *args)

        try:
            server = HTTPServer(("127.0.0.1", port), CallbackHandler)
        except OSError as exc:
            self._state = FlowState.FAILED
            raise OAuthFlowError(
                f"failed to start callback listener on port {port}: {exc}",
                reason="listener_failed",
            ) from exc

        thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": _POLL_INTERVAL},
            name="zd-oauth-callback",
            daemon=True,
        )
        thread.start()
        self._server = server
        self.listening.set()
        logger.debug("callback listener started on port %d", server.server_address[1])
        return server, thread

    def _stop_listener(self, server: HTTPServer, thread: threading.Thread) -> None:
        server.shutdown()
        server.server_close()
        thread.join(timeout=SHUTDOWN_GRACE)
        if thread.is_alive():
            logger.warning("callback listener did not stop within %.0fs", SHUTDOWN_GRACE)
        self._server = None
        self.listening.clear()

    @staticmethod
    def _launch_browser(url: str) -> None:
        # Open browser in a separate thread to avoid blocking
        browser_thread = threading.Thread(target=webbrowser.open, args=(url,), daemon=True)
        browser_thread.start()


def _page(message: str) -> str:
    return f"<html><body><h2>{html.escape(message)}</h2></body></html>"


def _show_url(url: str) -> None:
    output = get_output()
    output.info("Open the following URL in your browser to authorize zd:")
    output.info(url)
    output.info("Waiting for authorization...")


# ------------------------------------------------------------------ #
# Token endpoint
# ------------------------------------------------------------------ #


def _post_token_request(url: str, data: dict[str, str], action: str) -> dict[str, Any]:
    """POST a form to the token endpoint and return the decoded JSON body.

    Raises:
        AuthError: On transport errors, non-2xx statuses, or a response
            without ``access_token``.
    """
    try:
        response = httpx.post(
            url,
            data=data,
            headers={"Accept": "application/json"},
            timeout=TOKEN_REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        token_data: dict[str, Any] = response.json()
    except httpx.HTTPStatusError as exc:
        raise AuthError(
            f"{action} failed with status {exc.response.status_code}: "
            f"{exc.response.text}"
        ) from exc
    except httpx.HTTPError as exc:
        raise AuthError(f"{action} failed: {exc}") from exc
    except ValueError as exc:
        raise AuthError(f"{action} returned invalid JSON: {exc}") from exc

    if not isinstance(token_data, dict) or "access_token" not in token_data:
        raise AuthError(f"{action} response missing 'access_token' field")
    return token_data


def exchange_code(config: OAuthConfig, code: str) -> OAuthToken:
    """Exchange an authorization *code* for tokens.

    Raises:
        AuthError: If the token endpoint rejects the exchange.
    """
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "redirect_uri": config.redirect_url,
        "scope": " ".join(config.scopes),
    }
    token_data = _post_token_request(config.token_endpoint, data, "Token exchange")
    return OAuthToken.from_token_response(token_data)


def refresh_token(config: OAuthConfig, token: OAuthToken) -> OAuthToken:
    """Return *token* if still valid, otherwise a freshly refreshed token.

    The refresh token is carried over when the provider does not rotate it.

    Raises:
        AuthError: If no refresh token is available or the refresh fails.
    """
    if token.is_valid():
        return token
    if not token.refresh_token:
        raise AuthError("failed to refresh token: no refresh token available")

    data = {
        "grant_type": "refresh_token",
        "refresh_token": token.refresh_token,
        "client_id": config.client_id,
        "client_secret": config.client_secret,
    }
    try:
        token_data = _post_token_request(config.token_endpoint, data, "Token refresh")
        refreshed = OAuthToken.from_token_response(token_data)
    except AuthError as exc:
        raise AuthError(f"failed to refresh token: {exc}") from exc

    if not refreshed.refresh_token:
        refreshed.refresh_token = token.refresh_token
    return refreshed
