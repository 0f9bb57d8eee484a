"""Fixtures for end-to-end command tests.

Commands build their API client through ``ZendeskClient``; the ``api``
fixture swaps it for one backed by :class:`httpx.MockTransport` so that
every request is answered from a route table and recorded.
"""

from __future__ import annotations

import functools
import json
import logging
from pathlib import Path
from typing import Any

import httpx
import pytest

from zdcli.client import ZendeskClient
from zdcli.config import save_config
from zdcli.models import Instance, ZdConfig


class ApiStub:
    """Route table keyed by ``(method, path)``; unknown routes answer 404."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, reply: Any) -> None:
        """Answer ``method path`` (path relative to ``/api/v2``) with *reply*.

        *reply* may be a JSON-able body (200), an :class:`httpx.Response`,
        or a callable taking the request.
        """
        self.routes[(method, f"/api/v2{path}")] = reply

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.routes.get((request.method, request.url.path))
        if reply is None:
            return httpx.Response(
                404, json={"error": "RecordNotFound", "description": "Not found"}
            )
        if callable(reply):
            return reply(request)
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)

    def sent(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path == f"/api/v2{path}"
        ]

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


@pytest.fixture
def api(monkeypatch: pytest.MonkeyPatch) -> ApiStub:
    stub = ApiStub()
    factory = functools.partial(ZendeskClient, transport=httpx.MockTransport(stub))
    monkeypatch.setattr("zdcli.commands._common.ZendeskClient", factory)
    monkeypatch.setattr("zdcli.client.ZendeskClient", factory)
    return stub


@pytest.fixture
def configured(isolated_config: Path, token_instance: Instance) -> ZdConfig:
    """Save a config whose only (and current) instance is ``acme``."""
    config = ZdConfig()
    config.add_instance(token_instance)
    save_config(config)
    return config


@pytest.fixture(autouse=True)
def _detach_log_handlers():
    """Drop handlers that ``--verbose`` attached to the shared loggers."""
    yield
    for name in ("zdcli", "httpx"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
