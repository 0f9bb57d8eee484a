"""Shared test fixtures for zdcli.

Provides reusable fixtures for isolated config environments, sample
instances and API payloads, output state, and running CLI commands.
These fixtures are automatically discovered by pytest and available to
all test modules without explicit imports.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from zdcli.models import AuthType, Instance
from zdcli.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Instance fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def token_instance() -> Instance:
    """A token-auth instance for subdomain ``acme``."""
    return Instance(
        name="acme",
        subdomain="acme",
        email="agent@acme.com",
        api_token="tok123",
    )


@pytest.fixture
def oauth_instance() -> Instance:
    """An OAuth instance whose access token is valid for another hour."""
    return Instance(
        name="acme-oauth",
        subdomain="acme",
        auth_type=AuthType.OAUTH,
        oauth_client_id="zd_cli",
        oauth_client_secret="s3cret",
        oauth_access_token="access-1",
        oauth_refresh_token="refresh-1",
        oauth_expiry=datetime.now(timezone.utc) + timedelta(hours=1),
    )


# ---------------------------------------------------------------------------
# API payload fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def ticket_payload() -> dict[str, Any]:
    return {
        "id": 500,
        "subject": "Printer on fire",
        "description": "The printer in room 3 is on fire.",
        "status": "open",
        "priority": "urgent",
        "type": "incident",
        "requester_id": 7,
        "assignee_id": 42,
        "tags": ["hardware", "fire"],
        "created_at": "2026-03-01T10:00:00Z",
        "updated_at": "2026-03-02T09:30:00Z",
    }


@pytest.fixture
def user_payload() -> dict[str, Any]:
    return {
        "id": 42,
        "name": "Ada Agent",
        "email": "ada@acme.com",
        "role": "agent",
        "active": True,
        "suspended": False,
        "created_at": "2025-11-05T08:00:00Z",
    }


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config, forces the XDG layout, and clears the ZD_* environment
    variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    config_dir = tmp_path / "config"
    cache_dir = tmp_path / "cache"
    data_dir = tmp_path / "data"

    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_DATA_HOME", str(data_dir))
    monkeypatch.setattr("zdcli.config._is_xdg_platform", lambda: True)

    for var in ["ZD_INSTANCE", "ZD_CONFIG", "NO_COLOR"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Set up a quiet output manager for tests that don't care about output.

    Installs a TABLE-format, quiet, colourless OutputManager as the global
    output and resets it after the test completes.
    """
    output = OutputManager(format=OutputFormat.TABLE, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Set up JSON output for tests that check JSON-formatted output.

    Installs a JSON-format OutputManager as the global output
    and resets it after the test completes.
    """
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
