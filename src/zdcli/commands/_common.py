"""Helpers shared by the command modules.

* :func:`reporting_errors` -- turns :class:`~zdcli.exceptions.ZdError`
  into a printed error, an optional suggestion, and the matching exit code.
* :func:`open_client` -- resolves the active instance (refreshing an
  expired OAuth token first) and builds a :class:`~zdcli.client.ZendeskClient`.
* :func:`show_records` / :func:`show_record` -- render models in the
  active output format.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

import typer
from pydantic import BaseModel

from zdcli.auth.oauth import OAuthConfig, OAuthFlow, OAuthToken, refresh_token
from zdcli.auth.token import validate_instance
from zdcli.client import ZendeskClient
from zdcli.client.errors import format_validation_details, suggestion_for
from zdcli.config import config_path, resolve_active_instance, save_instance_tokens
from zdcli.exceptions import (
    APIError,
    CredentialError,
    InvalidUsageError,
    RetryExhaustedError,
    ZdError,
)
from zdcli.models import AuthType, Instance, Page
from zdcli.output import OutputFormat, debug, error, get_output, info, suggest

# (header, attribute) pairs
Columns = Sequence[tuple[str, str]]

PAGE_OPTION = typer.Option(1, "--page", help="Page number (starting at 1).")
PER_PAGE_OPTION = typer.Option(100, "--per-page", help="Results per page (max 100).")
REFRESH_OPTION = typer.Option(False, "--refresh", help="Bypass the response cache.")


# ------------------------------------------------------------------ #
# Errors
# ------------------------------------------------------------------ #


def report_error(exc: ZdError) -> None:
    """Print *exc* and the most useful next step for it on stderr."""
    error(str(exc))

    cause: BaseException = exc
    if isinstance(exc, RetryExhaustedError):
        cause = exc.last_error

    if isinstance(cause, APIError):
        for line in format_validation_details(cause):
            error(f"  {line}")
        hint = suggestion_for(cause)
        if hint:
            suggest(hint)
    elif isinstance(cause, CredentialError):
        suggest("Re-add the instance with complete credentials: zd instance add")


@contextmanager
def reporting_errors() -> Iterator[None]:
    """Report any :class:`ZdError` raised in the block and exit with its code."""
    try:
        yield
    except ZdError as exc:
        report_error(exc)
        raise typer.Exit(code=exc.exit_code) from None


# ------------------------------------------------------------------ #
# Instance and client resolution
# ------------------------------------------------------------------ #


def options(ctx: typer.Context) -> dict[str, Any]:
    return ctx.obj if isinstance(ctx.obj, dict) else {}


def active_config_path(ctx: typer.Context) -> Path:
    return config_path(options(ctx).get("config"))


def is_forced(ctx: typer.Context, force: bool = False) -> bool:
    return force or bool(options(ctx).get("force"))


def ensure_fresh_token(instance: Instance, path: Optional[Path] = None) -> Instance:
    """Refresh the OAuth token of *instance* if it has expired.

    The refreshed tokens are written back to the config before the updated
    instance is returned. Token-auth instances pass through untouched.
    """
    if instance.auth_type != AuthType.OAUTH:
        return instance
    validate_instance(instance)
    token = OAuthToken.from_instance(instance)
    if token.is_valid():
        return instance
    debug(f"Access token for {instance.name} expired, refreshing")
    fresh = refresh_token(OAuthConfig.from_instance(instance), token)
    return save_instance_tokens(instance.name, fresh, path)


def open_client(ctx: typer.Context, refresh: bool = False) -> ZendeskClient:
    """Build a client for the instance this invocation targets.

    Args:
        ctx: Typer context carrying the global ``--instance`` and
            ``--config`` options.
        refresh: Skip the response cache (``--refresh``).
    """
    path = active_config_path(ctx)
    config, instance = resolve_active_instance(options(ctx).get("instance"), path)
    instance = ensure_fresh_token(instance, path)
    return ZendeskClient(
        instance,
        use_cache=not refresh,
        cache_config=config.cache,
        request_config=config.request,
    )


def authorize(
    instance: Instance,
    open_browser: bool = True,
    timeout: Optional[float] = None,
) -> OAuthToken:
    """Run the browser authorization flow for an OAuth *instance*."""
    if not instance.oauth_client_id or not instance.oauth_client_secret:
        raise CredentialError(
            "OAuth client ID and secret are required to authorize", field="oauth_client_id"
        )
    flow_args: dict[str, Any] = {"open_browser": open_browser}
    if timeout is not None:
        flow_args["timeout"] = timeout
    return OAuthFlow(OAuthConfig.from_instance(instance), **flow_args).run()


# ------------------------------------------------------------------ #
# Rendering
# ------------------------------------------------------------------ #


def cell(value: Any) -> str:
    """Render one field value as a table/CSV cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ";".join(cell(item) for item in value)
    if isinstance(value, BaseModel):
        return cell(value.model_dump(mode="json"))
    if isinstance(value, dict):
        return ";".join(f"{k}={v}" for k, v in value.items())
    return str(value)


def show_records(
    records: Sequence[BaseModel],
    columns: Columns,
    title: Optional[str] = None,
    empty_message: str = "No results.",
) -> None:
    """Print a list of models; JSON output carries every field."""
    output = get_output()
    if output.format == OutputFormat.JSON:
        output.format_response([r.model_dump(mode="json") for r in records])
        return
    if not records and output.format == OutputFormat.TABLE:
        info(empty_message)
        return
    headers = [header for header, _ in columns]
    rows = [[cell(getattr(r, attr, None)) for _, attr in columns] for r in records]
    output.print_table(headers, rows, title=title)


def show_record(record: BaseModel, columns: Columns, title: Optional[str] = None) -> None:
    """Print a single model as field/value pairs (one CSV row in CSV mode)."""
    output = get_output()
    if output.format == OutputFormat.JSON:
        output.format_response(record.model_dump(mode="json"))
    elif output.format == OutputFormat.CSV:
        output.print_table(
            [header for header, _ in columns],
            [[cell(getattr(record, attr, None)) for _, attr in columns]],
        )
    else:
        rows = [[header, cell(getattr(record, attr, None))] for header, attr in columns]
        output.print_table(["Field", "Value"], rows, title=title)


def page_hint(page: Page, current: int) -> None:
    if page.has_more:
        suggest(f"More results: --page {current + 1}")


def require_fields(fields: dict[str, Any], what: str) -> None:
    """Raise :class:`InvalidUsageError` when no update field was given."""
    if all(value is None for value in fields.values()):
        raise InvalidUsageError(f"no fields to update; pass at least one {what} option")


def check_choice(value: Optional[str], allowed: Sequence[str], option: str) -> Optional[str]:
    if value is None:
        return None
    value = value.lower()
    if value not in allowed:
        raise InvalidUsageError(
            f"invalid {option} '{value}'; expected one of: {', '.join(allowed)}"
        )
    return value
