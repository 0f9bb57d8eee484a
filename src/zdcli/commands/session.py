"""Session commands -- ``zd test`` and ``zd reauth``.

``test`` checks that the active instance's credentials work and shows who
they belong to. ``reauth`` re-runs the OAuth authorization flow for an
OAuth instance and stores the new tokens.
"""

from __future__ import annotations

import typer

from zdcli.commands._common import (
    active_config_path,
    authorize,
    open_client,
    options,
    reporting_errors,
)
from zdcli.config import resolve_active_instance, save_instance_tokens
from zdcli.exceptions import InvalidUsageError
from zdcli.models import AuthType
from zdcli.output import info, success


def test_command(ctx: typer.Context) -> None:
    """Test the connection to the active instance.

    Example::

        zd test
        zd --instance staging test
    """
    with reporting_errors():
        with open_client(ctx, refresh=True) as client:
            info(f"Testing connection to {client.instance.site_url}...")
            client.test_connection()
            user = client.get_current_user()

    success("Connection successful.")
    info(f"Authenticated as {user.name} <{user.email or '-'}> ({user.role or 'unknown role'})")


def reauth_command(
    ctx: typer.Context,
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the authorization URL instead of opening it."
    ),
) -> None:
    """Re-authorize an OAuth instance in the browser.

    Use this when the refresh token has been revoked or has expired.

    Example::

        zd reauth
        zd --instance acme reauth --no-browser
    """
    with reporting_errors():
        path = active_config_path(ctx)
        _, instance = resolve_active_instance(options(ctx).get("instance"), path)
        if instance.auth_type != AuthType.OAUTH:
            raise InvalidUsageError(
                f"Instance '{instance.name}' uses token authentication; "
                "reauth only applies to OAuth instances"
            )
        token = authorize(instance, open_browser=not no_browser)
        save_instance_tokens(instance.name, token, path)

    success(f"Instance '{instance.name}' re-authorized.")
