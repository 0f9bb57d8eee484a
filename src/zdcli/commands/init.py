"""Init command -- interactive first-run setup.

Implements the ``zd init`` top-level command: it asks for the instance
subdomain and credentials, authorizes OAuth instances in the browser,
saves the instance as current, and verifies the connection.
"""

from __future__ import annotations

from typing import Optional

import typer

from zdcli.commands._common import active_config_path, authorize, reporting_errors
from zdcli.commands.instance import build_instance
from zdcli.config import load_config, save_config
from zdcli.exceptions import InvalidUsageError
from zdcli.models import DEFAULT_HOST, AuthType
from zdcli.output import info, success, suggest


def init_command(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Instance name."),
    subdomain: Optional[str] = typer.Option(
        None, "--subdomain", "-s", help="Zendesk subdomain (the 'acme' in acme.zendesk.com)."
    ),
    auth_type: Optional[AuthType] = typer.Option(
        None, "--auth-type", "-a", help="Authentication mode."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the authorization URL instead of opening it."
    ),
) -> None:
    """Set up zd for a Zendesk instance.

    Prompts for anything not given on the command line, saves the new
    instance, makes it current, and runs a connection test.

    Raises:
        typer.Exit: With the error's exit code if the instance cannot be
            saved or the connection test fails.

    Example::

        zd init
        zd init --subdomain acme --auth-type oauth
    """
    from zdcli.client import ZendeskClient

    with reporting_errors():
        path = active_config_path(ctx)
        config = load_config(path)

        subdomain = subdomain or typer.prompt("Zendesk subdomain")
        name = name or typer.prompt("Instance name", default=subdomain)
        if auth_type is None:
            answer = typer.prompt("Authentication (token/oauth)", default=AuthType.TOKEN.value)
            try:
                auth_type = AuthType(answer.strip().lower())
            except ValueError:
                raise InvalidUsageError(
                    f"unknown authentication mode '{answer}'; expected token or oauth"
                ) from None

        email = api_token = client_id = client_secret = None
        if auth_type == AuthType.OAUTH:
            client_id = typer.prompt("OAuth client ID")
            client_secret = typer.prompt("OAuth client secret", hide_input=True)
        else:
            email = typer.prompt("Agent email")
            api_token = typer.prompt("API token", hide_input=True)

        instance = build_instance(
            name, subdomain, DEFAULT_HOST, auth_type, email, api_token, client_id, client_secret
        )
        if instance.auth_type == AuthType.OAUTH:
            token = authorize(instance, open_browser=not no_browser)
            instance.oauth_access_token = token.access_token
            instance.oauth_refresh_token = token.refresh_token or ""
            instance.oauth_expiry = token.expiry

        if name in config.instances:
            info(f"Instance '{name}' already exists and will be replaced.")
            config.remove_instance(name)
        config.add_instance(instance)
        config.switch_instance(name)
        save_config(config, path)
        success(f"Instance '{name}' saved and set as current.")

        info(f"Testing connection to {instance.site_url}...")
        with ZendeskClient(instance, use_cache=False, request_config=config.request) as client:
            client.test_connection()

    success("Connection successful.")
    suggest("List your tickets: zd ticket list")
