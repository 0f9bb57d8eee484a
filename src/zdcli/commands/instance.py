"""Instance commands -- manage the configured Zendesk instances.

Provides the ``zd instance`` sub-command group. An instance bundles a
subdomain with one set of credentials; exactly one is "current" and is
used when neither ``--instance`` nor ``ZD_INSTANCE`` names another.

Typical workflow::

    zd instance add acme --subdomain acme --email me@acme.com
    zd instance list
    zd instance switch staging
"""

from __future__ import annotations

from typing import Optional

import typer
from pydantic import ValidationError

from zdcli.commands._common import (
    active_config_path,
    authorize,
    is_forced,
    reporting_errors,
)
from zdcli.config import load_config, save_config
from zdcli.exceptions import InvalidUsageError
from zdcli.models import DEFAULT_HOST, AuthType, Instance
from zdcli.output import get_output, info, print_data, success, suggest

instance_app = typer.Typer(no_args_is_help=True)


@instance_app.command("add")
def instance_add(
    ctx: typer.Context,
    name: str = typer.Argument(help="Name for the instance (letters, digits, - and _)."),
    subdomain: str = typer.Option(..., "--subdomain", "-s", help="Zendesk subdomain."),
    host: str = typer.Option(DEFAULT_HOST, "--host", help="Root domain of the API host."),
    auth_type: AuthType = typer.Option(
        AuthType.TOKEN, "--auth-type", "-a", help="Authentication mode."
    ),
    email: Optional[str] = typer.Option(None, "--email", "-e", help="Agent email (token auth)."),
    api_token: Optional[str] = typer.Option(
        None, "--api-token", help="API token (token auth; prompted if omitted)."
    ),
    client_id: Optional[str] = typer.Option(None, "--client-id", help="OAuth client ID."),
    client_secret: Optional[str] = typer.Option(
        None, "--client-secret", help="OAuth client secret (prompted if omitted)."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the authorization URL instead of opening it."
    ),
) -> None:
    """Add an instance.

    Token instances need ``--email`` and an API token. OAuth instances
    need a client ID and secret and run the browser authorization flow
    before they are saved.

    Example::

        zd instance add acme --subdomain acme --email me@acme.com
        zd instance add acme --subdomain acme --auth-type oauth --client-id zd_cli
    """
    with reporting_errors():
        path = active_config_path(ctx)
        config = load_config(path)
        if name in config.instances:
            raise InvalidUsageError(f"Instance '{name}' already exists")

        instance = build_instance(
            name, subdomain, host, auth_type, email, api_token, client_id, client_secret
        )
        if instance.auth_type == AuthType.OAUTH:
            token = authorize(instance, open_browser=not no_browser)
            instance.oauth_access_token = token.access_token
            instance.oauth_refresh_token = token.refresh_token or ""
            instance.oauth_expiry = token.expiry

        config.add_instance(instance)
        save_config(config, path)

    success(f"Instance '{name}' added.")
    if config.current == name:
        info(f"'{name}' is now the current instance.")
    suggest("Test it: zd test")


@instance_app.command("list")
def instance_list(ctx: typer.Context) -> None:
    """List configured instances; the current one is marked with ``*``."""
    with reporting_errors():
        config = load_config(active_config_path(ctx))

    if not config.instances:
        info("No instances configured.")
        suggest("Create one: zd init")
        return

    rows = []
    for name in sorted(config.instances):
        inst = config.instances[name]
        marker = "*" if name == config.current else ""
        rows.append([marker, name, inst.subdomain, inst.host, inst.auth_type.value])
    get_output().print_table(
        ["Current", "Name", "Subdomain", "Host", "Auth"], rows, title="Instances"
    )


@instance_app.command("switch")
def instance_switch(
    ctx: typer.Context,
    name: str = typer.Argument(help="Instance to make current."),
) -> None:
    """Make *name* the current instance."""
    with reporting_errors():
        path = active_config_path(ctx)
        config = load_config(path)
        config.switch_instance(name)
        save_config(config, path)
    success(f"Switched to instance '{name}'.")


@instance_app.command("remove")
def instance_remove(
    ctx: typer.Context,
    name: str = typer.Argument(help="Instance to remove."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Remove an instance and its stored credentials."""
    with reporting_errors():
        path = active_config_path(ctx)
        config = load_config(path)
        config.get_instance(name)

        if not is_forced(ctx, force):
            confirmed = typer.confirm(f"Remove instance '{name}'?")
            if not confirmed:
                info("Cancelled.")
                raise typer.Exit()

        config.remove_instance(name)
        save_config(config, path)

    success(f"Instance '{name}' removed.")
    if config.current:
        info(f"Current instance: {config.current}")


@instance_app.command("current")
def instance_current(ctx: typer.Context) -> None:
    """Print the name of the current instance."""
    with reporting_errors():
        config = load_config(active_config_path(ctx))
        instance = config.get_current_instance()
    print_data(instance.name)


def build_instance(
    name: str,
    subdomain: str,
    host: str,
    auth_type: AuthType,
    email: Optional[str],
    api_token: Optional[str],
    client_id: Optional[str],
    client_secret: Optional[str],
) -> Instance:
    """Assemble an :class:`Instance`, prompting for secrets that were not given."""
    fields: dict[str, object] = {
        "name": name,
        "subdomain": subdomain,
        "host": host,
        "auth_type": auth_type,
    }
    if auth_type == AuthType.OAUTH:
        if not client_id:
            raise InvalidUsageError("--client-id is required for OAuth instances")
        if not client_secret:
            client_secret = typer.prompt("OAuth client secret", hide_input=True)
        fields.update(oauth_client_id=client_id, oauth_client_secret=client_secret)
    else:
        if not email:
            raise InvalidUsageError("--email is required for token instances")
        if not api_token:
            api_token = typer.prompt("API token", hide_input=True)
        fields.update(email=email, api_token=api_token)

    try:
        return Instance.model_validate(fields)
    except ValidationError as exc:
        raise InvalidUsageError(exc.errors()[0]["msg"]) from None
