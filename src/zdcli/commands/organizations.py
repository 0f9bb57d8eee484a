"""Organization commands -- ``zd organization ...`` (read-only)."""

from __future__ import annotations

import typer

from zdcli.commands._common import (
    PAGE_OPTION,
    PER_PAGE_OPTION,
    REFRESH_OPTION,
    open_client,
    page_hint,
    reporting_errors,
    show_record,
    show_records,
)
from zdcli.commands.tickets import TICKET_COLUMNS
from zdcli.commands.users import USER_COLUMNS

organization_app = typer.Typer(no_args_is_help=True)

ORGANIZATION_COLUMNS = [
    ("ID", "id"),
    ("Name", "name"),
    ("Domains", "domain_names"),
    ("Tags", "tags"),
]

ORGANIZATION_DETAIL = [
    ("ID", "id"),
    ("Name", "name"),
    ("Domains", "domain_names"),
    ("Group", "group_id"),
    ("Shared tickets", "shared_tickets"),
    ("Shared comments", "shared_comments"),
    ("Tags", "tags"),
    ("Details", "details"),
    ("Notes", "notes"),
    ("Created", "created_at"),
    ("Updated", "updated_at"),
]


@organization_app.command("list")
def organization_list(
    ctx: typer.Context,
    page: int = PAGE_OPTION,
    per_page: int = PER_PAGE_OPTION,
    refresh: bool = REFRESH_OPTION,
) -> None:
    """List organizations."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            result = client.list_organizations(page=page, per_page=per_page)
    show_records(result.organizations, ORGANIZATION_COLUMNS, title="Organizations")
    page_hint(result, page)


@organization_app.command("show")
def organization_show(
    ctx: typer.Context,
    organization_id: int = typer.Argument(help="Organization ID."),
    refresh: bool = REFRESH_OPTION,
) -> None:
    """Show one organization."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            org = client.get_organization(organization_id)
    show_record(org, ORGANIZATION_DETAIL, title=org.name or f"Organization {organization_id}")


@organization_app.command("search")
def organization_search(
    ctx: typer.Context,
    name: str = typer.Argument(help="Exact organization name."),
    refresh: bool = REFRESH_OPTION,
) -> None:
    """Find organizations by name."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            result = client.search_organizations(name)
    show_records(result.organizations, ORGANIZATION_COLUMNS, title=f"Organizations named '{name}'")


@organization_app.command("users")
def organization_users(
    ctx: typer.Context,
    organization_id: int = typer.Argument(help="Organization ID."),
    page: int = PAGE_OPTION,
    per_page: int = PER_PAGE_OPTION,
    refresh: bool = REFRESH_OPTION,
) -> None:
    """List the users of an organization."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            result = client.list_organization_users(organization_id, page=page, per_page=per_page)
    show_records(result.users, USER_COLUMNS, title=f"Users of organization {organization_id}")
    page_hint(result, page)


@organization_app.command("tickets")
def organization_tickets(
    ctx: typer.Context,
    organization_id: int = typer.Argument(help="Organization ID."),
    page: int = PAGE_OPTION,
    per_page: int = PER_PAGE_OPTION,
    refresh: bool = REFRESH_OPTION,
) -> None:
    """List the tickets of an organization."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            result = client.list_organization_tickets(
                organization_id, page=page, per_page=per_page
            )
    show_records(result.tickets, TICKET_COLUMNS, title=f"Tickets of organization {organization_id}")
    page_hint(result, page)
