"""Group commands -- ``zd group ...`` (read-only)."""

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
from zdcli.commands.users import USER_COLUMNS

group_app = typer.Typer(no_args_is_help=True)

GROUP_COLUMNS = [
    ("ID", "id"),
    ("Name", "name"),
    ("Default", "default"),
    ("Description", "description"),
]

GROUP_DETAIL = [
    ("ID", "id"),
    ("Name", "name"),
    ("Description", "description"),
    ("Default", "default"),
    ("Deleted", "deleted"),
    ("Created", "created_at"),
    ("Updated", "updated_at"),
]

MEMBERSHIP_COLUMNS = [
    ("ID", "id"),
    ("User", "user_id"),
    ("Group", "group_id"),
    ("Default", "default"),
    ("Created", "created_at"),
]


@group_app.command("list")
def group_list(
    ctx: typer.Context,
    page: int = PAGE_OPTION,
    per_page: int = PER_PAGE_OPTION,
    refresh: bool = REFRESH_OPTION,
) -> None:
    """List groups."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            result = client.list_groups(page=page, per_page=per_page)
    show_records(result.groups, GROUP_COLUMNS, title="Groups")
    page_hint(result, page)


@group_app.command("show")
def group_show(
    ctx: typer.Context,
    group_id: int = typer.Argument(help="Group ID."),
    refresh: bool = REFRESH_OPTION,
) -> None:
    """Show one group."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            group = client.get_group(group_id)
    show_record(group, GROUP_DETAIL, title=group.name or f"Group {group_id}")


@group_app.command("search")
def group_search(
    ctx: typer.Context,
    query: str = typer.Argument(help="Search expression."),
    refresh: bool = REFRESH_OPTION,
) -> None:
    """Search groups."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            result = client.search_groups(query)
    show_records(result.results, GROUP_COLUMNS, title=f"Groups matching '{query}'")


@group_app.command("users")
def group_users(
    ctx: typer.Context,
    group_id: int = typer.Argument(help="Group ID."),
    page: int = PAGE_OPTION,
    per_page: int = PER_PAGE_OPTION,
    refresh: bool = REFRESH_OPTION,
) -> None:
    """List the agents in a group."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            result = client.list_group_users(group_id, page=page, per_page=per_page)
    show_records(result.users, USER_COLUMNS, title=f"Users in group {group_id}")
    page_hint(result, page)


@group_app.command("memberships")
def group_memberships(
    ctx: typer.Context,
    group_id: int = typer.Argument(help="Group ID."),
    page: int = PAGE_OPTION,
    per_page: int = PER_PAGE_OPTION,
    refresh: bool = REFRESH_OPTION,
) -> None:
    """List a group's memberships."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            result = client.list_group_memberships(group_id, page=page, per_page=per_page)
    show_records(result.group_memberships, MEMBERSHIP_COLUMNS, title=f"Memberships of group {group_id}")
    page_hint(result, page)
