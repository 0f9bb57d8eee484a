"""User commands -- ``zd user ...``.

Read commands go through the response cache unless ``--refresh`` is
given; writes invalidate the cached copy of the user they change.
"""

from __future__ import annotations

from typing import Optional

import typer

from zdcli.commands._common import (
    PAGE_OPTION,
    PER_PAGE_OPTION,
    REFRESH_OPTION,
    check_choice,
    is_forced,
    open_client,
    page_hint,
    reporting_errors,
    require_fields,
    show_record,
    show_records,
)
from zdcli.models import CreateUserRequest, UpdateUserRequest
from zdcli.output import info, success

user_app = typer.Typer(no_args_is_help=True)

USER_ROLES = ("end-user", "agent", "admin")

USER_COLUMNS = [
    ("ID", "id"),
    ("Name", "name"),
    ("Email", "email"),
    ("Role", "role"),
    ("Suspended", "suspended"),
]

USER_DETAIL = [
    ("ID", "id"),
    ("Name", "name"),
    ("Email", "email"),
    ("Role", "role"),
    ("Phone", "phone"),
    ("Organization", "organization_id"),
    ("Verified", "verified"),
    ("Active", "active"),
    ("Suspended", "suspended"),
    ("Time zone", "time_zone"),
    ("Locale", "locale"),
    ("Tags", "tags"),
    ("Created", "created_at"),
    ("Last login", "last_login_at"),
]


@user_app.command("me")
def user_me(ctx: typer.Context, refresh: bool = REFRESH_OPTION) -> None:
    """Show the user the credentials belong to."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            user = client.get_current_user()
    show_record(user, USER_DETAIL, title="Current User")


@user_app.command("list")
def user_list(
    ctx: typer.Context,
    page: int = PAGE_OPTION,
    per_page: int = PER_PAGE_OPTION,
    refresh: bool = REFRESH_OPTION,
) -> None:
    """List users.

    Example::

        zd user list --per-page 25 --page 2
    """
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            result = client.list_users(page=page, per_page=per_page)
    show_records(result.users, USER_COLUMNS, title="Users")
    page_hint(result, page)


@user_app.command("search")
def user_search(
    ctx: typer.Context,
    query: str = typer.Argument(help="Name, email, or Zendesk search expression."),
    refresh: bool = REFRESH_OPTION,
) -> None:
    """Search users."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            result = client.search_users(query)
    show_records(result.users, USER_COLUMNS, title=f"Users matching '{query}'")


@user_app.command("show")
def user_show(
    ctx: typer.Context,
    user_id: int = typer.Argument(help="User ID."),
    refresh: bool = REFRESH_OPTION,
) -> None:
    """Show one user."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            user = client.get_user(user_id)
    show_record(user, USER_DETAIL, title=f"User {user_id}")


@user_app.command("create")
def user_create(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Full name."),
    email: str = typer.Option(..., "--email", help="Primary email address."),
    role: Optional[str] = typer.Option(None, "--role", help="end-user, agent, or admin."),
    phone: Optional[str] = typer.Option(None, "--phone", help="Phone number."),
) -> None:
    """Create a user."""
    with reporting_errors():
        request = CreateUserRequest(
            name=name,
            email=email,
            role=check_choice(role, USER_ROLES, "role"),
            phone=phone,
        )
        with open_client(ctx) as client:
            user = client.create_user(request)
    success(f"Created user {user.id} ({user.name}).")
    show_record(user, USER_DETAIL)


@user_app.command("update")
def user_update(
    ctx: typer.Context,
    user_id: int = typer.Argument(help="User ID."),
    name: Optional[str] = typer.Option(None, "--name", help="New name."),
    email: Optional[str] = typer.Option(None, "--email", help="New primary email."),
    phone: Optional[str] = typer.Option(None, "--phone", help="New phone number."),
    role: Optional[str] = typer.Option(None, "--role", help="end-user, agent, or admin."),
    verified: Optional[bool] = typer.Option(
        None, "--verified/--unverified", help="Mark the identity verified or not."
    ),
) -> None:
    """Update a user's fields."""
    with reporting_errors():
        fields = {
            "name": name,
            "email": email,
            "phone": phone,
            "role": check_choice(role, USER_ROLES, "role"),
            "verified": verified,
        }
        require_fields(fields, "user")
        with open_client(ctx) as client:
            user = client.update_user(user_id, UpdateUserRequest(**fields))
    success(f"Updated user {user.id}.")
    show_record(user, USER_DETAIL)


@user_app.command("suspend")
def user_suspend(ctx: typer.Context, user_id: int = typer.Argument(help="User ID.")) -> None:
    """Suspend a user."""
    with reporting_errors():
        with open_client(ctx) as client:
            user = client.suspend_user(user_id)
    success(f"Suspended user {user.id} ({user.name}).")


@user_app.command("unsuspend")
def user_unsuspend(ctx: typer.Context, user_id: int = typer.Argument(help="User ID.")) -> None:
    """Lift a user's suspension."""
    with reporting_errors():
        with open_client(ctx) as client:
            user = client.unsuspend_user(user_id)
    success(f"Unsuspended user {user.id} ({user.name}).")


@user_app.command("delete")
def user_delete(
    ctx: typer.Context,
    user_id: int = typer.Argument(help="User ID."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Delete a user. Asks for confirmation unless ``--force`` is given."""
    if not is_forced(ctx, force):
        confirmed = typer.confirm(f"Delete user {user_id}?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    with reporting_errors():
        with open_client(ctx) as client:
            client.delete_user(user_id)
    success(f"Deleted user {user_id}.")
