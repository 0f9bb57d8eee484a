"""Ticket commands -- ``zd ticket ...``.

``comment``, ``assign``, and ``close`` are thin wrappers around a ticket
update; ``close`` sets the status to ``solved``.
"""

from __future__ import annotations

from typing import Optional

import typer

from zdcli.commands._common import (
    PAGE_OPTION,
    PER_PAGE_OPTION,
    REFRESH_OPTION,
    check_choice,
    open_client,
    page_hint,
    reporting_errors,
    require_fields,
    show_record,
    show_records,
)
from zdcli.models import CreateTicketRequest, TicketCommentInput, UpdateTicketRequest
from zdcli.output import success

ticket_app = typer.Typer(no_args_is_help=True)

TICKET_STATUSES = ("new", "open", "pending", "hold", "solved", "closed")
TICKET_PRIORITIES = ("low", "normal", "high", "urgent")
TICKET_TYPES = ("problem", "incident", "question", "task")

TICKET_COLUMNS = [
    ("ID", "id"),
    ("Status", "status"),
    ("Priority", "priority"),
    ("Subject", "subject"),
    ("Assignee", "assignee_id"),
    ("Updated", "updated_at"),
]

TICKET_DETAIL = [
    ("ID", "id"),
    ("Subject", "subject"),
    ("Status", "status"),
    ("Priority", "priority"),
    ("Type", "type"),
    ("Requester", "requester_id"),
    ("Assignee", "assignee_id"),
    ("Group", "group_id"),
    ("Organization", "organization_id"),
    ("Tags", "tags"),
    ("Created", "created_at"),
    ("Updated", "updated_at"),
    ("Description", "description"),
]

COMMENT_COLUMNS = [
    ("ID", "id"),
    ("Author", "author_id"),
    ("Public", "public"),
    ("Created", "created_at"),
    ("Body", "body"),
]


@ticket_app.command("list")
def ticket_list(
    ctx: typer.Context,
    status: Optional[str] = typer.Option(None, "--status", help="Only tickets in this status."),
    page: int = PAGE_OPTION,
    per_page: int = PER_PAGE_OPTION,
    refresh: bool = REFRESH_OPTION,
) -> None:
    """List tickets.

    Example::

        zd ticket list --status open
        zd -o csv ticket list --per-page 100 > tickets.csv
    """
    with reporting_errors():
        status = check_choice(status, TICKET_STATUSES, "status")
        with open_client(ctx, refresh) as client:
            result = client.list_tickets(page=page, per_page=per_page, status=status)
    show_records(result.tickets, TICKET_COLUMNS, title="Tickets")
    page_hint(result, page)


@ticket_app.command("show")
def ticket_show(
    ctx: typer.Context,
    ticket_id: int = typer.Argument(help="Ticket ID."),
    refresh: bool = REFRESH_OPTION,
) -> None:
    """Show one ticket."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            ticket = client.get_ticket(ticket_id)
    show_record(ticket, TICKET_DETAIL, title=f"Ticket #{ticket_id}")


@ticket_app.command("comments")
def ticket_comments(
    ctx: typer.Context,
    ticket_id: int = typer.Argument(help="Ticket ID."),
    refresh: bool = REFRESH_OPTION,
) -> None:
    """List a ticket's comments, oldest first."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            result = client.list_ticket_comments(ticket_id)
    show_records(result.comments, COMMENT_COLUMNS, title=f"Comments on #{ticket_id}")


@ticket_app.command("search")
def ticket_search(
    ctx: typer.Context,
    query: str = typer.Argument(help="Zendesk search expression, e.g. 'status:open printer'."),
    refresh: bool = REFRESH_OPTION,
) -> None:
    """Search tickets."""
    with reporting_errors():
        with open_client(ctx, refresh) as client:
            result = client.search_tickets(query)
    show_records(result.results, TICKET_COLUMNS, title=f"Tickets matching '{query}'")


@ticket_app.command("create")
def ticket_create(
    ctx: typer.Context,
    subject: str = typer.Option(..., "--subject", help="Ticket subject."),
    body: str = typer.Option(..., "--body", help="First comment / description."),
    priority: Optional[str] = typer.Option(None, "--priority", help="low, normal, high, urgent."),
    ticket_type: Optional[str] = typer.Option(
        None, "--type", help="problem, incident, question, task."
    ),
    status: Optional[str] = typer.Option(None, "--status", help="Initial status."),
    assignee: Optional[int] = typer.Option(None, "--assignee", help="Assignee user ID."),
    group: Optional[int] = typer.Option(None, "--group", help="Group ID."),
    tags: Optional[list[str]] = typer.Option(None, "--tag", help="Tag (repeatable)."),
) -> None:
    """Create a ticket."""
    with reporting_errors():
        request = CreateTicketRequest(
            subject=subject,
            body=body,
            priority=check_choice(priority, TICKET_PRIORITIES, "priority"),
            type=check_choice(ticket_type, TICKET_TYPES, "type"),
            status=check_choice(status, TICKET_STATUSES, "status"),
            assignee_id=assignee,
            group_id=group,
            tags=tags or None,
        )
        with open_client(ctx) as client:
            ticket = client.create_ticket(request)
    success(f"Created ticket #{ticket.id}.")
    show_record(ticket, TICKET_DETAIL)


@ticket_app.command("update")
def ticket_update(
    ctx: typer.Context,
    ticket_id: int = typer.Argument(help="Ticket ID."),
    subject: Optional[str] = typer.Option(None, "--subject", help="New subject."),
    priority: Optional[str] = typer.Option(None, "--priority", help="low, normal, high, urgent."),
    status: Optional[str] = typer.Option(None, "--status", help="New status."),
    assignee: Optional[int] = typer.Option(None, "--assignee", help="Assignee user ID."),
    group: Optional[int] = typer.Option(None, "--group", help="Group ID."),
    tags: Optional[list[str]] = typer.Option(
        None, "--tag", help="Replace the tags (repeatable)."
    ),
) -> None:
    """Update a ticket's fields."""
    with reporting_errors():
        fields = {
            "subject": subject,
            "priority": check_choice(priority, TICKET_PRIORITIES, "priority"),
            "status": check_choice(status, TICKET_STATUSES, "status"),
            "assignee_id": assignee,
            "group_id": group,
            "tags": tags or None,
        }
        require_fields(fields, "ticket")
        with open_client(ctx) as client:
            ticket = client.update_ticket(ticket_id, UpdateTicketRequest(**fields))
    success(f"Updated ticket #{ticket.id}.")
    show_record(ticket, TICKET_DETAIL)


@ticket_app.command("comment")
def ticket_comment(
    ctx: typer.Context,
    ticket_id: int = typer.Argument(help="Ticket ID."),
    body: str = typer.Argument(help="Comment text."),
    private: bool = typer.Option(False, "--private", help="Add an internal note."),
) -> None:
    """Add a comment to a ticket."""
    with reporting_errors():
        with open_client(ctx) as client:
            client.add_comment(ticket_id, body, public=not private)
    kind = "internal note" if private else "public comment"
    success(f"Added {kind} to ticket #{ticket_id}.")


@ticket_app.command("assign")
def ticket_assign(
    ctx: typer.Context,
    ticket_id: int = typer.Argument(help="Ticket ID."),
    assignee: int = typer.Argument(help="Assignee user ID."),
) -> None:
    """Assign a ticket to an agent."""
    with reporting_errors():
        with open_client(ctx) as client:
            ticket = client.update_ticket(
                ticket_id, UpdateTicketRequest(assignee_id=assignee), operation="assign ticket"
            )
    success(f"Assigned ticket #{ticket.id} to user {ticket.assignee_id}.")


@ticket_app.command("close")
def ticket_close(
    ctx: typer.Context,
    ticket_id: int = typer.Argument(help="Ticket ID."),
    comment: Optional[str] = typer.Option(
        None, "--comment", help="Public comment to add while solving."
    ),
) -> None:
    """Solve a ticket (status ``solved``)."""
    with reporting_errors():
        request = UpdateTicketRequest(status="solved")
        if comment:
            request.comment = TicketCommentInput(body=comment)
        with open_client(ctx) as client:
            ticket = client.update_ticket(ticket_id, request, operation="close ticket")
    success(f"Ticket #{ticket.id} is now {ticket.status}.")
