"""Ticket operations.

Updates and comments are both ticket writes; each one invalidates the
ticket's cached entry and its cached comment list.
"""

from __future__ import annotations

from typing import Optional

from zdcli.client.base import DEFAULT_PER_PAGE, BaseClient, page_params
from zdcli.exceptions import InvalidUsageError
from zdcli.models import (
    CommentPage,
    CreateTicketRequest,
    Ticket,
    TicketCommentInput,
    TicketPage,
    TicketResponse,
    TicketSearchResults,
    UpdateTicketRequest,
)

TICKET_SEARCH_PREFIX = "type:ticket "


class TicketOperations(BaseClient):
    def list_tickets(
        self,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        status: Optional[str] = None,
    ) -> TicketPage:
        params: dict = page_params(page, per_page)
        if status:
            params["status"] = status
        key = self._key("tickets", "list", **params)
        return self._fetch("list tickets", key, "/tickets.json", TicketPage, params=params)

    def get_ticket(self, ticket_id: int) -> Ticket:
        key = self._key("tickets", ticket_id)
        return self._fetch(
            "get ticket", key, f"/tickets/{ticket_id}.json", TicketResponse
        ).ticket

    def list_ticket_comments(self, ticket_id: int) -> CommentPage:
        key = self._key("tickets", ticket_id, "comments")
        return self._fetch(
            "list ticket comments", key, f"/tickets/{ticket_id}/comments.json", CommentPage
        )

    def search_tickets(self, query: str) -> TicketSearchResults:
        """Run *query* through the generic search endpoint, scoped to tickets."""
        key = self._key("tickets", "search", query=query)
        return self._fetch(
            "search tickets",
            key,
            "/search.json",
            TicketSearchResults,
            params={"query": TICKET_SEARCH_PREFIX + query},
        )

    def create_ticket(self, request: CreateTicketRequest) -> Ticket:
        response = self._write(
            "create ticket",
            "POST",
            "/tickets.json",
            json_body=request.to_payload(),
            model=TicketResponse,
        )
        return response.ticket

    def update_ticket(
        self, ticket_id: int, request: UpdateTicketRequest, operation: str = "update ticket"
    ) -> Ticket:
        """Apply the fields set on *request* to the ticket.

        Raises:
            InvalidUsageError: If *request* sets no field at all.
        """
        if request.is_empty():
            raise InvalidUsageError("no fields to update")
        response = self._write(
            operation,
            "PUT",
            f"/tickets/{ticket_id}.json",
            json_body=request.to_payload(),
            model=TicketResponse,
            invalidate=(
                self._key("tickets", ticket_id),
                self._key("tickets", ticket_id, "comments"),
            ),
        )
        return response.ticket

    def add_comment(self, ticket_id: int, body: str, public: bool = True) -> Ticket:
        request = UpdateTicketRequest(comment=TicketCommentInput(body=body, public=public))
        return self.update_ticket(ticket_id, request, operation="add comment")
