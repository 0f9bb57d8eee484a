"""The assembled API client."""

from __future__ import annotations

from zdcli.client.groups import GroupOperations
from zdcli.client.organizations import OrganizationOperations
from zdcli.client.tickets import TicketOperations
from zdcli.client.users import UserOperations


class ZendeskClient(
    UserOperations,
    TicketOperations,
    OrganizationOperations,
    GroupOperations,
):
    """Client for one Zendesk instance, covering every resource family.

    Example::

        from zdcli.client import ZendeskClient

        with ZendeskClient(instance, use_cache=not refresh) as client:
            ticket = client.get_ticket(500)
    """
