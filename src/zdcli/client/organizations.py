"""Organization operations (read-only)."""

from __future__ import annotations

from zdcli.client.base import DEFAULT_PER_PAGE, BaseClient, page_params
from zdcli.models import (
    Organization,
    OrganizationPage,
    OrganizationResponse,
    TicketPage,
    UserPage,
)


class OrganizationOperations(BaseClient):
    def list_organizations(
        self, page: int = 1, per_page: int = DEFAULT_PER_PAGE
    ) -> OrganizationPage:
        params = page_params(page, per_page)
        key = self._key("organizations", "list", **params)
        return self._fetch(
            "list organizations", key, "/organizations.json", OrganizationPage, params=params
        )

    def get_organization(self, organization_id: int) -> Organization:
        key = self._key("organizations", organization_id)
        return self._fetch(
            "get organization",
            key,
            f"/organizations/{organization_id}.json",
            OrganizationResponse,
        ).organization

    def search_organizations(self, name: str) -> OrganizationPage:
        """Look up organizations by exact name."""
        key = self._key("organizations", "search", name=name)
        return self._fetch(
            "search organizations",
            key,
            "/organizations/search.json",
            OrganizationPage,
            params={"name": name},
        )

    def list_organization_users(
        self, organization_id: int, page: int = 1, per_page: int = DEFAULT_PER_PAGE
    ) -> UserPage:
        params = page_params(page, per_page)
        key = self._key("organizations", organization_id, "users", **params)
        return self._fetch(
            "list organization users",
            key,
            f"/organizations/{organization_id}/users.json",
            UserPage,
            params=params,
        )

    def list_organization_tickets(
        self, organization_id: int, page: int = 1, per_page: int = DEFAULT_PER_PAGE
    ) -> TicketPage:
        params = page_params(page, per_page)
        key = self._key("organizations", organization_id, "tickets", **params)
        return self._fetch(
            "list organization tickets",
            key,
            f"/organizations/{organization_id}/tickets.json",
            TicketPage,
            params=params,
        )
