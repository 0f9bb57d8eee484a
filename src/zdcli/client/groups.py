"""Group operations (read-only)."""

from __future__ import annotations

from zdcli.client.base import DEFAULT_PER_PAGE, BaseClient, page_params
from zdcli.models import (
    Group,
    GroupMembershipPage,
    GroupPage,
    GroupResponse,
    GroupSearchResults,
    UserPage,
)

GROUP_SEARCH_PREFIX = "type:group "


class GroupOperations(BaseClient):
    def list_groups(self, page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> GroupPage:
        params = page_params(page, per_page)
        key = self._key("groups", "list", **params)
        return self._fetch("list groups", key, "/groups.json", GroupPage, params=params)

    def get_group(self, group_id: int) -> Group:
        key = self._key("groups", group_id)
        return self._fetch("get group", key, f"/groups/{group_id}.json", GroupResponse).group

    def search_groups(self, query: str) -> GroupSearchResults:
        key = self._key("groups", "search", query=query)
        return self._fetch(
            "search groups",
            key,
            "/search.json",
            GroupSearchResults,
            params={"query": GROUP_SEARCH_PREFIX + query},
        )

    def list_group_users(
        self, group_id: int, page: int = 1, per_page: int = DEFAULT_PER_PAGE
    ) -> UserPage:
        params = page_params(page, per_page)
        key = self._key("groups", group_id, "users", **params)
        return self._fetch(
            "list group users", key, f"/groups/{group_id}/users.json", UserPage, params=params
        )

    def list_group_memberships(
        self, group_id: int, page: int = 1, per_page: int = DEFAULT_PER_PAGE
    ) -> GroupMembershipPage:
        params = page_params(page, per_page)
        key = self._key("groups", group_id, "memberships", **params)
        return self._fetch(
            "list group memberships",
            key,
            f"/groups/{group_id}/memberships.json",
            GroupMembershipPage,
            params=params,
        )
