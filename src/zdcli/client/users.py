"""User operations."""

from __future__ import annotations

from zdcli.client.base import DEFAULT_PER_PAGE, BaseClient, page_params
from zdcli.models import CreateUserRequest, UpdateUserRequest, User, UserPage, UserResponse


class UserOperations(BaseClient):
    def get_current_user(self) -> User:
        """Return the user the credentials belong to."""
        key = self._key("users", "me")
        return self._fetch("get current user", key, "/users/me.json", UserResponse).user

    def list_users(self, page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> UserPage:
        params = page_params(page, per_page)
        key = self._key("users", "list", **params)
        return self._fetch("list users", key, "/users.json", UserPage, params=params)

    def search_users(self, query: str) -> UserPage:
        """Search users by name, email, or any Zendesk user search expression."""
        key = self._key("users", "search", query=query)
        return self._fetch(
            "search users", key, "/users/search.json", UserPage, params={"query": query}
        )

    def get_user(self, user_id: int) -> User:
        key = self._key("users", user_id)
        return self._fetch("get user", key, f"/users/{user_id}.json", UserResponse).user

    def create_user(self, request: CreateUserRequest) -> User:
        response = self._write(
            "create user",
            "POST",
            "/users.json",
            json_body={"user": request.model_dump(exclude_none=True)},
            model=UserResponse,
        )
        return response.user

    def update_user(self, user_id: int, request: UpdateUserRequest) -> User:
        return self._update_user(
            "update user", user_id, request.model_dump(exclude_none=True)
        )

    def suspend_user(self, user_id: int) -> User:
        return self._update_user("suspend user", user_id, {"suspended": True})

    def unsuspend_user(self, user_id: int) -> User:
        return self._update_user("unsuspend user", user_id, {"suspended": False})

    def delete_user(self, user_id: int) -> None:
        """Delete a user. The API answers 200 with the user or 204 empty."""
        self._write(
            "delete user",
            "DELETE",
            f"/users/{user_id}.json",
            invalidate=(self._key("users", user_id),),
        )

    def _update_user(self, operation: str, user_id: int, fields: dict) -> User:
        response = self._write(
            operation,
            "PUT",
            f"/users/{user_id}.json",
            json_body={"user": fields},
            model=UserResponse,
            invalidate=(self._key("users", user_id),),
        )
        return response.user
