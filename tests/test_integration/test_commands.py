"""Integration tests for the resource commands, the cache, and error exits."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from zdcli.app import app
from zdcli.models import ZdConfig


@pytest.fixture
def ticket_api(api, ticket_payload):
    api.on("GET", "/tickets.json", {"tickets": [ticket_payload], "next_page": None, "count": 1})
    api.on("GET", "/tickets/500.json", {"ticket": ticket_payload})
    return api


def _json(result) -> object:
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


# ---------------------------------------------------------------------------
# Tickets
# ---------------------------------------------------------------------------


class TestTickets:
    def test_list_json(self, cli_runner, configured: ZdConfig, ticket_api) -> None:
        records = _json(cli_runner.invoke(app, ["-q", "-o", "json", "ticket", "list"]))
        assert records[0]["id"] == 500
        assert records[0]["tags"] == ["hardware", "fire"]

    def test_list_sends_paging_and_status(
        self, cli_runner, configured: ZdConfig, ticket_api
    ) -> None:
        cli_runner.invoke(
            app, ["-q", "ticket", "list", "--status", "OPEN", "--page", "2", "--per-page", "500"]
        )
        params = ticket_api.requests[0].url.params
        assert params["status"] == "open"
        assert params["page"] == "2"
        assert params["per_page"] == "100"

    def test_list_invalid_status(self, cli_runner, configured: ZdConfig, ticket_api) -> None:
        result = cli_runner.invoke(app, ["ticket", "list", "--status", "archived"])
        assert result.exit_code == 2
        assert "invalid status 'archived'" in result.output
        assert ticket_api.requests == []

    def test_list_invalid_page(self, cli_runner, configured: ZdConfig, ticket_api) -> None:
        result = cli_runner.invoke(app, ["ticket", "list", "--page", "0"])
        assert result.exit_code == 2

    def test_list_more_pages_hint(self, cli_runner, configured: ZdConfig, api, ticket_payload) -> None:
        api.on(
            "GET",
            "/tickets.json",
            {"tickets": [ticket_payload], "next_page": "https://acme.zendesk.com/api/v2/tickets.json?page=2"},
        )
        result = cli_runner.invoke(app, ["--no-color", "ticket", "list"])
        assert "More results: --page 2" in result.output

    def test_list_empty(self, cli_runner, configured: ZdConfig, api) -> None:
        api.on("GET", "/tickets.json", {"tickets": []})
        result = cli_runner.invoke(app, ["ticket", "list"])
        assert result.exit_code == 0
        assert "No results." in result.output

    def test_list_csv(self, cli_runner, configured: ZdConfig, ticket_api) -> None:
        result = cli_runner.invoke(app, ["-q", "-o", "csv", "ticket", "list"])
        lines = result.stdout.splitlines()
        assert lines[0] == "ID,Status,Priority,Subject,Assignee,Updated"
        assert lines[1].startswith("500,open,urgent,Printer on fire,42,2026-03-02T09:30:00")

    def test_show_plain(self, cli_runner, configured: ZdConfig, ticket_api) -> None:
        result = cli_runner.invoke(app, ["-q", "--no-color", "ticket", "show", "500"])
        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert lines[0] == "Field\tValue"
        assert "Subject\tPrinter on fire" in lines
        assert "Tags\thardware;fire" in lines

    def test_show_not_found(self, cli_runner, configured: ZdConfig, api) -> None:
        result = cli_runner.invoke(app, ["ticket", "show", "999"])
        assert result.exit_code == 4
        assert "RecordNotFound" in result.output
        assert "Verify the ID is correct." in result.output

    def test_comments(self, cli_runner, configured: ZdConfig, api) -> None:
        api.on(
            "GET",
            "/tickets/500/comments.json",
            {"comments": [{"id": 1, "author_id": 7, "body": "It's smoking", "public": True}]},
        )
        result = cli_runner.invoke(app, ["-q", "--no-color", "ticket", "comments", "500"])
        assert result.stdout.splitlines()[1] == "1\t7\tyes\t\tIt's smoking"

    def test_search(self, cli_runner, configured: ZdConfig, api, ticket_payload) -> None:
        api.on("GET", "/search.json", {"results": [ticket_payload], "count": 1})
        records = _json(cli_runner.invoke(app, ["-q", "-o", "json", "ticket", "search", "printer"]))
        assert records[0]["subject"] == "Printer on fire"
        assert api.requests[0].url.params["query"] == "type:ticket printer"

    def test_create(self, cli_runner, configured: ZdConfig, api, ticket_payload) -> None:
        api.on("POST", "/tickets.json", {"ticket": ticket_payload})
        result = cli_runner.invoke(
            app,
            [
                "-o", "json", "ticket", "create",
                "--subject", "Printer on fire", "--body", "Send help",
                "--priority", "urgent", "--tag", "hardware", "--tag", "fire",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Created ticket #500." in result.output
        assert api.body() == {
            "ticket": {
                "subject": "Printer on fire",
                "priority": "urgent",
                "tags": ["hardware", "fire"],
                "comment": {"body": "Send help"},
            }
        }

    def test_create_invalid_priority(self, cli_runner, configured: ZdConfig, api) -> None:
        result = cli_runner.invoke(
            app, ["ticket", "create", "--subject", "s", "--body", "b", "--priority", "asap"]
        )
        assert result.exit_code == 2
        assert api.requests == []

    def test_update(self, cli_runner, configured: ZdConfig, api, ticket_payload) -> None:
        api.on("PUT", "/tickets/500.json", {"ticket": {**ticket_payload, "priority": "low"}})
        result = cli_runner.invoke(app, ["ticket", "update", "500", "--priority", "low"])
        assert result.exit_code == 0, result.output
        assert api.body() == {"ticket": {"priority": "low"}}

    def test_update_without_fields(self, cli_runner, configured: ZdConfig, api) -> None:
        result = cli_runner.invoke(app, ["ticket", "update", "500"])
        assert result.exit_code == 2
        assert "no fields to update" in result.output
        assert api.requests == []

    def test_comment_private(self, cli_runner, configured: ZdConfig, api, ticket_payload) -> None:
        api.on("PUT", "/tickets/500.json", {"ticket": ticket_payload})
        result = cli_runner.invoke(app, ["ticket", "comment", "500", "Checked the fuse", "--private"])
        assert result.exit_code == 0, result.output
        assert "Added internal note to ticket #500." in result.output
        assert api.body() == {"ticket": {"comment": {"body": "Checked the fuse", "public": False}}}

    def test_assign(self, cli_runner, configured: ZdConfig, api, ticket_payload) -> None:
        api.on("PUT", "/tickets/500.json", {"ticket": {**ticket_payload, "assignee_id": 77}})
        result = cli_runner.invoke(app, ["ticket", "assign", "500", "77"])
        assert result.exit_code == 0, result.output
        assert "Assigned ticket #500 to user 77." in result.output
        assert api.body() == {"ticket": {"assignee_id": 77}}

    def test_close_with_comment(self, cli_runner, configured: ZdConfig, api, ticket_payload) -> None:
        api.on("PUT", "/tickets/500.json", {"ticket": {**ticket_payload, "status": "solved"}})
        result = cli_runner.invoke(app, ["ticket", "close", "500", "--comment", "Replaced it"])
        assert result.exit_code == 0, result.output
        assert "Ticket #500 is now solved." in result.output
        assert api.body() == {
            "ticket": {"status": "solved", "comment": {"body": "Replaced it", "public": True}}
        }

    def test_validation_details_are_listed(self, cli_runner, configured: ZdConfig, api) -> None:
        api.on(
            "PUT",
            "/tickets/500.json",
            httpx.Response(
                422,
                json={
                    "error": "RecordInvalid",
                    "description": "Record validation errors",
                    "details": {"status": [{"description": "Status: closed prevents ticket update"}]},
                },
            ),
        )
        result = cli_runner.invoke(app, ["--no-color", "ticket", "update", "500", "--status", "open"])
        assert result.exit_code == 1
        assert "RecordInvalid: Record validation errors" in result.output
        assert "closed prevents ticket update" in result.output


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class TestUsers:
    def test_me(self, cli_runner, configured: ZdConfig, api, user_payload) -> None:
        api.on("GET", "/users/me.json", {"user": user_payload})
        record = _json(cli_runner.invoke(app, ["-q", "-o", "json", "user", "me"]))
        assert record["email"] == "ada@acme.com"

    def test_list_csv(self, cli_runner, configured: ZdConfig, api, user_payload) -> None:
        api.on("GET", "/users.json", {"users": [user_payload]})
        result = cli_runner.invoke(app, ["-q", "-o", "csv", "user", "list"])
        assert result.stdout.splitlines() == [
            "ID,Name,Email,Role,Suspended",
            "42,Ada Agent,ada@acme.com,agent,no",
        ]

    def test_search(self, cli_runner, configured: ZdConfig, api, user_payload) -> None:
        api.on("GET", "/users/search.json", {"users": [user_payload]})
        cli_runner.invoke(app, ["-q", "user", "search", "ada@acme.com"])
        assert api.requests[0].url.params["query"] == "ada@acme.com"

    def test_create(self, cli_runner, configured: ZdConfig, api, user_payload) -> None:
        api.on("POST", "/users.json", {"user": user_payload})
        result = cli_runner.invoke(
            app, ["user", "create", "--name", "Ada Agent", "--email", "ada@acme.com", "--role", "agent"]
        )
        assert result.exit_code == 0, result.output
        assert "Created user 42 (Ada Agent)." in result.output
        assert api.body() == {"user": {"name": "Ada Agent", "email": "ada@acme.com", "role": "agent"}}

    def test_suspend(self, cli_runner, configured: ZdConfig, api, user_payload) -> None:
        api.on("PUT", "/users/42.json", {"user": {**user_payload, "suspended": True}})
        result = cli_runner.invoke(app, ["user", "suspend", "42"])
        assert result.exit_code == 0, result.output
        assert api.body() == {"user": {"suspended": True}}

    def test_delete_forced(self, cli_runner, configured: ZdConfig, api) -> None:
        api.on("DELETE", "/users/42.json", httpx.Response(204))
        result = cli_runner.invoke(app, ["user", "delete", "42", "--force"])
        assert result.exit_code == 0, result.output
        assert "Deleted user 42." in result.output
        assert len(api.sent("DELETE", "/users/42.json")) == 1

    def test_delete_declined(self, cli_runner, configured: ZdConfig, api) -> None:
        result = cli_runner.invoke(app, ["user", "delete", "42"], input="n\n")
        assert result.exit_code == 0
        assert "Cancelled." in result.output
        assert api.requests == []


# ---------------------------------------------------------------------------
# Organizations and groups
# ---------------------------------------------------------------------------


class TestOrganizationsAndGroups:
    def test_organization_list(self, cli_runner, configured: ZdConfig, api) -> None:
        api.on("GET", "/organizations.json", {"organizations": [{"id": 9, "name": "Globex"}]})
        records = _json(cli_runner.invoke(app, ["-q", "-o", "json", "organization", "list"]))
        assert records[0]["name"] == "Globex"

    def test_organization_tickets(self, cli_runner, configured: ZdConfig, api, ticket_payload) -> None:
        api.on("GET", "/organizations/9/tickets.json", {"tickets": [ticket_payload]})
        records = _json(cli_runner.invoke(app, ["-q", "-o", "json", "organization", "tickets", "9"]))
        assert records[0]["id"] == 500

    def test_group_search(self, cli_runner, configured: ZdConfig, api) -> None:
        api.on("GET", "/search.json", {"results": [{"id": 3, "name": "Support"}]})
        records = _json(cli_runner.invoke(app, ["-q", "-o", "json", "group", "search", "Support"]))
        assert records[0]["id"] == 3
        assert api.requests[0].url.params["query"] == "type:group Support"

    def test_group_memberships(self, cli_runner, configured: ZdConfig, api) -> None:
        api.on(
            "GET",
            "/groups/3/memberships.json",
            {"group_memberships": [{"id": 1, "user_id": 42, "group_id": 3}]},
        )
        records = _json(cli_runner.invoke(app, ["-q", "-o", "json", "group", "memberships", "3"]))
        assert records[0]["user_id"] == 42


# ---------------------------------------------------------------------------
# Response cache
# ---------------------------------------------------------------------------


class TestCache:
    def test_second_read_served_from_cache(
        self, cli_runner, configured: ZdConfig, ticket_api
    ) -> None:
        for _ in range(2):
            result = cli_runner.invoke(app, ["-q", "-o", "json", "ticket", "show", "500"])
            assert result.exit_code == 0, result.output
        assert len(ticket_api.sent("GET", "/tickets/500.json")) == 1

    def test_refresh_bypasses_cache(self, cli_runner, configured: ZdConfig, ticket_api) -> None:
        cli_runner.invoke(app, ["-q", "ticket", "show", "500"])
        cli_runner.invoke(app, ["-q", "ticket", "show", "500", "--refresh"])
        assert len(ticket_api.sent("GET", "/tickets/500.json")) == 2

    def test_write_invalidates_ticket(
        self, cli_runner, configured: ZdConfig, ticket_api, ticket_payload
    ) -> None:
        ticket_api.on("PUT", "/tickets/500.json", {"ticket": ticket_payload})
        cli_runner.invoke(app, ["-q", "ticket", "show", "500"])
        cli_runner.invoke(app, ["-q", "ticket", "comment", "500", "Update"])
        cli_runner.invoke(app, ["-q", "ticket", "show", "500"])
        assert len(ticket_api.sent("GET", "/tickets/500.json")) == 2

    def test_cache_hit_logged_when_verbose(
        self, cli_runner, configured: ZdConfig, ticket_api
    ) -> None:
        cli_runner.invoke(app, ["-q", "ticket", "show", "500"])
        result = cli_runner.invoke(app, ["-v", "--no-color", "ticket", "show", "500"])
        assert "[debug] Cache hit: acme.zendesk.com:tickets:500" in result.output

    def test_info_and_clear(
        self, cli_runner, configured: ZdConfig, ticket_api, isolated_config: Path
    ) -> None:
        cli_runner.invoke(app, ["-q", "ticket", "show", "500"])
        cli_runner.invoke(app, ["-q", "ticket", "list"])

        info = cli_runner.invoke(app, ["-q", "--no-color", "cache", "info"])
        assert info.exit_code == 0, info.output
        lines = info.stdout.splitlines()
        assert f"Directory\t{isolated_config / 'cache' / 'zd'}" in lines
        assert "Entries\t2" in lines
        assert "TTL\t600s" in lines

        cleared = cli_runner.invoke(app, ["cache", "clear"])
        assert "Cleared 2 cache entries." in cleared.output

        cli_runner.invoke(app, ["-q", "ticket", "show", "500"])
        assert len(ticket_api.sent("GET", "/tickets/500.json")) == 2

    def test_prune_empty(self, cli_runner, configured: ZdConfig) -> None:
        result = cli_runner.invoke(app, ["cache", "prune"])
        assert result.exit_code == 0
        assert "Pruned 0 expired cache entries." in result.output

    def test_disabled_cache(self, cli_runner, configured: ZdConfig, ticket_api) -> None:
        from zdcli.config import save_config

        configured.cache.enabled = False
        save_config(configured)
        for _ in range(2):
            cli_runner.invoke(app, ["-q", "ticket", "show", "500"])
        assert len(ticket_api.sent("GET", "/tickets/500.json")) == 2


# ---------------------------------------------------------------------------
# Instance selection and error exits
# ---------------------------------------------------------------------------


class TestInstanceSelection:
    def test_no_instance_configured(self, cli_runner, isolated_config: Path, api) -> None:
        result = cli_runner.invoke(app, ["ticket", "list"])
        assert result.exit_code == 1
        assert "zd init" in result.output
        assert api.requests == []

    def test_unknown_instance_flag(self, cli_runner, configured: ZdConfig, api) -> None:
        result = cli_runner.invoke(app, ["--instance", "ghost", "ticket", "list"])
        assert result.exit_code == 1
        assert "Instance 'ghost' not found" in result.output

    def test_env_selects_instance(
        self, cli_runner, configured: ZdConfig, api, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        from zdcli.config import save_config
        from zdcli.models import Instance

        configured.add_instance(
            Instance(name="staging", subdomain="acme-staging", email="a@b.com", api_token="t")
        )
        save_config(configured)
        monkeypatch.setenv("ZD_INSTANCE", "staging")
        api.on("GET", "/tickets.json", {"tickets": []})

        cli_runner.invoke(app, ["-q", "ticket", "list"])
        assert api.requests[0].url.host == "acme-staging.zendesk.com"


class TestErrorExits:
    @pytest.mark.parametrize(
        "status,exit_code",
        [(401, 3), (403, 3), (404, 4), (422, 1), (429, 8), (500, 5), (503, 5)],
    )
    def test_status_to_exit_code(
        self, cli_runner, configured: ZdConfig, api, status: int, exit_code: int
    ) -> None:
        api.on("GET", "/users/me.json", httpx.Response(status))
        result = cli_runner.invoke(app, ["user", "me"])
        assert result.exit_code == exit_code

    def test_rate_limit_suggestion(self, cli_runner, configured: ZdConfig, api) -> None:
        api.on("GET", "/users/me.json", httpx.Response(429))
        result = cli_runner.invoke(app, ["--no-color", "user", "me"])
        assert "Rate Limit Exceeded" in result.output
        assert "Wait a moment" in result.output

    def test_connection_failure(self, cli_runner, configured: ZdConfig, api) -> None:
        def _refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        api.on("GET", "/users/me.json", _refuse)
        result = cli_runner.invoke(app, ["user", "me"])
        assert result.exit_code == 6
        assert "failed to get current user" in result.output

    def test_malformed_body(self, cli_runner, configured: ZdConfig, api) -> None:
        api.on("GET", "/users/me.json", {"unexpected": True})
        result = cli_runner.invoke(app, ["user", "me"])
        assert result.exit_code == 1
        assert "unexpected response body" in result.output

    def test_retry_enabled_in_config(
        self, cli_runner, configured: ZdConfig, api, user_payload, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        from zdcli.config import save_config

        monkeypatch.setattr("zdcli.client.retry._wait", lambda delay, event, deadline: None)
        configured.request.retry = True
        save_config(configured)
        replies = iter([httpx.Response(503), httpx.Response(200, json={"user": user_payload})])
        api.on("GET", "/users/me.json", lambda request: next(replies))

        result = cli_runner.invoke(app, ["-q", "-o", "json", "user", "me"])
        assert result.exit_code == 0, result.output
        assert len(api.requests) == 2
