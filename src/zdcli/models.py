"""Canonical Pydantic models shared across all zdcli modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`AuthType`, :class:`Instance`, :class:`CacheConfig`,
    :class:`RequestConfig`, and :class:`ZdConfig`.

**API entity models** -- read-mostly projections of the remote JSON:
    :class:`User`, :class:`Ticket`, :class:`Comment`, :class:`Organization`,
    :class:`Group`, :class:`GroupMembership`, the paged envelopes built on
    :class:`Page`, and the single-resource wrappers (:class:`UserResponse`,
    etc.).

**Write payloads** -- request bodies for create/update calls:
    :class:`CreateUserRequest`, :class:`UpdateUserRequest`,
    :class:`CreateTicketRequest`, :class:`UpdateTicketRequest`, and
    :class:`TicketCommentInput`.

All models use Pydantic v2. Entity models ignore unknown keys so that new
fields on the remote side never break decoding.
"""

from __future__ import annotations

import enum
import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from zdcli.exceptions import ConfigError

_INSTANCE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")

DEFAULT_HOST = "zendesk.com"


# --- Configuration ---


class AuthType(str, enum.Enum):
    """Authentication mode of an :class:`Instance`."""

    TOKEN = "token"
    OAUTH = "oauth"


class Instance(BaseModel):
    """One configured remote account: subdomain plus credentials.

    Only the fields of the declared :attr:`auth_type` are meaningful; the
    other mode's fields are ignored. Validation of the required fields
    happens when an API client is built from the instance, see
    :func:`zdcli.auth.token.validate_instance`.

    Example::

        Instance(
            name="acme",
            subdomain="acme",
            auth_type=AuthType.TOKEN,
            email="agent@acme.com",
            api_token="tok123",
        )
    """

    name: str
    subdomain: str
    host: str = Field(default=DEFAULT_HOST, description="Root domain of the API host")
    auth_type: AuthType = AuthType.TOKEN
    # Token mode
    email: str = ""
    api_token: str = ""
    # OAuth mode
    oauth_client_id: str = ""
    oauth_client_secret: str = ""
    oauth_access_token: str = ""
    oauth_refresh_token: str = ""
    oauth_expiry: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not _INSTANCE_NAME_RE.match(value):
            raise ValueError(
                "instance name may only contain letters, digits, '-' and '_'"
            )
        return value

    @property
    def base_url(self) -> str:
        """Root of the versioned REST API, e.g. ``https://acme.zendesk.com/api/v2``."""
        return f"https://{self.subdomain}.{self.host}/api/v2"

    @property
    def site_url(self) -> str:
        """Root of the instance's web host, used for OAuth endpoints."""
        return f"https://{self.subdomain}.{self.host}"


class CacheConfig(BaseModel):
    """Response cache settings stored in :class:`ZdConfig`."""

    enabled: bool = Field(default=True, description="Enable response caching")
    ttl_seconds: int = Field(default=600, description="Cache TTL in seconds")


class RequestConfig(BaseModel):
    """HTTP request settings applied to every API call."""

    timeout: float = Field(default=30.0, description="Per-request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    retry: bool = Field(
        default=False, description="Route API calls through retry-with-backoff"
    )
    max_retries: int = Field(default=3, description="Max retry attempts")
    initial_backoff: float = Field(default=1.0, description="First backoff delay in seconds")
    max_backoff: float = Field(default=30.0, description="Backoff ceiling in seconds")
    retry_deadline: float = Field(
        default=120.0, description="Overall seconds a retried call may spend waiting"
    )


class ZdConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/zd/config.json``.

    Holds every configured :class:`Instance` keyed by name plus the name of
    the current one. Loaded and saved by :func:`~zdcli.config.load_config`
    and :func:`~zdcli.config.save_config`; the methods below only mutate
    the in-memory model.
    """

    current: Optional[str] = None
    instances: dict[str, Instance] = Field(default_factory=dict)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)

    def get_instance(self, name: str) -> Instance:
        """Return the instance called *name*.

        Raises:
            ConfigError: If no such instance exists.
        """
        try:
            return self.instances[name]
        except KeyError:
            raise ConfigError(f"Instance '{name}' not found") from None

    def get_current_instance(self) -> Instance:
        """Return the current instance.

        Raises:
            ConfigError: If no instance is marked current.
        """
        if not self.current:
            raise ConfigError("No current instance configured. Run 'zd init' first.")
        return self.get_instance(self.current)

    def add_instance(self, instance: Instance) -> None:
        """Add *instance*; the first instance added becomes current.

        Raises:
            ConfigError: If an instance with the same name exists.
        """
        if instance.name in self.instances:
            raise ConfigError(f"Instance '{instance.name}' already exists")
        self.instances[instance.name] = instance
        if self.current is None:
            self.current = instance.name

    def remove_instance(self, name: str) -> None:
        """Remove the instance called *name*.

        Removing the current instance makes the first remaining instance
        (in name order) current, or clears the marker when none remain.

        Raises:
            ConfigError: If no such instance exists.
        """
        if name not in self.instances:
            raise ConfigError(f"Instance '{name}' not found")
        del self.instances[name]
        if self.current == name:
            remaining = sorted(self.instances)
            self.current = remaining[0] if remaining else None

    def switch_instance(self, name: str) -> None:
        """Mark *name* as the current instance.

        Raises:
            ConfigError: If no such instance exists.
        """
        if name not in self.instances:
            raise ConfigError(f"Instance '{name}' not found")
        self.current = name


# --- API entities ---


class _Entity(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Via(_Entity):
    """How a ticket or comment was created (web, email, API, ...)."""

    channel: str = ""
    source: dict[str, Any] = Field(default_factory=dict)


class User(_Entity):
    """A person known to the help desk: end user, agent, or admin."""

    id: int
    url: str = ""
    name: str = ""
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    time_zone: Optional[str] = None
    phone: Optional[str] = None
    locale: Optional[str] = None
    organization_id: Optional[int] = None
    role: str = ""
    verified: bool = False
    external_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    alias: Optional[str] = None
    active: bool = True
    last_login_at: Optional[datetime] = None
    custom_role_id: Optional[int] = None
    suspended: bool = False
    notes: Optional[str] = None


class Ticket(_Entity):
    """A support request and its workflow state."""

    id: int
    url: str = ""
    external_id: Optional[str] = None
    type: Optional[str] = None
    subject: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    status: str = ""
    requester_id: Optional[int] = None
    submitter_id: Optional[int] = None
    assignee_id: Optional[int] = None
    organization_id: Optional[int] = None
    group_id: Optional[int] = None
    collaborator_ids: list[int] = Field(default_factory=list)
    problem_id: Optional[int] = None
    has_incidents: bool = False
    due_at: Optional[datetime] = None
    tags: list[str] = Field(default_factory=list)
    via: Optional[Via] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Comment(_Entity):
    """One entry in a ticket's conversation."""

    id: int
    type: str = "Comment"
    author_id: Optional[int] = None
    body: str = ""
    html_body: Optional[str] = None
    plain_body: Optional[str] = None
    public: bool = True
    audit_id: Optional[int] = None
    via: Optional[Via] = None
    created_at: Optional[datetime] = None


class Organization(_Entity):
    """A customer organization that users and tickets may belong to."""

    id: int
    url: str = ""
    external_id: Optional[str] = None
    name: str = ""
    domain_names: list[str] = Field(default_factory=list)
    details: Optional[str] = None
    notes: Optional[str] = None
    group_id: Optional[int] = None
    shared_tickets: bool = False
    shared_comments: bool = False
    tags: list[str] = Field(default_factory=list)
    organization_fields: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Group(_Entity):
    """A team of agents that tickets can be routed to."""

    id: int
    url: str = ""
    name: str = ""
    description: Optional[str] = None
    default: bool = False
    deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GroupMembership(_Entity):
    """Association between an agent and a group."""

    id: int
    user_id: int
    group_id: int
    default: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Envelopes ---


class Page(_Entity):
    """Paging metadata shared by every list/search envelope.

    :attr:`next_page` is authoritative: its absence means the last page has
    been reached, regardless of how many items the page holds.
    """

    next_page: Optional[str] = None
    previous_page: Optional[str] = None
    count: int = 0

    @property
    def has_more(self) -> bool:
        """Whether another page of results is available."""
        return bool(self.next_page)


class UserPage(Page):
    users: list[User] = Field(default_factory=list)


class TicketPage(Page):
    tickets: list[Ticket] = Field(default_factory=list)


class CommentPage(Page):
    comments: list[Comment] = Field(default_factory=list)


class OrganizationPage(Page):
    organizations: list[Organization] = Field(default_factory=list)


class GroupPage(Page):
    groups: list[Group] = Field(default_factory=list)


class GroupMembershipPage(Page):
    group_memberships: list[GroupMembership] = Field(default_factory=list)


class TicketSearchResults(Page):
    """Envelope of the generic ``/search.json`` endpoint scoped to tickets."""

    results: list[Ticket] = Field(default_factory=list)


class GroupSearchResults(Page):
    """Envelope of the generic ``/search.json`` endpoint scoped to groups."""

    results: list[Group] = Field(default_factory=list)


class UserResponse(_Entity):
    user: User


class TicketResponse(_Entity):
    ticket: Ticket


class OrganizationResponse(_Entity):
    organization: Organization


class GroupResponse(_Entity):
    group: Group


# --- Write payloads ---


def _zero_is_unset(value: Any) -> Any:
    # 0 is never a real id; callers pass it to mean "not set".
    if value == 0:
        return None
    return value


class CreateUserRequest(BaseModel):
    name: str
    email: str
    role: Optional[str] = None
    phone: Optional[str] = None


class UpdateUserRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    verified: Optional[bool] = None


class TicketCommentInput(BaseModel):
    body: str
    public: bool = True


class CreateTicketRequest(BaseModel):
    """Body of a ticket creation call.

    ``body`` becomes the ticket's first comment. Optional ids set to ``0``
    are treated as absent.
    """

    subject: str
    body: str
    priority: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    assignee_id: Optional[int] = None
    group_id: Optional[int] = None
    tags: Optional[list[str]] = None

    @field_validator("assignee_id", "group_id", mode="before")
    @classmethod
    def _unset_ids(cls, value: Any) -> Any:
        return _zero_is_unset(value)

    def to_payload(self) -> dict[str, Any]:
        """Return the ``{"ticket": {...}}`` request document."""
        ticket = self.model_dump(exclude_none=True, exclude={"body"})
        ticket["comment"] = {"body": self.body}
        return {"ticket": ticket}


class UpdateTicketRequest(BaseModel):
    """Body of a ticket update call; only fields that are set are sent."""

    subject: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    assignee_id: Optional[int] = None
    group_id: Optional[int] = None
    tags: Optional[list[str]] = None
    comment: Optional[TicketCommentInput] = None

    @field_validator("assignee_id", "group_id", mode="before")
    @classmethod
    def _unset_ids(cls, value: Any) -> Any:
        return _zero_is_unset(value)

    def to_payload(self) -> dict[str, Any]:
        """Return the ``{"ticket": {...}}`` request document."""
        return {"ticket": self.model_dump(exclude_none=True)}

    def is_empty(self) -> bool:
        """Whether no field is set, i.e. the update would be a no-op."""
        return not self.model_dump(exclude_none=True)
