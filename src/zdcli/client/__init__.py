"""HTTP client for the Zendesk REST API.

:class:`ZendeskClient` wraps :mod:`httpx` with credential-derived auth,
a read-through response cache, error classification, and opt-in retry
with exponential backoff. Operations are grouped per resource family
(users, tickets, organizations, groups) and share one request pipeline
defined in :mod:`zdcli.client.base`.

The client is designed to be used as a context manager::

    from zdcli.client import ZendeskClient

    with ZendeskClient(instance) as client:
        me = client.get_current_user()
"""

from zdcli.client.base import MAX_PER_PAGE, page_params
from zdcli.client.retry import RetryConfig, retry_with_backoff
from zdcli.client.zendesk import ZendeskClient

__all__ = [
    "MAX_PER_PAGE",
    "RetryConfig",
    "ZendeskClient",
    "page_params",
    "retry_with_backoff",
]
