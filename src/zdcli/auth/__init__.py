"""Authentication for zdcli: API-token headers and the OAuth2 authorization-code flow.

:mod:`zdcli.auth.token` validates instance credentials and derives the
``Authorization`` header; :mod:`zdcli.auth.oauth` runs the browser-based
flow and refreshes expired tokens.
"""

from zdcli.auth.oauth import (
    FlowState,
    OAuthConfig,
    OAuthFlow,
    OAuthToken,
    exchange_code,
    refresh_token,
)
from zdcli.auth.token import authorization_header, validate_instance

__all__ = [
    "FlowState",
    "OAuthConfig",
    "OAuthFlow",
    "OAuthToken",
    "authorization_header",
    "exchange_code",
    "refresh_token",
    "validate_instance",
]
