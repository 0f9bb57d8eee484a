"""Credential validation and ``Authorization`` header derivation.

An :class:`~zdcli.models.Instance` authenticates in exactly one of two
modes:

* **token** -- HTTP Basic with the user name ``{email}/token`` and the
  API token as password, i.e. ``Basic base64("{email}/token:{api_token}")``.
* **oauth** -- ``Bearer {access_token}`` obtained through the
  authorization-code flow in :mod:`zdcli.auth.oauth`.

:func:`validate_instance` checks that every field the declared mode needs
is populated and names the first one that is missing.
"""

from __future__ import annotations

import base64

from zdcli.exceptions import CredentialError
from zdcli.models import AuthType, Instance


def encode_token_credentials(email: str, api_token: str) -> str:
    """Return the base64 Basic credential for an email/API-token pair."""
    raw = f"{email}/token:{api_token}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def validate_token_auth(email: str, api_token: str) -> None:
    """Raise :class:`~zdcli.exceptions.CredentialError` unless both values are set."""
    if not email:
        raise CredentialError("email is required for token authentication", field="email")
    if not api_token:
        raise CredentialError(
            "API token is required for token authentication", field="api_token"
        )


def validate_oauth_auth(instance: Instance) -> None:
    """Raise :class:`~zdcli.exceptions.CredentialError` naming the first missing OAuth field."""
    required = (
        ("oauth_client_id", "OAuth client ID is required"),
        ("oauth_client_secret", "OAuth client secret is required"),
        ("oauth_access_token", "OAuth access token is required"),
        ("oauth_refresh_token", "OAuth refresh token is required"),
        ("oauth_expiry", "OAuth token expiry is required"),
    )
    for field, message in required:
        if not getattr(instance, field):
            raise CredentialError(message, field=field)


def validate_instance(instance: Instance) -> None:
    """Validate the credentials of *instance* for its declared auth mode.

    Raises:
        CredentialError: If the subdomain or a required credential field
            is empty.
    """
    if not instance.subdomain:
        raise CredentialError("subdomain is required", field="subdomain")
    if instance.auth_type == AuthType.OAUTH:
        validate_oauth_auth(instance)
    else:
        validate_token_auth(instance.email, instance.api_token)


def authorization_header(instance: Instance) -> str:
    """Validate *instance* and return its ``Authorization`` header value.

    Example::

        >>> authorization_header(Instance(name="a", subdomain="a",
        ...     email="a@b.com", api_token="tok123"))
        'Basic YUBiLmNvbS90b2tlbjp0b2sxMjM='
    """
    validate_instance(instance)
    if instance.auth_type == AuthType.OAUTH:
        return f"Bearer {instance.oauth_access_token}"
    return f"Basic {encode_token_credentials(instance.email, instance.api_token)}"
