"""zdcli -- a command-line client for Zendesk-style ticketing APIs.

The ``zd`` command authenticates against a help-desk instance (API token or
OAuth2), reads and writes users, tickets, organizations, and groups through
the versioned REST API, and renders results as tables, JSON, or CSV.

Typical workflow::

    zd init                     # configure the first instance
    zd ticket list --status open
    zd user show 123 --refresh  # bypass the local response cache

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models for config, credentials, and API entities.
    config: XDG-aware instance store with atomic writes.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting with Rich support.
"""

__version__ = "0.3.0"
