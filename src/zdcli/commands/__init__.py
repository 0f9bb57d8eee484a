"""Built-in CLI sub-commands for zd.

This package groups the Typer sub-command modules that form the CLI's
command tree:

* :mod:`~zdcli.commands.init` -- interactive first-run setup.
* :mod:`~zdcli.commands.instance` -- manage configured instances.
* :mod:`~zdcli.commands.session` -- ``test`` and ``reauth``.
* :mod:`~zdcli.commands.cache` -- inspect and clear the response cache.
* :mod:`~zdcli.commands.users`, :mod:`~zdcli.commands.tickets`,
  :mod:`~zdcli.commands.organizations`, :mod:`~zdcli.commands.groups` --
  the API resource commands.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups) or a plain callback function registered directly
on the root app (for single commands like ``init``).
"""
