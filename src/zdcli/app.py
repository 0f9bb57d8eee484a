"""Typer application and CLI entry point for zd.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``init``, ``instance``, ``test``, ``reauth``,
``cache``, ``user``, ``ticket``, ``organization``, ``group``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
:class:`~zdcli.exceptions.ZdError` instances that escape a command are
reported and mapped to their exit code; anything else is written to a
crash log under the data directory.

See Also:
    :mod:`zdcli.config`: Instance store and active-instance resolution.
    :mod:`zdcli.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from zdcli import __version__
from zdcli.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE
from zdcli.output import OutputFormat


app = typer.Typer(
    name="zd",
    help="Work with Zendesk tickets, users, organizations, and groups from the terminal.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #

from zdcli.commands.cache import cache_app  # noqa: E402
from zdcli.commands.groups import group_app  # noqa: E402
from zdcli.commands.init import init_command  # noqa: E402
from zdcli.commands.instance import instance_app  # noqa: E402
from zdcli.commands.organizations import organization_app  # noqa: E402
from zdcli.commands.session import reauth_command, test_command  # noqa: E402
from zdcli.commands.tickets import ticket_app  # noqa: E402
from zdcli.commands.users import user_app  # noqa: E402

app.command("init")(init_command)
app.command("test")(test_command)
app.command("reauth")(reauth_command)
app.add_typer(instance_app, name="instance", help="Manage configured instances.")
app.add_typer(cache_app, name="cache", help="Inspect and clear the response cache.")
app.add_typer(user_app, name="user", help="Users.")
app.add_typer(ticket_app, name="ticket", help="Tickets.")
app.add_typer(organization_app, name="organization", help="Organizations.")
app.add_typer(group_app, name="group", help="Groups.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"zd {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    instance: Optional[str] = typer.Option(
        None, "--instance", "-i", help="Instance to use (overrides ZD_INSTANCE)."
    ),
    config: Optional[str] = typer.Option(
        None, "--config", help="Config file path (overrides ZD_CONFIG)."
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.TABLE,
        "--output",
        "-o",
        case_sensitive=False,
        help="Output format.",
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmations."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~zdcli.output.OutputManager` from
    CLI flags, and stores shared options (``instance``, ``config``,
    ``force``) in the Typer context so that sub-commands can read them via
    ``ctx.obj``.

    Args:
        ctx: Typer invocation context.
        version: If ``True``, print the version string and exit.
        instance: Instance name override (highest precedence).
        config: Explicit config file path.
        output_format: Data format for stdout.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level diagnostic output and logging.
        force: Skip interactive confirmations.
    """
    from zdcli.output import OutputManager, set_output

    output = OutputManager(
        format=output_format,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    if verbose:
        _configure_logging(output.logging_handler())

    ctx.ensure_object(dict)
    ctx.obj["instance"] = instance
    ctx.obj["config"] = config
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


def _configure_logging(handler: logging.Handler) -> None:
    """Route ``zdcli`` debug logs (and httpx request logs) to *handler*."""
    logger = logging.getLogger("zdcli")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    httpx_logger = logging.getLogger("httpx")
    for existing in list(httpx_logger.handlers):
        httpx_logger.removeHandler(existing)
    httpx_logger.addHandler(handler)
    httpx_logger.setLevel(logging.INFO)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path.

    Args:
        exc: The unhandled exception to log.

    Returns:
        Absolute path to the written crash log file.
    """
    from zdcli.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``zd`` console script.

    Unhandled :class:`~zdcli.exceptions.ZdError` instances cause a clean
    exit with the error's ``exit_code``. All other exceptions produce a
    crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from zdcli.commands._common import report_error
        from zdcli.exceptions import ZdError
        from zdcli.output import error

        if isinstance(exc, ZdError):
            report_error(exc)
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
