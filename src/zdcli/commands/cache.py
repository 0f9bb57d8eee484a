"""Cache commands -- inspect and clear the response cache.

Provides the ``zd cache`` sub-command group. The cache holds one file per
cached response under the XDG cache directory; entries expire after
``cache.ttl_seconds`` (600 by default).
"""

from __future__ import annotations

import typer

from zdcli.cache import ResponseCache
from zdcli.commands._common import active_config_path, reporting_errors
from zdcli.config import get_cache_dir, load_config
from zdcli.output import get_output, success


cache_app = typer.Typer(no_args_is_help=True)


def _open_cache(ctx: typer.Context) -> ResponseCache:
    config = load_config(active_config_path(ctx))
    return ResponseCache(get_cache_dir(), config.cache)


@cache_app.command("info")
def cache_info(ctx: typer.Context) -> None:
    """Show cache location, entry counts, and size."""
    with reporting_errors():
        stats = _open_cache(ctx).stats()

    rows = [
        ["Directory", str(stats["directory"])],
        ["Entries", str(stats["entries"])],
        ["Expired", str(stats["expired"])],
        ["Size", _human_size(stats["size_bytes"])],
        ["TTL", f"{stats['ttl_seconds']}s"],
    ]
    get_output().print_table(["Field", "Value"], rows, title="Response Cache")


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Delete every cached response."""
    with reporting_errors():
        removed = _open_cache(ctx).clear()
    success(f"Cleared {removed} cache entries.")


@cache_app.command("prune")
def cache_prune(ctx: typer.Context) -> None:
    """Delete only the expired cache entries."""
    with reporting_errors():
        removed = _open_cache(ctx).prune_expired()
    success(f"Pruned {removed} expired cache entries.")


def _human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"
