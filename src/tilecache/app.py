"""Typer application and CLI entry point for tilecache.

The CLI is an operator surface over the same engine an application embeds:

* ``tilecache activate`` -- build a fresh generation (precache + purge).
* ``tilecache fetch URL`` -- fetch one URL through the newest generation.
* ``tilecache stats`` -- list generations on disk and their sizes.
* ``tilecache keys [GENERATION]`` -- list a generation's keys, oldest first.
* ``tilecache purge`` -- destroy every generation.

Settings come from :func:`~tilecache.config.resolve_settings`; there are no
per-command cache flags. :func:`main` is the console-script entry point.
:class:`~tilecache.exceptions.TileCacheError` exits with its own code,
anything else writes a crash log under the data directory.
"""

from __future__ import annotations

import asyncio
import signal
import sys
import traceback
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

import typer

from tilecache import __version__
from tilecache.exit_codes import EXIT_GENERIC_FAILURE, EXIT_NETWORK_ERROR

if TYPE_CHECKING:
    from tilecache.cache import CacheStorage


app = typer.Typer(
    name="tilecache",
    help="Cache-first request interception for map tiles and static assets.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"tilecache {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show cache hits, misses and evictions."
    ),
) -> None:
    """Initialise the global :class:`~tilecache.output.OutputManager` from CLI flags."""
    from tilecache.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


def _storage() -> CacheStorage:
    from tilecache.cache import CacheStorage
    from tilecache.config import get_storage_dir

    return CacheStorage(get_storage_dir())


@app.command("activate")
def activate_command() -> None:
    """Create a new generation, precache it, and purge every older one."""
    from tilecache.config import resolve_settings
    from tilecache.engine import TileCache
    from tilecache.output import get_output

    settings = resolve_settings()

    async def _run() -> dict[str, Any]:
        async with TileCache(settings, _storage()) as cache:
            return cache.stats()

    stats = asyncio.run(_run())
    output = get_output()
    output.success(f"Generation {stats['generation']} active ({stats['size']} entries)")
    output.print_data(str(stats["generation"]))


@app.command("fetch")
def fetch_command(
    url: str = typer.Argument(..., help="Absolute URL to GET through the cache."),
) -> None:
    """Fetch URL through the newest generation and report where it came from."""
    from tilecache.client import is_network_error, response_source
    from tilecache.config import resolve_settings
    from tilecache.engine import TileCache
    from tilecache.output import get_output

    settings = resolve_settings()

    async def _run() -> dict[str, Any]:
        async with TileCache(settings, _storage(), resume=True) as cache:
            response = await cache.fetch(url)
            return {
                "url": url,
                "status": response.status_code,
                "source": response_source(response),
                "bytes": len(response.content),
                "generation": cache.generation,
                "network_error": is_network_error(response),
            }

    result = asyncio.run(_run())
    get_output().format_data(result)
    if result["network_error"]:
        raise typer.Exit(code=EXIT_NETWORK_ERROR)


@app.command("stats")
def stats_command() -> None:
    """List generations on disk with their entry counts."""
    from tilecache.output import get_output

    storage = _storage()
    try:
        rows = [[s["name"], str(s["size"]), s["directory"]] for s in storage.stats()]
    finally:
        storage.close()
    output = get_output()
    if not rows:
        output.info("No cache generations on disk.")
        return
    output.print_table(["generation", "entries", "directory"], rows, title="Generations")


@app.command("keys")
def keys_command(
    generation: Optional[str] = typer.Argument(
        None, help="Generation label. Defaults to the newest generation."
    ),
) -> None:
    """List the keys of a generation in eviction order (oldest first)."""
    from tilecache.config import resolve_settings
    from tilecache.exceptions import InvalidUsageError
    from tilecache.generation import latest_generation
    from tilecache.output import get_output

    storage = _storage()
    try:
        if generation is None:
            generation = latest_generation(storage, resolve_settings().cache_name)
        if generation is None or not storage.exists(generation):
            raise InvalidUsageError(f"Unknown generation: {generation or '(none on disk)'}")
        keys = storage.open(generation).keys()
    finally:
        storage.close()

    output = get_output()
    for key in keys:
        output.print_data(key)
    output.info(f"{len(keys)} entries in {generation}")


@app.command("purge")
def purge_command() -> None:
    """Destroy every generation on disk."""
    from tilecache.output import get_output

    storage = _storage()

    async def _run() -> list[str]:
        names = storage.names()
        for name in names:
            await storage.delete(name)
        return names

    purged = asyncio.run(_run())
    get_output().success(f"Purged {len(purged)} generations")


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from tilecache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``tilecache`` console script.

    :class:`~tilecache.exceptions.TileCacheError` exits with the error's
    ``exit_code``. Other exceptions produce a crash log and a generic
    failure exit.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from tilecache.exceptions import TileCacheError
        from tilecache.output import error

        if isinstance(exc, TileCacheError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
