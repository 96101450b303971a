"""Typer application and CLI entry point for ``cachelayer``.

The CLI operates on a :class:`~cachelayer.adapters.disk.DiskAdapter`
directory (``--dir``, ``$CACHELAYER_CACHE_DIR``, or the XDG cache
directory) and exposes key derivation and the invalidation surface to
shell scripts and deploy hooks::

    cachelayer key "/items?b=2&a=1"
    cachelayer inspect "/items?a=1&b=2" --dir /var/cache/myapp
    cachelayer release-prefix /items --dir /var/cache/myapp

:func:`main` is the console-script entry point declared in
``pyproject.toml``. :class:`~cachelayer.exceptions.CacheLayerError`
instances exit with their ``exit_code``.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

import typer

from cachelayer import __version__
from cachelayer.exit_codes import EXIT_GENERIC_FAILURE
from cachelayer.models import CacheKey
from cachelayer.output import format_response, info, success, warning

app = typer.Typer(
    name="cachelayer",
    help="Inspect and invalidate cachelayer response caches.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

_DIR_OPTION = typer.Option(
    None, "--dir", "-d", help="Cache directory (defaults to $CACHELAYER_CACHE_DIR or the XDG cache dir)."
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"cachelayer {__version__}")
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
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable DEBUG logging on stderr."),
) -> None:
    """Root callback: install the output manager and logging level."""
    from cachelayer.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet))
    if verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr)


def _key_for(url: str) -> CacheKey:
    """Derive the cache key for a CLI URL argument."""
    from cachelayer.exceptions import InvalidUsageError
    from cachelayer.keys import derive_key

    parts = urlsplit(url)
    if not parts.path:
        raise InvalidUsageError(f"URL {url!r} has no path")
    return derive_key(parts.path, parts.query)


def _open_adapter(directory: Optional[str]):
    from cachelayer.adapters.disk import DiskAdapter
    from cachelayer.config import get_cache_dir

    root = Path(directory).expanduser() if directory else get_cache_dir()
    return DiskAdapter(root)


def _iso(moment: datetime) -> str:
    return moment.isoformat()


@app.command("key")
def key_command(url: str = typer.Argument(help="Request URL or path with query.")) -> None:
    """Print the (prefix, key) pair a URL is cached under."""
    cache_key = _key_for(url)
    format_response({"prefix": cache_key.prefix, "key": cache_key.key})


@app.command("inspect")
def inspect_command(
    url: str = typer.Argument(help="Request URL or path with query."),
    directory: Optional[str] = _DIR_OPTION,
    show_body: bool = typer.Option(False, "--body", help="Also print the stored body."),
) -> None:
    """Decode and show the envelope stored for a URL."""
    from cachelayer.client import utcnow
    from cachelayer.envelope import decode
    from cachelayer.exceptions import EntryNotFoundError

    cache_key = _key_for(url)
    with _open_adapter(directory) as adapter:
        data = adapter.get(cache_key.prefix, cache_key.key)
    if data is None:
        raise EntryNotFoundError(f"No cached response for {url} (key {cache_key.key})")

    envelope = decode(data)
    fresh = envelope.is_fresh(utcnow())
    if not fresh:
        warning(f"Entry for {url} is stale; the next request will refetch it.")

    format_response(
        {
            "prefix": cache_key.prefix,
            "key": cache_key.key,
            "fresh": fresh,
            "expiration": _iso(envelope.expiration),
            "last_access": _iso(envelope.last_access),
            "frequency": envelope.frequency,
            "size": len(envelope.value),
            "header": envelope.header,
        }
    )
    if show_body:
        typer.echo(envelope.value.decode("utf-8", errors="replace"))


@app.command("release")
def release_command(
    url: str = typer.Argument(help="Request URL or path with query."),
    directory: Optional[str] = _DIR_OPTION,
) -> None:
    """Release the entry cached for one URL."""
    cache_key = _key_for(url)
    with _open_adapter(directory) as adapter:
        adapter.release(cache_key.prefix, cache_key.key)
    success(f"Released {cache_key.prefix}:{cache_key.key}")


@app.command("release-prefix")
def release_prefix_command(
    prefix: str = typer.Argument(help="Request path whose variants are released."),
    directory: Optional[str] = _DIR_OPTION,
) -> None:
    """Release every entry stored under a request path."""
    with _open_adapter(directory) as adapter:
        adapter.release_prefix(prefix)
    success(f"Released prefix {prefix}")


@app.command("release-key-prefix")
def release_key_prefix_command(
    key_prefix: str = typer.Argument(help="Leading digits of the keys to release."),
    directory: Optional[str] = _DIR_OPTION,
) -> None:
    """Release every entry whose key starts with the given string."""
    with _open_adapter(directory) as adapter:
        adapter.release_if_starts_with(key_prefix)
    success(f"Released keys starting with {key_prefix}")


@app.command("stats")
def stats_command(directory: Optional[str] = _DIR_OPTION) -> None:
    """Show the cache directory and number of stored entries."""
    with _open_adapter(directory) as adapter:
        info(f"Cache directory: {adapter.directory}")
        format_response({"directory": str(adapter.directory), "entries": len(adapter)})


def main() -> None:
    """CLI entry point invoked by the ``cachelayer`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from cachelayer.exceptions import CacheLayerError
        from cachelayer.output import error

        if isinstance(exc, CacheLayerError):
            error(str(exc))
            sys.exit(exc.exit_code)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
