"""Content fetcher CLI — entry-point for fetching, storing and refreshing URLs.

Usage:
    python cli/main.py --help

Commands:
    db init   create the SQLite schema
    fetch     fetch one URL and print the outcome (nothing is stored)
    store     fetch and store a batch of URLs
    list      print every stored URL
    refetch   run one refetch pass over stale URLs now
    serve     run the HTTP API (the refetch scheduler starts with it)
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that
# `from content_fetcher.xxx import ...` works when the CLI is invoked as
# `python cli/main.py` from any working directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import json
from typing import List, Optional

import typer

from content_fetcher.config import settings
from content_fetcher.db import get_connection, init_db
from content_fetcher.db.models import UrlView
from content_fetcher.errors import PersistenceError
from content_fetcher.fetcher import Fetcher, FetchSuccess
from content_fetcher.logging_setup import configure_logging

app = typer.Typer(
    name="content-fetcher",
    help="URL content fetcher CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    configure_logging("DEBUG" if verbose else settings.log_level)


def _echo_view(view: UrlView) -> None:
    if view.error_message:
        typer.echo(f"  ✗ {view.url}  [{view.status.value}]  {view.error_message}")
    else:
        size = view.content_length if view.content_length is not None else "?"
        typer.echo(f"  ✓ {view.url}  [{view.status.value}]  {size} bytes")
    for hop in view.redirects:
        typer.echo(f"      → {hop}")


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# Fetch / store / list
# ---------------------------------------------------------------------------
@app.command("fetch")
def fetch(
    url: str = typer.Argument(..., help="URL to fetch."),
    show_content: bool = typer.Option(False, "--content", help="Print the body too."),
) -> None:
    """Fetch a URL once and print the outcome without storing it."""
    typer.echo(f"[fetch] Fetching {url!r} …")
    outcome = Fetcher.from_settings().fetch(url)
    for hop in outcome.redirects:
        typer.echo(f"[fetch] Redirect → {hop}")

    if not isinstance(outcome, FetchSuccess):
        typer.echo(f"[fetch] Failed: {outcome.error_message}")
        raise typer.Exit(1)

    typer.echo(f"[fetch] Type   : {outcome.content_type or '(none)'}")
    typer.echo(f"[fetch] Length : {outcome.content_length}")
    if outcome.final_url:
        typer.echo(f"[fetch] Final  : {outcome.final_url}")
    if show_content:
        typer.echo("")
        typer.echo(outcome.content)


@app.command("store")
def store(
    urls: List[str] = typer.Argument(..., help="One or more URLs to store."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
) -> None:
    """Fetch and store URLs not seen before; report stored state for known ones."""
    from content_fetcher.services.ingestion import store_urls

    conn = get_connection()
    init_db(conn)
    try:
        result = store_urls(conn, urls)
    except PersistenceError as exc:
        typer.echo(f"[store] Store unavailable: {exc}")
        raise typer.Exit(1)
    finally:
        conn.close()

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    typer.echo(f"[store] Success: {len(result.success)}  Failed: {len(result.failed)}")
    for view in result.success + result.failed:
        _echo_view(view)


@app.command("list")
def list_urls(
    as_json: bool = typer.Option(False, "--json", help="Print the records as JSON."),
) -> None:
    """List every stored URL."""
    from content_fetcher.services.ingestion import get_all_urls

    conn = get_connection()
    init_db(conn)
    try:
        views = get_all_urls(conn)
    finally:
        conn.close()

    if as_json:
        typer.echo(json.dumps({"urls": [v.to_dict() for v in views]}, indent=2))
        return
    if not views:
        typer.echo("[list] No URLs stored.")
        return
    for view in views:
        _echo_view(view)


# ---------------------------------------------------------------------------
# Refetch / serve
# ---------------------------------------------------------------------------
@app.command("refetch")
def refetch(
    interval_hours: Optional[int] = typer.Option(
        None, "--interval-hours", help="Staleness threshold (default from settings)."
    ),
) -> None:
    """Refetch stale URLs once, right now."""
    from content_fetcher.services.reconciler import refetch_stale_urls

    conn = get_connection()
    init_db(conn)
    try:
        report = refetch_stale_urls(conn, interval_hours=interval_hours)
    finally:
        conn.close()
    typer.echo(
        f"[refetch] Success: {report.succeeded}  Failed: {report.errored}  Total: {report.total}"
    )


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address."),
    port: Optional[int] = typer.Option(None, help="Port to listen on."),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "content_fetcher.api.app:app",
        host=host or settings.host,
        port=port or settings.port,
    )


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
