"""Reading-room CLI: entry-point for crawl and upload runs.

Usage:
    python cli/main.py --help

Commands:
    scrape     → crawl a collection and upload every new document
    validate   → check options, the collection and the ingestion API key
    documents  → list the documents already ingested, per folder
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from readingroom.xxx import
# ...` works when the CLI is invoked as `python cli/main.py` from any working
# directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from typing import Optional

import httpx
import typer

from readingroom.config import RunConfig, settings
from readingroom.errors import ReadingRoomError
from readingroom.log import configure_logging

app = typer.Typer(
    name="readingroom",
    help="Crawl a reading room collection and ingest its documents.",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines."),
) -> None:
    configure_logging(log_level, json_output=json_logs)


def _run_config(
    collection: str,
    pages: int,
    start_page: int,
    force: bool,
    fifo: Optional[str],
) -> RunConfig:
    return RunConfig(
        collection=collection,
        max_pages=pages,
        start_page=start_page,
        force=force,
        network_fifo=fifo if fifo is not None else settings.network_fifo,
    )


@app.command("scrape")
def scrape(
    collection: str = typer.Option(..., help="Collection to scrape."),
    pages: int = typer.Option(settings.default_max_pages, help="Maximum number of pages to scrape."),
    start_page: int = typer.Option(1, "--start-page", help="First page to scrape (1-based)."),
    force: bool = typer.Option(False, "--force", help="Re-upload documents that are already ingested."),
    fifo: Optional[str] = typer.Option(None, "--fifo", help="Named pipe signalled when access is denied."),
) -> None:
    """Crawl a collection and upload every new document link."""
    from readingroom.runner import run_scrape

    config = _run_config(collection, pages, start_page, force, fifo)
    typer.echo(f"[scrape] Crawling {collection!r}  (pages={pages}, start={start_page}) …")
    try:
        summary = run_scrape(config)
    except (ReadingRoomError, httpx.HTTPError) as exc:
        typer.echo(f"[scrape] Run failed: {exc}")
        raise typer.Exit(code=1)

    typer.echo(f"[scrape] Pages      : {summary.pages}")
    typer.echo(f"[scrape] Duplicates : {summary.duplicates}")
    typer.echo(f"[scrape] Failed     : {summary.failed}")
    typer.echo(f"[scrape] Retries    : {summary.retries}")
    typer.echo(f"[scrape] PDFs       : {summary.pdfs}")
    typer.echo(f"[scrape] Uploaded {summary.uploaded} links")


@app.command("validate")
def validate(
    collection: str = typer.Option(..., help="Collection to check."),
    pages: int = typer.Option(settings.default_max_pages, help="Maximum number of pages to scrape."),
    start_page: int = typer.Option(1, "--start-page", help="First page to scrape (1-based)."),
) -> None:
    """Check the options, the collection and the ingestion API key."""
    from readingroom.net import GatedClient, GateRegistry
    from readingroom.runner import validate_run

    config = _run_config(collection, pages, start_page, False, None)
    try:
        with GatedClient(GateRegistry().get()) as http:
            validate_run(config, http)
    except (ReadingRoomError, httpx.HTTPError) as exc:
        typer.echo(f"[validate] Invalid configuration: {exc}")
        raise typer.Exit(code=1)
    typer.echo(f"[validate] Configuration OK for collection {collection!r}")


@app.command("documents")
def documents() -> None:
    """List the documents already ingested, grouped by folder."""
    from readingroom.ingest import IngestClient
    from readingroom.net import GatedClient, GateRegistry

    try:
        with GatedClient(GateRegistry().get()) as http:
            folders = IngestClient(http).list_documents()
    except (ReadingRoomError, httpx.HTTPError) as exc:
        typer.echo(f"[documents] Listing failed: {exc}")
        raise typer.Exit(code=1)

    if not folders:
        typer.echo("[documents] No documents found.")
        return
    for name, items in sorted(folders.items()):
        typer.echo(f"  {name}  ({len(items)} documents)")
    typer.echo(f"[documents] Total: {sum(len(items) for items in folders.values())}")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
