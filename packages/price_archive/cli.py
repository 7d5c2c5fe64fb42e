"""CLI for the ``price_archive`` package.

Typer-based console interface (``price-archive``). Environment variables are
loaded from a local ``.env`` using ``python-dotenv`` before settings are read.
Business logic lives in ``price_archive.api``; the commands here only build
the store handle, call it and render the result.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .config import Settings
from .errors import PriceArchiveError
from .logging_setup import configure_logging
from .models import ArchiveKind, UploadSummary

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session, sessionmaker

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Ingest price archives into the price store and export filtered subsets.",
)

_err = Console(stderr=True)

DATABASE_URL_OPTION = typer.Option(
    "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
TYPE_OPTION = typer.Option("--type", "-t", help="Archive kind: zip or tar.")


def _settings(database_url: str | None) -> Settings:
    load_dotenv()
    try:
        configure_logging()
        settings = Settings.from_env()
    except ValueError as e:
        _err.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(2) from e
    if database_url:
        settings = replace(settings, database_url=database_url)
    return settings


def _session_factory(settings: Settings) -> tuple[Engine, sessionmaker[Session]]:
    # Deferred import keeps `--help` fast and free of DB driver imports.
    from db.client import create_db_engine, make_session_factory

    engine = create_db_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle,
    )
    return engine, make_session_factory(engine)


def _render_summary(summary: UploadSummary) -> Table:
    table = Table(title="Upload summary", show_header=False)
    table.add_column("metric", style="bold")
    table.add_column("value", justify="right")
    table.add_row("Rows in file", str(summary.total_count))
    table.add_row("Rejected or duplicate", str(summary.duplicates_count))
    table.add_row("Inserted", str(summary.total_items))
    table.add_row("Categories in store", str(summary.total_categories))
    table.add_row("Total price in store", f"{summary.total_price:.2f}")
    return table


@app.command("init-db")
def init_db_cmd(
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Create the ``prices`` table and its indexes if they do not exist."""

    from db.client import init_schema

    settings = _settings(database_url)
    engine, _ = _session_factory(settings)
    try:
        init_schema(engine)
    finally:
        engine.dispose()
    typer.echo("schema ready")


@app.command("ingest")
def ingest_cmd(
    archive: Annotated[Path, typer.Argument(exists=True, dir_okay=False, readable=True)],
    kind: Annotated[ArchiveKind, TYPE_OPTION] = ArchiveKind.ZIP,
    as_json: Annotated[bool, typer.Option("--json", help="Print the summary as JSON.")] = False,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Ingest ARCHIVE (a zip or tar containing data.csv)."""

    from .api import ingest_archive

    settings = _settings(database_url)
    data = archive.read_bytes()
    engine, factory = _session_factory(settings)
    try:
        summary = ingest_archive(
            factory,
            data,
            kind,
            max_archive_bytes=settings.max_archive_bytes,
            max_payload_bytes=settings.max_payload_bytes,
            max_rows=settings.max_rows,
        )
    except PriceArchiveError as e:
        _err.print(f"[red]Error:[/red] {type(e).__name__}: {e}")
        raise typer.Exit(1) from e
    finally:
        engine.dispose()

    if as_json:
        typer.echo(summary.model_dump_json())
    else:
        Console().print(_render_summary(summary))


@app.command("export")
def export_cmd(
    output: Annotated[Path, typer.Argument(dir_okay=False, writable=True)],
    start: Annotated[str | None, typer.Option(help="Earliest date, YYYY-MM-DD.")] = None,
    end: Annotated[str | None, typer.Option(help="Latest date, YYYY-MM-DD.")] = None,
    min_price: Annotated[str | None, typer.Option("--min", help="Minimum price.")] = None,
    max_price: Annotated[str | None, typer.Option("--max", help="Maximum price.")] = None,
    kind: Annotated[ArchiveKind, TYPE_OPTION] = ArchiveKind.ZIP,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Write stored records matching the bounds to OUTPUT as an archive."""

    from .api import export_archive, parse_export_filter

    settings = _settings(database_url)
    engine, factory = _session_factory(settings)
    try:
        flt = parse_export_filter(start, end, min_price, max_price)
        body = export_archive(factory, flt, kind)
    except PriceArchiveError as e:
        _err.print(f"[red]Error:[/red] {type(e).__name__}: {e}")
        raise typer.Exit(1) from e
    finally:
        engine.dispose()

    output.write_bytes(body)
    typer.echo(f"wrote {len(body)} bytes to {output}")


@app.command("serve")
def serve_cmd(
    host: Annotated[str | None, typer.Option(help="Bind host (default HTTP_HOST).")] = None,
    port: Annotated[int | None, typer.Option(help="Bind port (default HTTP_PORT).")] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Run the HTTP API with uvicorn."""

    import uvicorn

    from .web import create_app_from_settings

    settings = _settings(database_url)
    uvicorn.run(
        create_app_from_settings(settings),
        host=host or settings.http_host,
        port=port or settings.http_port,
        log_config=None,
    )


def main() -> None:
    app()


__all__ = ["app", "main"]
