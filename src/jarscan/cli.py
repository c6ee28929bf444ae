"""Command line interface for JarScan."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from jarscan.config import AppConfig
from jarscan.index.search import RecordFilter, Searcher
from jarscan.index.session import ScanSession
from jarscan.index.storage import SQLiteClassStore
from jarscan.ingestion.archive import ArchiveOpenError
from jarscan.models import ClassRecord
from jarscan.utils.files import iter_jar_paths
from jarscan.web.app import app as web_app


console = Console()
app = typer.Typer(help="JarScan - catalogue the classes inside Java archives")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _resolve_db(db: Path | None) -> Path:
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    return config.resolve_db_path(Path.cwd())


def _records_table(records: Iterable[ClassRecord]) -> Table:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Class Name")
    table.add_column("Package Name")
    table.add_column("Interface")
    table.add_column("Lines", justify="right")

    for record in records:
        table.add_row(
            record.name,
            record.package_name or "(default)",
            "yes" if record.is_interface else "no",
            str(record.line_count),
        )
    return table


@app.command()
def scan(
    inputs: List[Path] = typer.Argument(
        ..., help="Jar files, or directories searched for jars.", resolve_path=True
    ),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    flush_every: int = typer.Option(
        AppConfig().flush_every, min=1, help="Store the root after this many new classes"
    ),
    show: bool = typer.Option(True, "--show/--no-show", help="Print the classes found"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Scan jar archives and store the classes they contain."""
    _setup_logging(verbose)
    config = AppConfig(
        db_path=db if db is not None else AppConfig().db_path,
        flush_every=flush_every,
    )
    resolved_db = config.resolve_db_path(Path.cwd())

    jar_paths = list(iter_jar_paths(inputs))
    if not jar_paths:
        console.print("[yellow]No jar files found.[/yellow]")
        return

    _ensure_db_parent(resolved_db)
    store = SQLiteClassStore(resolved_db)
    session = ScanSession(store, flush_every=config.flush_every)
    start = len(session.root)
    failed_archives = 0

    console.print(f"Scanning into [bold]{resolved_db}[/bold]...")
    try:
        for jar_path in jar_paths:
            try:
                stats = session.scan(jar_path)
            except ArchiveOpenError as exc:
                console.print(f"[red]{escape(str(exc))}[/red]")
                failed_archives += 1
                continue

            console.print(
                f"{jar_path.name}: added {stats.added}, skipped {stats.failed}"
            )
            if stats.persistence_failures:
                console.print(
                    f"[yellow]Warning: {stats.persistence_failures} store operations failed "
                    f"({stats.last_persistence_error})[/yellow]"
                )

        if show:
            console.print(_records_table(session.root.snapshot()[start:]))
    finally:
        session.close()

    if failed_archives:
        raise typer.Exit(code=1)


@app.command("list")
def list_classes(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    package: Optional[str] = typer.Option(None, help="Only this package and its sub-packages"),
    name: Optional[str] = typer.Option(None, help="Only classes whose name contains this text"),
    interfaces: bool = typer.Option(False, "--interfaces", help="Only interfaces"),
) -> None:
    """Show the stored classes."""
    resolved_db = _resolve_db(db)
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")

    store = SQLiteClassStore(resolved_db)
    try:
        records = Searcher(store).search(
            RecordFilter(package=package, name_contains=name, interfaces_only=interfaces)
        )
    finally:
        store.close()

    if not records:
        console.print("[yellow]No classes found.[/yellow]")
        return
    console.print(_records_table(records))


@app.command()
def delete(
    name: str = typer.Argument(..., help="Fully qualified class name"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Remove every stored record of a class."""
    resolved_db = _resolve_db(db)
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")

    session = ScanSession(SQLiteClassStore(resolved_db))
    try:
        removed = session.remove_by_name(name)
    finally:
        session.close()

    if not removed:
        console.print(f"[yellow]No class named {name}.[/yellow]")
        return
    console.print(f"Removed {removed} record(s) of {name}.")


@app.command()
def clear(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Remove all stored classes."""
    resolved_db = _resolve_db(db)
    if not resolved_db.exists():
        console.print("[yellow]Database not found, nothing to clear.[/yellow]")
        return

    session = ScanSession(SQLiteClassStore(resolved_db))
    try:
        removed = session.clear()
    finally:
        session.close()
    console.print(f"Removed {removed} records.")


@app.command()
def stats(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Summarise the stored classes and scanned archives."""
    resolved_db = _resolve_db(db)
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")

    store = SQLiteClassStore(resolved_db)
    try:
        summary = store.get_stats()
        archives = store.list_archives()
    finally:
        store.close()

    console.print(
        f"Classes: {summary['class_count']}, interfaces: {summary['interface_count']}, "
        f"lines: {summary['total_lines']}, archives: {summary['archive_count']}"
    )
    for archive in archives:
        console.print(f"  {archive['path']} (scanned {archive['scanned_at']})")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Start the web interface."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - optional extra
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    resolved_db = _resolve_db(db)
    if not resolved_db.exists():
        console.print("[yellow]Warning: database not found, it will be created on first scan.[/yellow]")
    web_app.state.db_path = resolved_db

    console.print(f"Starting web interface on http://{host}:{port} (database: {resolved_db})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
