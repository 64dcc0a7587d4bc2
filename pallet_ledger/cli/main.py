"""
CLI interface for Pallet Ledger.

Provides command-line access to the ledger summaries and reports.
"""

import json
import logging
import sqlite3
import sys
from datetime import date
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from pallet_ledger.config.loader import StaticRateProvider, YamlRateProvider, load_ledger_config
from pallet_ledger.core.classifier import DEFAULT_RULES, Geometry
from pallet_ledger.core.clock import FixedClock, SystemClock
from pallet_ledger.core.engine import LedgerEngine
from pallet_ledger.core.month_key import MonthKey
from pallet_ledger.logging_config import configure_logging
from pallet_ledger.storage.db import DEFAULT_DB_PATH
from pallet_ledger.storage.repository import (
    SqliteRecordSource,
    document_from_dict,
    initialize_schema,
    insert_documents,
    insert_entry_records,
    register_document,
)

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1
EXIT_CODE_NOT_FOUND = 2


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Path to the SQLite record store"),
    rates: Optional[str] = typer.Option(None, "--rates", "-r", help="YAML file with rates and classification"),
    today: Optional[str] = typer.Option(None, "--today", help="Reference day (YYYY-MM-DD) instead of the system date"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log computation details"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines"),
):
    """Pallet Ledger CLI."""
    configure_logging(level=logging.DEBUG if verbose else logging.WARNING, json_output=json_logs)
    ctx.obj = {"db": db, "rates": rates, "today": today}
    if ctx.invoked_subcommand is None:
        console.print("Pallet Ledger - Use --help to see available commands")


def _build_engine(ctx: typer.Context) -> LedgerEngine:
    """Create an engine over the SQLite store from the global options."""
    options = ctx.obj or {}
    rules = DEFAULT_RULES
    if options.get("rates"):
        try:
            rules = load_ledger_config(options["rates"]).classification
        except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
            _fail(f"loading rates: {e}")
        rate_provider = YamlRateProvider(options["rates"])
    else:
        rate_provider = StaticRateProvider()

    clock = SystemClock()
    if options.get("today"):
        try:
            clock = FixedClock(date.fromisoformat(options["today"]))
        except ValueError:
            _fail(f"invalid --today value: {options['today']} (expected YYYY-MM-DD)")
    source = SqliteRecordSource(options.get("db", DEFAULT_DB_PATH), rules)
    return LedgerEngine(source, rate_provider, clock)


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


def _missing_store() -> None:
    console.print("\n[bold yellow]No ledger data found[/]")
    console.print("\nTo get started with Pallet Ledger:")
    console.print("1. Run `pallet-ledger init` to initialize the database")
    console.print("2. Run `pallet-ledger load <file.json>` to load documents and records\n")
    sys.exit(EXIT_CODE_OK)


@app.command()
def init(ctx: typer.Context):
    """Initialize the Pallet Ledger database."""
    try:
        initialize_schema(ctx.obj["db"])
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_OK)
    except sqlite3.Error as e:
        _fail(f"initializing database: {e}")


@app.command()
def load(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="JSON file with 'documents' and 'records' lists"),
):
    """Load normalised documents and entry records into the store."""
    file_path = Path(path)
    if not file_path.exists():
        _fail(f"file not found: {path}")

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        _fail(f"invalid JSON in {path}: {e}")

    if not isinstance(data, dict) or "documents" not in data or "records" not in data:
        _fail("invalid format, expected 'documents' and 'records'")

    try:
        db_path = ctx.obj["db"]
        documents = [document_from_dict(raw) for raw in data["documents"]]
        initialize_schema(db_path)
        insert_documents(documents, db_path)

        # Records may name their document by number instead of id
        rows = []
        for raw in data["records"]:
            if raw.get("document_id") is None and raw.get("document_number"):
                raw = dict(raw, document_id=register_document(str(raw["document_number"]), db_path))
            rows.append(raw)
        ids = insert_entry_records(rows, db_path)
    except (KeyError, ValueError, sqlite3.Error) as e:
        _fail(f"loading {path}: {e}")

    console.print(f"[green]✓[/] Loaded {len(documents)} documents and {len(ids)} records")
    sys.exit(EXIT_CODE_OK)


@app.command()
def summary(ctx: typer.Context):
    """Show monthly entry, exit and storage costs."""
    try:
        bundle = _build_engine(ctx).aggregate_summaries()
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            _missing_store()
        raise

    if not bundle.entries and not bundle.exits and not bundle.storage:
        console.print("\n[dim]No records to summarize.[/]")
        sys.exit(EXIT_CODE_OK)

    entries = {s.month: s for s in bundle.entries}
    exits = {s.month: s for s in bundle.exits}
    storage = {s.month: s for s in bundle.storage}

    table = Table(title="Monthly Costs")
    table.add_column("Month")
    table.add_column("Entered (eq.)", justify="right")
    table.add_column("Entry cost", justify="right")
    table.add_column("Exited", justify="right")
    table.add_column("Exit cost", justify="right")
    table.add_column("Avg stock", justify="right")
    table.add_column("Storage cost", justify="right")
    table.add_column("Total", justify="right")

    for month in sorted(set(entries) | set(exits) | set(storage)):
        entry, exit_, stock = entries.get(month), exits.get(month), storage.get(month)
        entry_cost = entry.cost if entry else 0.0
        exit_cost = exit_.cost if exit_ else 0.0
        storage_cost = stock.cost if stock else 0.0
        table.add_row(
            str(month),
            str(entry.total_equivalent if entry else 0),
            _format_currency(entry_cost),
            str(exit_.total_units if exit_ else 0),
            _format_currency(exit_cost),
            f"{stock.average_stock:,.1f}" if stock else "0.0",
            _format_currency(storage_cost),
            _format_currency(entry_cost + exit_cost + storage_cost),
        )
    console.print(table)

    if bundle.issues:
        console.print(f"\n[yellow]{len(bundle.issues)} record issue(s) skipped:[/]")
        for issue in bundle.issues:
            console.print(f"  - {issue.message}")
    sys.exit(EXIT_CODE_OK)


@app.command()
def report(
    ctx: typer.Context,
    document_number: str = typer.Argument(..., help="Business document number"),
):
    """Show the cost report of a document number."""
    try:
        result = _build_engine(ctx).build_report(document_number)
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            _missing_store()
        raise

    if result is None:
        console.print(f"[yellow]Document not found:[/] {document_number}")
        sys.exit(EXIT_CODE_NOT_FOUND)

    console.print(f"\n[bold]Document {result.document.document_number}[/bold]")
    console.print("-" * 40)
    if result.used_fallback:
        matched = ", ".join(d.document_number for d in result.matched_documents)
        console.print(f"[yellow]No exact match, using partial match:[/] {matched}")
    console.print(f"Rows: {len(result.rows)}")
    console.print(f"Pallets entered: {result.total_entered}")
    console.print(f"Pallets exited: {result.total_exited}")
    console.print(f"Pallets remaining: {result.remaining}")
    console.print(f"Entry cost: {_format_currency(result.entry_cost)}")
    console.print(f"Exit cost: {_format_currency(result.exit_cost)}")
    console.print(f"Storage cost: {_format_currency(result.storage_cost)}")
    console.print(f"[bold]Total cost:[/bold] {_format_currency(result.total_cost)}")

    if result.exits:
        table = Table(title="Exits")
        table.add_column("Date")
        table.add_column("Pallets", justify="right")
        table.add_column("Days", justify="right")
        for exit_ in result.exits:
            table.add_row(
                exit_.exit_date.isoformat(),
                str(exit_.unit_count),
                "" if exit_.elapsed_days is None else str(exit_.elapsed_days),
            )
        console.print(table)
    sys.exit(EXIT_CODE_OK)


@app.command()
def storage(
    ctx: typer.Context,
    month: str = typer.Argument(..., help="Month as YYYY-MM"),
):
    """Show pallets in stock for a month."""
    try:
        month_key = MonthKey.parse(month)
    except ValueError as e:
        _fail(str(e))

    engine = _build_engine(ctx)
    try:
        detail = engine.storage_details_for_month(month_key)
        projected = engine.project_storage_cost(month_key)
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            _missing_store()
        raise

    console.print(f"\n[bold]Stock for {month_key}[/bold] (as of {detail.reference_date.isoformat()})")
    console.print("-" * 40)
    for geometry, label in ((Geometry.A, "100x120"), (Geometry.B, "80x120")):
        console.print(f"{label} normal: {detail.normal_units_by_geometry.get(geometry, 0)}")
    console.print(f"Equivalent normal pallets: {detail.equivalent_normal_units}")
    for geometry, label in ((Geometry.A, "100x120"), (Geometry.B, "80x120")):
        console.print(f"{label} frozen: {detail.frozen_units_by_geometry.get(geometry, 0)}")
    console.print(f"Equivalent frozen pallets: {detail.equivalent_frozen_units}")
    if projected:
        console.print(f"Projected storage to month end: {_format_currency(projected)}")
    sys.exit(EXIT_CODE_OK)


@app.command()
def project(ctx: typer.Context):
    """Project the storage cost for the rest of the current month."""
    engine = _build_engine(ctx)
    month_key = MonthKey.from_date(engine.clock.today())
    try:
        projected = engine.project_storage_cost(month_key)
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            _missing_store()
        raise
    console.print(f"Projected storage cost for {month_key}: {_format_currency(projected)}")
    sys.exit(EXIT_CODE_OK)


@app.command()
def yearly(
    ctx: typer.Context,
    year: int = typer.Argument(..., help="Calendar year"),
):
    """Show monthly and quarterly costs of a year."""
    try:
        totals = _build_engine(ctx).yearly_totals(year)
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            _missing_store()
        raise

    table = Table(title=f"Costs {year}")
    table.add_column("Period")
    table.add_column("Entry", justify="right")
    table.add_column("Exit", justify="right")
    table.add_column("Storage", justify="right")
    table.add_column("Total", justify="right")
    for month in totals.months:
        table.add_row(
            str(month.month),
            _format_currency(month.entry_cost),
            _format_currency(month.exit_cost),
            _format_currency(month.storage_cost),
            _format_currency(month.total_cost),
        )
    for index, quarter in enumerate(totals.quarters, start=1):
        table.add_row(
            f"Q{index}",
            _format_currency(quarter.entry_cost),
            _format_currency(quarter.exit_cost),
            _format_currency(quarter.storage_cost),
            _format_currency(quarter.total_cost),
        )
    console.print(table)
    console.print(f"[bold]Year total:[/bold] {_format_currency(totals.totals.total_cost)}")
    sys.exit(EXIT_CODE_OK)


def _format_currency(amount: float) -> str:
    """Format an amount in euro with thousands separators."""
    return f"€{amount:,.2f}"


if __name__ == "__main__":
    app()
