"""PostgreSQL to Snowflake CDC quickstart: operator CLI."""

import argparse
import logging
import sqlite3
import sys
from datetime import date
from pathlib import Path

import psycopg2
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from pgcdc_quickstart import analytics_queries, verify_queries
from pgcdc_quickstart.cdc_metadata import PROFILES, get_profile
from pgcdc_quickstart.config import ConfigurationError, get_settings
from pgcdc_quickstart.healthcare.database import SourceDatabase
from pgcdc_quickstart.healthcare.database.appointment_repository import VisitError
from pgcdc_quickstart.healthcare.scripts.seed_database import init_healthcare
from pgcdc_quickstart.integrity_checks import CheckResult, run_checks
from pgcdc_quickstart.live_activity import run_clinic_day
from pgcdc_quickstart.snowflake_client import QueryResult, WarehouseClient, WarehouseError
from pgcdc_quickstart.state_machine import InvalidTransitionError
from pgcdc_quickstart.warehouse_setup import (
    WarehouseObjects,
    render_setup_script,
    require_real_endpoint,
    setup_statements,
    verification_statements,
)

console = Console()
logger = logging.getLogger("pgcdc_quickstart")

# Errors reported as a red one-liner with exit status 1
HANDLED_ERRORS = (
    ConfigurationError,
    WarehouseError,
    InvalidTransitionError,
    VisitError,
    psycopg2.Error,
    sqlite3.Error,
)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from None


# Commands

def cmd_init_source(args) -> int:
    db = SourceDatabase()
    console.print(f"[bold]Initializing source database[/bold] {db.describe()}")
    summary = init_healthcare(db, today=args.today, seed=args.seed, publication=not args.no_publication)

    table = Table(title="Snapshot data loaded", show_header=False)
    table.add_row("Patients", str(summary.patients))
    table.add_row("Doctors", str(summary.doctors))
    table.add_row("Appointments", f"{summary.appointments} ({summary.past_appointments} past + "
                                  f"{summary.upcoming_appointments} upcoming)")
    table.add_row("Visits", str(summary.visits))
    table.add_row("CDC publication", "created" if summary.publication else "skipped")
    console.print(table)
    return 0


def cmd_warehouse_setup(args) -> int:
    objects = WarehouseObjects.from_settings(endpoint=args.endpoint)

    if not args.execute:
        script = render_setup_script(objects)
        if args.output:
            Path(args.output).write_text(script)
            console.print(f"Setup script written to [bold]{args.output}[/bold]")
        else:
            console.print(Syntax(script, "sql"))
        if objects.has_placeholder_endpoint:
            console.print("[yellow]POSTGRES_ENDPOINT is still the placeholder; edit the network rule before running.[/yellow]")
        return 0

    require_real_endpoint(objects)
    with WarehouseClient() as client:
        executed = client.run_statements(setup_statements(objects))
        console.print(f"[green]Executed {executed} setup statements[/green]")
        for statement in verification_statements(objects):
            rows = client.fetch_all(statement.sql)
            console.print(f"[dim]{statement.sql}[/dim] -> {len(rows)} row(s)")
    return 0


def _print_query_results(results: list[QueryResult]) -> int:
    failures = 0
    for result in results:
        q = result.query
        if not result.ok:
            failures += 1
            console.print(f"[bold red]{q.title}[/bold red]: {escape(result.error)}")
            continue
        table = Table(title=f"{q.title} ({q.section})", caption=q.expectation or None)
        columns = list(result.rows[0]) if result.rows else []
        for column in columns:
            table.add_column(column)
        for row in result.rows:
            table.add_row(*("" if row[c] is None else str(row[c]) for c in columns))
        console.print(table)
    return 1 if failures else 0


def cmd_verify(args) -> int:
    queries = verify_queries.queries_for(args.section, get_profile(args.profile))
    with WarehouseClient() as client:
        client.use_context()
        return _print_query_results(client.run_queries(queries))


def cmd_analytics(args) -> int:
    queries = analytics_queries.queries_for(args.section, get_profile(args.profile))
    with WarehouseClient() as client:
        client.use_context()
        return _print_query_results(client.run_queries(queries))


def cmd_simulate(args) -> int:
    run_clinic_day(SourceDatabase(), console=console, today=args.today, pause_scale=args.pause_scale)
    return 0


def _print_checks(results: list[CheckResult], target: str) -> int:
    table = Table(title=f"Integrity checks ({target})")
    table.add_column("Check")
    table.add_column("Observed", justify="right")
    table.add_column("Expected", justify="right")
    table.add_column("Result")
    for r in results:
        verdict = "[green]PASS[/green]" if r.passed else "[red]FAIL[/red]"
        table.add_row(r.name, str(r.observed), str(r.expected), verdict)
    console.print(table)

    failed = sum(1 for r in results if not r.passed)
    if failed:
        console.print(Panel(f"{failed} check(s) failed", style="bold red"))
        return 1
    console.print(Panel("All integrity checks passed", style="bold green"))
    return 0


def cmd_check(args) -> int:
    if args.target == "source":
        results = run_checks(SourceDatabase().fetch_all, after_live=args.after_live)
        return _print_checks(results, "source")

    with WarehouseClient() as client:
        client.use_context()
        results = run_checks(client.fetch_all, after_live=args.after_live)
    return _print_checks(results, "warehouse")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgcdc-quickstart",
        description="PostgreSQL to Snowflake CDC quickstart for the healthcare demo",
    )
    parser.add_argument("--log-level", help="override LOG_LEVEL (DEBUG, INFO, WARNING...)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-source", help="create the healthcare schema, seed it and publish it for CDC")
    p.add_argument("--seed", type=int, help="random seed for the synthetic data (default: SEED)")
    p.add_argument("--today", type=_date, help="pretend today is YYYY-MM-DD")
    p.add_argument("--no-publication", action="store_true", help="skip CREATE PUBLICATION")
    p.set_defaults(func=cmd_init_source)

    p = sub.add_parser("warehouse-setup", help="render or run the Snowflake setup statements")
    p.add_argument("--endpoint", help="PostgreSQL host:port for the network rule (default: POSTGRES_ENDPOINT)")
    p.add_argument("--execute", action="store_true", help="run the statements on Snowflake")
    p.add_argument("--output", help="write the SQL script to this file")
    p.set_defaults(func=cmd_warehouse_setup)

    p = sub.add_parser("verify", help="verify the snapshot load on Snowflake")
    p.add_argument("--section", choices=verify_queries.SECTIONS)
    p.add_argument("--profile", choices=list(PROFILES), help="CDC metadata profile (default: CDC_METADATA_PROFILE)")
    p.set_defaults(func=cmd_verify)

    p = sub.add_parser("simulate", help="play a morning of clinic activity on the source")
    p.add_argument("--pause-scale", type=float, default=1.0, help="multiply pauses between steps (0 disables)")
    p.add_argument("--today", type=_date, help="pretend today is YYYY-MM-DD")
    p.set_defaults(func=cmd_simulate)

    p = sub.add_parser("analytics", help="run the analytics queries on Snowflake")
    p.add_argument("--section", choices=analytics_queries.SECTIONS)
    p.add_argument("--profile", choices=list(PROFILES), help="CDC metadata profile (default: CDC_METADATA_PROFILE)")
    p.set_defaults(func=cmd_analytics)

    p = sub.add_parser("check", help="run integrity checks on the source or the warehouse")
    p.add_argument("--target", choices=["source", "warehouse"], default="source")
    p.add_argument("--after-live", action="store_true", help="expect at least the snapshot volumes")
    p.set_defaults(func=cmd_check)

    return parser


def main(argv=None) -> int:
    """Entry point of the pgcdc-quickstart command."""
    args = build_parser().parse_args(argv)

    try:
        configure_logging(args.log_level or get_settings().log_level)
        return args.func(args)
    except HANDLED_ERRORS as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        logger.debug("command failed", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
