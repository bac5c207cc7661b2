"""
Grant Import CLI - reconcile a DAF provider export with the foundation's records.

Usage:
    # Review a Morgan Stanley export (no writes)
    python -m grant_import review --provider morgan_stanley --file ms_history.csv

    # Review a Schwab export, resolving EINs from the lookup file
    python -m grant_import review --provider schwab --file schwab.csv --ein-lookup eins.csv

    # Commit, also taking low-confidence rows except row 7
    python -m grant_import commit --provider auto --file schwab.csv --ein-lookup eins.csv \\
        --include-low-confidence --exclude 7

Rows are numbered from 1 in the review table; --include/--exclude use those numbers.
Foundation and user ids come from --foundation-id/--user-id, the YAML config or
GRANT_IMPORT_* environment variables (a .env file is honored).
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from .config import ImportConfigError, ImportSettings, load_settings
from .db.store import RecordStore, StoreError
from .models import CommitSummary, GrantMatchType, ImportRow, MatchConfidence
from .parsers import PARSERS, detect_provider, parse_ein_lookup_csv
from .services.commit_orchestrator import CommitOrchestrator
from .services.import_session import ImportSession
from .utils.logger import ImportRunContext, configure_global_logging

logger = logging.getLogger(__name__)

console = Console()

_CONFIDENCE_STYLES = {
    MatchConfidence.HIGH.value: "green",
    MatchConfidence.MEDIUM.value: "yellow",
    MatchConfidence.LOW.value: "red",
}

_GRANT_LABELS = {
    GrantMatchType.TRANSITION.value: "Mark paid",
    GrantMatchType.NEW.value: "New paid grant",
    GrantMatchType.ALREADY_PAID.value: "[dim]Already paid[/dim]",
}


def get_store() -> Optional[RecordStore]:
    """SQL-backed store, or None when the database is unreachable."""
    from .db.client import check_connection
    from .db.repository import SqlRecordStore

    if not check_connection():
        return None
    return SqlRecordStore()


def _read_text(path: str) -> Optional[str]:
    file_path = Path(path).expanduser()
    if not file_path.exists():
        console.print(f"[red]Error: File not found: {path}[/red]")
        return None
    return file_path.read_text(encoding="utf-8")


def _load_settings(args: argparse.Namespace) -> Optional[ImportSettings]:
    try:
        settings = load_settings(args.config)
    except ImportConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return None
    if args.foundation_id:
        settings.foundation_id = args.foundation_id
    if args.user_id:
        settings.user_id = args.user_id
    return settings


def _prepare_session(
    args: argparse.Namespace, settings: ImportSettings
) -> Optional[tuple[ImportSession, RecordStore]]:
    """Read inputs, load snapshots and apply row selection. None on any fatal problem."""
    content = _read_text(args.file)
    if content is None:
        return None

    provider = args.provider
    if provider == "auto":
        provider = detect_provider(content)
        if provider is None:
            console.print("[red]Error: Could not detect the provider from the CSV header row[/red]")
            return None
        console.print(f"Detected provider: [cyan]{provider}[/cyan]")

    lookup_entries = []
    if args.ein_lookup:
        lookup_content = _read_text(args.ein_lookup)
        if lookup_content is None:
            return None
        lookup_entries, lookup_errors = parse_ein_lookup_csv(lookup_content)
        for error in lookup_errors:
            console.print(f"[yellow]{escape(error)}[/yellow]")
        console.print(f"Loaded {len(lookup_entries)} EIN lookup entries")

    if not settings.foundation_id:
        console.print("[red]Error: No foundation id (use --foundation-id or GRANT_IMPORT_FOUNDATION_ID)[/red]")
        return None

    store = get_store()
    if store is None:
        console.print("[red]Error: Cannot connect to the database (check GRANTS_DB_* settings)[/red]")
        return None

    session = ImportSession(
        provider,
        settings.foundation_id,
        lookup_entries=lookup_entries,
        threshold=settings.fuzzy_threshold,
    )
    try:
        session.load_from_store(content, store)
    except StoreError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return None

    parse_result = session.parse_result
    for error in parse_result.errors:
        console.print(f"[yellow]{escape(error)}[/yellow]")
    if parse_result.fatal:
        console.print("[red]Nothing to import.[/red]")
        return None

    if parse_result.unmatched_names:
        count = len(parse_result.unmatched_names)
        console.print(f"[yellow]{count} charities without an EIN in the lookup file:[/yellow]")
        for name in parse_result.unmatched_names:
            console.print(f"  - {escape(name)}")

    if args.include_low_confidence:
        for row in session.rows:
            if row.org_match.confidence == MatchConfidence.LOW:
                row.included = True
    try:
        for number in args.include or []:
            session.set_included(number - 1, True)
        for number in args.exclude or []:
            session.set_included(number - 1, False)
    except IndexError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return None

    return session, store


def _org_match_label(row: ImportRow) -> str:
    match = row.org_match
    if match.type == "exact_ein":
        label = "EIN match"
    elif match.type == "fuzzy_name":
        label = f"Name match ({match.score:.0%})"
    elif match.batch_duplicate:
        label = "New (repeat in file)"
    else:
        label = "New"
    if match.name_changed:
        label += f"\nwas: {match.matched_organization.name}"
    return label


def display_review(session: ImportSession) -> None:
    """Print the row table and review counts."""
    table = Table(title=f"{session.provider} import")
    table.add_column("#", justify="right")
    table.add_column("Inc", justify="center")
    table.add_column("Organization")
    table.add_column("EIN", style="cyan")
    table.add_column("Amount", justify="right")
    table.add_column("Date")
    table.add_column("Org match")
    table.add_column("Confidence", justify="center")
    table.add_column("Grant")

    for row in session.rows:
        confidence = MatchConfidence(row.org_match.confidence).value
        style = _CONFIDENCE_STYLES[confidence]
        grant = _GRANT_LABELS[row.grant_match.type]
        table.add_row(
            str(row.index + 1),
            "[green]x[/green]" if row.included else "",
            escape(row.csv.org_name),
            row.csv.ein or "-",
            f"${row.csv.amount:,.2f}",
            row.csv.date_paid.isoformat(),
            _org_match_label(row),
            f"[{style}]{confidence}[/{style}]",
            grant,
        )

    console.print(table)

    summary = session.review_summary()
    console.print(
        Panel(
            f"Rows: {summary.total_rows} ({summary.included_rows} included)\n"
            f"Transitions to Paid: {summary.transitions}\n"
            f"New grants: {summary.new_grants}\n"
            f"New organizations: {summary.new_organizations}\n"
            f"Already imported: {summary.already_imported}\n"
            f"Low confidence: {summary.low_confidence}",
            title="Review Summary",
            border_style="blue",
        )
    )


def display_commit_summary(summary: CommitSummary) -> None:
    style = "red" if summary.failed else "green"
    console.print(
        Panel(
            f"{summary.message()}\n"
            f"Organizations: {summary.organizations_created} created, "
            f"{summary.organizations_reused} reused, {summary.organizations_renamed} renamed\n"
            f"Failures: {summary.organization_failures} organization, {summary.grant_failures} grant, "
            f"{summary.timed_out} timed out",
            title="Commit Summary",
            border_style=style,
        )
    )


def cmd_review(args: argparse.Namespace) -> int:
    """Parse, match and show what a commit would do."""
    settings = _load_settings(args)
    if settings is None:
        return 1
    configure_global_logging(args.log_level or settings.log_level)

    prepared = _prepare_session(args, settings)
    if prepared is None:
        return 1

    session, _ = prepared
    display_review(session)
    return 0


def cmd_commit(args: argparse.Namespace) -> int:
    """Review, then apply the included rows."""
    settings = _load_settings(args)
    if settings is None:
        return 1
    configure_global_logging(args.log_level or settings.log_level)

    try:
        settings.require_identity()
    except ImportConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    prepared = _prepare_session(args, settings)
    if prepared is None:
        return 1

    session, store = prepared
    display_review(session)
    rows = session.included_rows()
    if not rows:
        console.print("No rows included; nothing to commit.")
        return 0

    orchestrator = CommitOrchestrator(
        store,
        settings.foundation_id,
        settings.user_id,
        user_map=settings.user_map,
        row_timeout_seconds=settings.row_timeout_seconds,
    )

    # Ctrl-C stops after the current row
    cancel_event = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel_event.set())
    try:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Importing", total=len(rows))
            with ImportRunContext(logger, session.provider, len(rows)) as ctx:
                ctx.summary = orchestrator.commit(
                    rows,
                    on_progress=lambda done, total: progress.update(task, completed=done),
                    cancel_event=cancel_event,
                )
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    display_commit_summary(ctx.summary)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconcile DAF provider grant exports with the foundation's records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--provider",
        choices=sorted(PARSERS) + ["auto"],
        default="auto",
        help="CSV dialect (default: detect from header row)",
    )
    common.add_argument("--file", required=True, help="Provider CSV export")
    common.add_argument("--ein-lookup", help="Charity name -> EIN lookup CSV (Schwab)")
    common.add_argument("--foundation-id", help="Foundation id (overrides config)")
    common.add_argument("--user-id", help="Importing user id (overrides config)")
    common.add_argument("--config", help="YAML settings file")
    common.add_argument("--include", type=int, nargs="+", metavar="N", help="Include rows by number")
    common.add_argument("--exclude", type=int, nargs="+", metavar="N", help="Exclude rows by number")
    common.add_argument(
        "--include-low-confidence",
        action="store_true",
        help="Include rows whose organization did not match (excluded by default)",
    )
    common.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")

    subparsers.add_parser("review", parents=[common], help="Show matches without writing")
    subparsers.add_parser("commit", parents=[common], help="Apply the included rows")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "review":
        return cmd_review(args)
    elif args.command == "commit":
        return cmd_commit(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
