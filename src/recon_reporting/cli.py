"""
Command-line interface for the reconciliation reporting tool.
"""

from pathlib import Path
from typing import Optional
import json
import logging
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .analytics.aggregation import DashboardView, format_currency
from .analytics.filters import FilterCriteria, StatusFilter
from .config import ReportingConfig, generate_default_config, load_config, save_config
from .ingestion import SourceDocument
from .matching.service import ProcessingMode, ReplayMatchingService, decode_response
from .models.schema import result_to_payload
from .models.transaction import MatchedPair
from .reports import ExportFormat, SectionSelection
from .session import ExportProgress, ReportSession
from .utils.exceptions import MatchingServiceError, ReconciliationError, ResultValidationError
from .utils.logging_config import setup_logging

console = Console()

CONFIG_OPTION = click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)


def _filter_options(func):
    """Shared date, category and search options."""
    func = click.option("--search", default=None, help="Case-insensitive text search")(func)
    func = click.option(
        "--category",
        type=click.Choice(["all", "inflow", "outflow"]),
        default="all",
        show_default=True,
        help="Cash direction filter",
    )(func)
    func = click.option("--end-date", default=None, help="Latest date (YYYY-MM-DD)")(func)
    func = click.option("--start-date", default=None, help="Earliest date (YYYY-MM-DD)")(func)
    return func


@click.group()
@click.version_option(version="0.1.0")
def main():
    """Reconciliation result dashboard and report exports."""
    pass


def _prepare(config_path: Optional[Path], verbose: bool) -> ReportingConfig:
    recon_config = load_config(config_path)
    log_file = Path(recon_config.logging.file) if recon_config.logging.file else None
    setup_logging(
        logging.DEBUG if verbose else recon_config.logging.level,
        log_file=log_file,
        log_format=recon_config.logging.format,
    )
    return recon_config


def _load_session(result_file: Path, recon_config: ReportingConfig) -> ReportSession:
    session = ReportSession(recon_config)
    session.load_payload(decode_response(result_file.read_text(encoding="utf-8")))
    return session


def _fail(error: Exception, verbose: bool = False) -> None:
    if isinstance(error, MatchingServiceError):
        console.print(f"[red]{error.user_message}[/red]")
        console.print(f"[dim]{escape(str(error))}[/dim]")
    elif isinstance(error, ResultValidationError):
        console.print("[red]Reconciliation result rejected:[/red]")
        for line in error.errors or [str(error)]:
            console.print(f"  [red]- {escape(line)}[/red]")
    else:
        console.print(f"[red]Error: {escape(str(error))}[/red]")
    if verbose:
        console.print_exception()
    sys.exit(1)


@main.command()
@click.argument("result_file", type=click.Path(exists=True, path_type=Path))
@CONFIG_OPTION
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help="Write the normalized payload to this JSON file",
)
def validate(result_file: Path, config: Optional[Path], output: Optional[Path]):
    """
    Check that a matcher output file conforms to the result model.

    RESULT_FILE: JSON produced by the matching service
    """
    recon_config = _prepare(config, False)
    try:
        session = _load_session(result_file, recon_config)
    except ReconciliationError as e:
        _fail(e)
        return

    result = session.result
    console.print(
        f"[green]Valid result:[/green] {len(result.matches)} matches, "
        f"{len(result.unmatched_bank)} unmatched bank, "
        f"{len(result.unmatched_ledger)} unmatched ledger"
    )

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(result_to_payload(result), indent=2), encoding="utf-8")
        console.print(f"[green]Normalized payload written: {output}[/green]")


@main.command()
@click.argument("bank_file", type=click.Path(exists=True, path_type=Path))
@click.argument("ledger_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--matcher-output",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Recorded matching service answer (JSON)",
)
@click.option("--mode", type=click.Choice(["fast", "precise"]), default=None)
@CONFIG_OPTION
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def reconcile(
    bank_file: Path,
    ledger_file: Path,
    matcher_output: Path,
    mode: Optional[str],
    config: Optional[Path],
    verbose: bool,
):
    """
    Reconcile a bank statement against a ledger using a recorded matcher answer.

    BANK_FILE: Bank statement (CSV text or PDF)
    LEDGER_FILE: General ledger / cash book (CSV text or PDF)
    """
    recon_config = _prepare(config, verbose)
    processing_mode = ProcessingMode(mode or recon_config.preferences.processing_mode)

    try:
        service = ReplayMatchingService.from_file(matcher_output)
        session = ReportSession(recon_config)
        with console.status("Reconciling documents..."):
            session.reconcile(
                service,
                SourceDocument.from_path(bank_file),
                SourceDocument.from_path(ledger_file),
                processing_mode,
            )
    except ReconciliationError as e:
        _fail(e, verbose)
        return

    _display_dashboard(session.dashboard(), recon_config.currency.symbol)


@main.command()
@click.argument("result_file", type=click.Path(exists=True, path_type=Path))
@CONFIG_OPTION
@click.option("--top", type=int, default=None, help="Number of largest unmatched items")
def summary(result_file: Path, config: Optional[Path], top: Optional[int]):
    """
    Display the reconciliation dashboard.

    RESULT_FILE: JSON produced by the matching service
    """
    recon_config = _prepare(config, False)
    if top is not None:
        recon_config.dashboard.top_n = top

    try:
        session = _load_session(result_file, recon_config)
    except ReconciliationError as e:
        _fail(e)
        return

    _display_dashboard(session.dashboard(), recon_config.currency.symbol)


@main.command()
@click.argument("result_file", type=click.Path(exists=True, path_type=Path))
@CONFIG_OPTION
@_filter_options
@click.option(
    "--status",
    type=click.Choice([s.value for s in StatusFilter]),
    default="all",
    show_default=True,
)
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--page-size", type=int, default=20, show_default=True)
def show(
    result_file: Path,
    config: Optional[Path],
    start_date: Optional[str],
    end_date: Optional[str],
    category: str,
    search: Optional[str],
    status: str,
    page: int,
    page_size: int,
):
    """
    List transactions with filtering and paging.

    RESULT_FILE: JSON produced by the matching service
    """
    recon_config = _prepare(config, False)
    symbol = recon_config.currency.symbol

    try:
        session = _load_session(result_file, recon_config)
        session.set_filters(FilterCriteria.from_inputs(start_date, end_date, category, search))
        current = session.table_page(StatusFilter(status), page, page_size)
    except ReconciliationError as e:
        _fail(e)
        return

    table = Table(title=f"Transactions (page {current.page} of {current.total_pages})")
    table.add_column("Status")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Reference")
    table.add_column("Confidence", justify="right")
    table.add_column("Amount", justify="right")

    for record in current.items:
        if isinstance(record, MatchedPair):
            reference = " / ".join(r for r in (record.bank_ref, record.ledger_ref) if r) or "-"
            confidence = f"{record.match_confidence:g}%"
        else:
            reference = record.ref or "-"
            confidence = ""
        table.add_row(
            record.kind.value,
            record.date.isoformat(),
            escape(
                record.description[:40] + "..."
                if len(record.description) > 40
                else record.description
            ),
            escape(reference),
            confidence,
            format_currency(record.amount, symbol),
        )

    console.print(table)
    console.print(f"\n{current.total_items} matching record(s)")


@main.command()
@click.argument("result_file", type=click.Path(exists=True, path_type=Path))
@CONFIG_OPTION
@click.option(
    "-f",
    "--format",
    "export_format",
    type=click.Choice([f.value for f in ExportFormat]),
    default="pdf",
    show_default=True,
)
@click.option("-o", "--output-dir", type=click.Path(path_type=Path), default=None)
@click.option("--company", default=None, help="Company name for the report header")
@click.option("--as-at", default=None, help="'As at' date for the report header")
@_filter_options
@click.option("--summary/--no-summary", "include_summary", default=None)
@click.option("--matches/--no-matches", "include_matches", default=None)
@click.option("--unmatched-bank/--no-unmatched-bank", "include_bank", default=None)
@click.option("--unmatched-ledger/--no-unmatched-ledger", "include_ledger", default=None)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def export(
    result_file: Path,
    config: Optional[Path],
    export_format: str,
    output_dir: Optional[Path],
    company: Optional[str],
    as_at: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    category: str,
    search: Optional[str],
    include_summary: Optional[bool],
    include_matches: Optional[bool],
    include_bank: Optional[bool],
    include_ledger: Optional[bool],
    verbose: bool,
):
    """
    Export a filtered report as CSV, PDF or Excel.

    RESULT_FILE: JSON produced by the matching service
    """
    recon_config = _prepare(config, verbose)
    defaults = recon_config.export.sections
    selection = SectionSelection(
        summary=defaults.summary if include_summary is None else include_summary,
        matches=defaults.matches if include_matches is None else include_matches,
        unmatched_bank=defaults.unmatched_bank if include_bank is None else include_bank,
        unmatched_ledger=defaults.unmatched_ledger if include_ledger is None else include_ledger,
    )
    target_dir = output_dir or Path(recon_config.export.output_dir)

    try:
        session = _load_session(result_file, recon_config)
        session.set_filters(FilterCriteria.from_inputs(start_date, end_date, category, search))
        session.set_sections(selection)
        session.set_header(company_name=company, as_at_date=as_at)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            console=console,
        ) as progress:
            bar = progress.add_task("Preparing export...", total=100)

            def on_progress(event: ExportProgress) -> None:
                progress.update(bar, completed=event.percent, description=event.message)

            artifact = session.export(ExportFormat(export_format), on_progress=on_progress)

        path = artifact.save(target_dir)
    except ReconciliationError as e:
        _fail(e, verbose)
        return

    console.print(f"\n[green]Report generated: {path}[/green]")


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


@main.command("set-preference")
@click.option(
    "-c", "--config", type=click.Path(path_type=Path), default=Path("config.yaml"), show_default=True
)
@click.option("--company", default=None, help="Default company name")
@click.option("--as-at", default=None, help="Default 'as at' date")
@click.option("--currency", default=None, help="Currency symbol prefix, e.g. 'GHS '")
@click.option("--mode", type=click.Choice(["fast", "precise"]), default=None)
def set_preference(
    config: Path,
    company: Optional[str],
    as_at: Optional[str],
    currency: Optional[str],
    mode: Optional[str],
):
    """Update and persist user preferences in the configuration file."""
    try:
        recon_config = load_config(config)
    except ReconciliationError as e:
        _fail(e)
        return

    if company is not None:
        recon_config.report.company_name = company
    if as_at is not None:
        recon_config.report.as_at_date = as_at
    if currency is not None:
        recon_config.currency.symbol = currency
    if mode is not None:
        recon_config.preferences.processing_mode = mode

    save_config(recon_config, config)
    console.print(f"[green]Preferences saved: {config}[/green]")


def _display_dashboard(view: DashboardView, symbol: str) -> None:
    """Display dashboard metrics in the console."""
    totals = view.totals

    table = Table(title="Reconciliation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Amount", justify="right")

    table.add_row("Matched", str(totals.total_matches), format_currency(totals.matched_amount, symbol))
    table.add_row(
        "Unmatched (Bank)",
        str(totals.total_unmatched_bank),
        format_currency(totals.unmatched_bank_amount, symbol),
    )
    table.add_row(
        "Unmatched (Ledger)",
        str(totals.total_unmatched_ledger),
        format_currency(totals.unmatched_ledger_amount, symbol),
    )
    table.add_row("Total Items", str(view.total_items), "")
    table.add_row("Match Rate", f"{view.match_rate:.1f}%", "")
    table.add_row("Net Discrepancy", "", format_currency(totals.net_discrepancy, symbol))
    console.print(table)

    balances = Table(title="Closing Balances")
    balances.add_column("Balance", style="cyan")
    balances.add_column("Amount", justify="right")
    for label, value in (
        ("Bank Statement", totals.bank_statement_balance),
        ("Ledger", totals.ledger_balance),
    ):
        balances.add_row(label, format_currency(value, symbol) if value is not None else "-")
    balances.add_row("Variance", format_currency(view.variance, symbol))
    if totals.audit_score is not None:
        balances.add_row("Audit Score", f"{totals.audit_score:g}/100")
    console.print(balances)

    if view.top_unmatched:
        top = Table(title=f"Top {len(view.top_unmatched)} Largest Unmatched")
        top.add_column("Side")
        top.add_column("Date")
        top.add_column("Description")
        top.add_column("Amount", justify="right")
        for item in view.top_unmatched:
            txn = item.transaction
            top.add_row(
                item.side.value,
                txn.date.isoformat(),
                escape(txn.description),
                format_currency(txn.amount, symbol),
            )
        console.print(top)


if __name__ == "__main__":
    main()
