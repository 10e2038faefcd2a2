"""
Command-line interface for the bank statement reconciliation tool.
"""

from pathlib import Path
from typing import Optional
import logging
import sys

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import ReconConfig, generate_default_config, load_config
from .matching.engine import ReconciliationMatchingEngine
from .models.reconciliation import MatchResult
from .models.statement import Confidence, ParsedStatement
from .parsers.csv_parser import LedgerCsvLoader
from .parsers.statement_parser import StatementParser
from .reports.excel_generator import ExcelReportGenerator, default_output_path
from .utils.exceptions import ReconciliationError, explain_error
from .utils.logging_config import setup_logging

console = Console()

CONFIDENCE_STYLES = {
    Confidence.HIGH: "green",
    Confidence.MEDIUM: "yellow",
    Confidence.LOW: "red",
}


@click.group()
@click.version_option(version=__version__)
def main():
    """Bank Statement to Ledger Reconciliation Tool."""
    pass


@main.command("parse-statement")
@click.argument("statement_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option("--limit", type=int, default=20, show_default=True, help="Rows to display")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def parse_statement(statement_file: Path, config: Optional[Path], limit: int, verbose: bool):
    """
    Parse a bank statement and display what was extracted.

    STATEMENT_FILE: PDF, CSV or text bank statement
    """
    setup_logging(logging.DEBUG if verbose else logging.WARNING)

    try:
        recon_config = load_config(config)
        parsed = StatementParser(recon_config).parse_file(statement_file)
    except ReconciliationError as e:
        _fail(e, verbose)

    _display_statement(parsed, statement_file.name, limit)


@main.command()
@click.argument("statement_file", type=click.Path(exists=True, path_type=Path))
@click.argument("ledger_file", type=click.Path(exists=True, path_type=Path))
@click.option("-a", "--account-id", required=True, help="Ledger account being reconciled")
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output Excel file path")
@click.option(
    "--padding-days", type=int, default=None, help="Override candidate date padding in days"
)
@click.option("--log-file", type=click.Path(path_type=Path), help="Also write logs to this file")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--dry-run", is_flag=True, help="Match and show summary without generating report"
)
def match(
    statement_file: Path,
    ledger_file: Path,
    account_id: str,
    config: Optional[Path],
    output: Optional[Path],
    padding_days: Optional[int],
    log_file: Optional[Path],
    verbose: bool,
    dry_run: bool,
):
    """
    Match a bank statement against a ledger CSV export.

    STATEMENT_FILE: PDF, CSV or text bank statement
    LEDGER_FILE: Ledger CSV export for the account
    """
    try:
        recon_config = load_config(config)
        level = logging.DEBUG if verbose else recon_config.logging.level
        setup_logging(level, log_file, recon_config.logging.format)

        if padding_days is not None:
            recon_config.matching.date_padding_days = padding_days

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Parsing statement...", total=None)
            parsed = StatementParser(recon_config).parse_file(statement_file)
            progress.update(task, completed=True)

            task = progress.add_task("Loading ledger CSV...", total=None)
            repository = LedgerCsvLoader(recon_config).load(ledger_file, account_id)
            progress.update(task, completed=True)

            task = progress.add_task("Matching transactions...", total=None)
            period = parsed.info.statement_period
            engine = ReconciliationMatchingEngine(repository, recon_config)
            result = engine.match_transactions(
                account_id,
                parsed.transactions,
                range_start=period.start if period else None,
                range_end=period.end if period else None,
            )
            progress.update(task, completed=True)

        _display_summary(result, parsed)

        if dry_run:
            console.print("\n[yellow]Dry run - no report generated[/yellow]")
            return

        report_path = ExcelReportGenerator(recon_config).generate_report(
            result=result,
            account_id=account_id,
            output_path=output or default_output_path(recon_config),
            statement=parsed,
            statement_filename=statement_file.name,
        )
        console.print(f"\n[green]Report generated: {report_path}[/green]")

    except ReconciliationError as e:
        _fail(e, verbose)


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _fail(error: ReconciliationError, verbose: bool) -> None:
    console.print(f"[red]Error: {explain_error(error)}[/red]")
    if verbose:
        console.print_exception()
    sys.exit(1)


def _display_statement(parsed: ParsedStatement, filename: str, limit: int) -> None:
    """Display extracted statement details in console."""
    info = parsed.info
    style = CONFIDENCE_STYLES[parsed.confidence]

    console.print(f"[bold]Statement:[/bold] {filename} ({parsed.format_name} format)")
    console.print(f"Account number: {info.account_number or '-'}")
    if info.statement_period:
        console.print(
            f"Statement period: {info.statement_period.start} to {info.statement_period.end}"
        )
    if info.opening_balance is not None:
        console.print(f"Opening balance: ${info.opening_balance:,.2f}")
    if info.closing_balance is not None:
        console.print(f"Closing balance: ${info.closing_balance:,.2f}")
    console.print(f"Confidence: [{style}]{parsed.confidence.value}[/{style}]")

    table = Table(title=f"Statement Transactions: {filename}")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Debit", justify="right")
    table.add_column("Credit", justify="right")
    table.add_column("Balance", justify="right")

    for txn in parsed.transactions[:limit]:
        table.add_row(
            str(txn.date),
            txn.description[:40] + "..." if len(txn.description) > 40 else txn.description,
            f"${txn.debit:,.2f}" if txn.debit is not None else "-",
            f"${txn.credit:,.2f}" if txn.credit is not None else "-",
            f"${txn.balance:,.2f}" if txn.balance is not None else "-",
        )

    console.print(table)

    if len(parsed.transactions) > limit:
        console.print(f"\n... and {len(parsed.transactions) - limit} more transactions")

    console.print(f"\nTotal transactions: {len(parsed.transactions)}")
    if parsed.warnings:
        console.print(f"[yellow]Skipped lines: {len(parsed.warnings)}[/yellow]")


def _display_summary(result: MatchResult, parsed: ParsedStatement) -> None:
    """Display matching summary in console."""
    summary = result.summary

    table = Table(title="Reconciliation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Statement Format", parsed.format_name)
    table.add_row("Extraction Confidence", parsed.confidence.value)
    table.add_row("Statement Lines", str(summary.total_statement))
    table.add_row("Exact Matches", str(len(result.exact_matches)))
    table.add_row("Probable Matches", str(len(result.probable_matches)))
    table.add_row("Possible Matches", str(len(result.possible_matches)))
    table.add_row("Unmatched Statement Lines", str(summary.total_unmatched))
    table.add_row("Unmatched Ledger Transactions", str(len(result.unmatched_ledger)))
    table.add_row("Ledger Balance", f"${summary.ledger_balance:,.2f}")
    if summary.statement_balance is not None:
        table.add_row("Statement Balance", f"${summary.statement_balance:,.2f}")
    if summary.difference is not None:
        table.add_row("Difference", f"${summary.difference:,.2f}")

    console.print(table)


if __name__ == "__main__":
    main()
