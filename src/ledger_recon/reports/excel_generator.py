"""
Excel report generator for matching results.
Creates a workbook with a summary sheet, one sheet per match tier and the
unmatched lines on both sides.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..config import ReconConfig, SheetConfig
from ..models.ledger import Transaction
from ..models.reconciliation import MatchCandidate, MatchResult
from ..models.statement import ParsedStatement, StatementTransaction
from ..utils.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
MATCH_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
VARIANCE_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
UNMATCHED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

MATCH_HEADERS = [
    "Statement Date",
    "Statement Description",
    "Debit",
    "Credit",
    "Balance",
    "Ledger Date",
    "Ledger Payee",
    "Ledger Amount",
    "Ledger Transaction ID",
    "Score",
    "Reasons",
]


def default_output_path(config: ReconConfig, output_dir: Optional[Path] = None) -> Path:
    """Build the report path from the configured filename template."""
    now = datetime.now()
    template = config.output.excel.filename_template
    if config.output.excel.include_timestamp:
        filename = template.format(date=now.strftime("%Y%m%d"), time=now.strftime("%H%M%S"))
    else:
        filename = template.format(date="", time="").replace("__", "_")
    return (output_dir or Path(".")) / filename


class ExcelReportGenerator:
    """Generates Excel reconciliation reports with multiple sheets."""

    def __init__(self, config: ReconConfig):
        """
        Initialize the report generator.

        Args:
            config: Application configuration
        """
        self.config = config
        self.sheet_config = config.output.sheets

    def generate_report(
        self,
        result: MatchResult,
        account_id: str,
        output_path: Path,
        statement: Optional[ParsedStatement] = None,
        statement_filename: Optional[str] = None,
    ) -> Path:
        """
        Generate the complete reconciliation report.

        Args:
            result: Output of the matching engine
            account_id: Account that was matched (ledger amounts are scoped to it)
            output_path: Path for output file
            statement: Parsed statement, for metadata on the summary sheet
            statement_filename: Name of the statement file

        Returns:
            Path to generated report

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel report: {output_path}")

        wb = Workbook()

        # Remove default sheet
        if wb.active:
            wb.remove(wb.active)

        sheets = self.sheet_config
        if sheets.summary.enabled:
            self._create_summary_sheet(wb, result, account_id, statement, statement_filename)
        if sheets.exact.enabled:
            self._create_match_sheet(wb, sheets.exact, result.exact_matches, account_id, MATCH_FILL)
        if sheets.probable.enabled:
            self._create_match_sheet(
                wb, sheets.probable, result.probable_matches, account_id, VARIANCE_FILL
            )
        if sheets.possible.enabled:
            self._create_match_sheet(
                wb, sheets.possible, result.possible_matches, account_id, VARIANCE_FILL
            )
        if sheets.unmatched_statement.enabled:
            self._create_unmatched_statement_sheet(wb, result.unmatched_statement)
        if sheets.unmatched_ledger.enabled:
            self._create_unmatched_ledger_sheet(wb, result.unmatched_ledger, account_id)

        if not wb.sheetnames:
            raise ReportGenerationError("Every report sheet is disabled in the configuration")

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            raise ReportGenerationError(f"Failed to write report {output_path}: {e}") from e

        logger.info(f"Report saved: {output_path}")
        return output_path

    def _create_summary_sheet(
        self,
        wb: Workbook,
        result: MatchResult,
        account_id: str,
        statement: Optional[ParsedStatement],
        statement_filename: Optional[str],
    ) -> None:
        """Create the summary sheet with key metrics."""
        ws = wb.create_sheet(self.sheet_config.summary.name)
        summary = result.summary

        # Title
        ws["A1"] = "Bank Reconciliation Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        rows: list[tuple[str, object]] = [
            ("Statement File:", statement_filename or "-"),
            ("Account:", account_id),
            ("Generated At:", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
            ("Config File:", self.config.config_file_path or "Default"),
        ]

        if statement is not None:
            info = statement.info
            period = (
                f"{info.statement_period.start} to {info.statement_period.end}"
                if info.statement_period
                else "-"
            )
            rows.extend(
                [
                    ("Statement Format:", statement.format_name),
                    ("Account Number:", info.account_number or "-"),
                    ("Statement Period:", period),
                    ("Extraction Confidence:", statement.confidence.value),
                    ("Skipped Lines:", len(statement.warnings)),
                ]
            )

        rows.extend(
            [
                ("", ""),
                ("Statement Lines:", summary.total_statement),
                ("Matched:", summary.total_matched),
                ("  Exact:", len(result.exact_matches)),
                ("  Probable:", len(result.probable_matches)),
                ("  Possible:", len(result.possible_matches)),
                ("Unmatched Statement Lines:", summary.total_unmatched),
                ("Unmatched Ledger Transactions:", len(result.unmatched_ledger)),
                ("", ""),
                ("Ledger Balance:", f"${summary.ledger_balance:,.2f}"),
                (
                    "Statement Balance:",
                    f"${summary.statement_balance:,.2f}"
                    if summary.statement_balance is not None
                    else "-",
                ),
                (
                    "Difference:",
                    f"${summary.difference:,.2f}" if summary.difference is not None else "-",
                ),
            ]
        )

        for i, (label, value) in enumerate(rows, start=3):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value
            if label and not label.startswith(" "):
                ws[f"A{i}"].font = Font(bold=True)
            ws[f"B{i}"].alignment = Alignment(horizontal="left")

        # Adjust column widths
        ws.column_dimensions["A"].width = 32
        ws.column_dimensions["B"].width = 40

    def _create_match_sheet(
        self,
        wb: Workbook,
        sheet: SheetConfig,
        matches: list[MatchCandidate],
        account_id: str,
        fill: PatternFill,
    ) -> None:
        """Create a sheet listing the matches of one tier."""
        ws = wb.create_sheet(sheet.name)
        self._write_headers(ws, MATCH_HEADERS)

        for row_num, match in enumerate(matches, start=2):
            stmt = match.statement_transaction
            ledger = match.ledger_transaction

            row_data = [
                stmt.date,
                stmt.description,
                _money(stmt.debit),
                _money(stmt.credit),
                _money(stmt.balance),
                ledger.date if ledger else "",
                ledger.payee if ledger else "",
                float(ledger.account_amount(account_id)) if ledger else "",
                ledger.id if ledger else "",
                match.score,
                "; ".join(match.reasons),
            ]

            for col, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = THIN_BORDER
                cell.fill = fill

        self._auto_fit_columns(ws)

    def _create_unmatched_statement_sheet(
        self, wb: Workbook, unmatched: list[StatementTransaction]
    ) -> None:
        """Create the sheet of statement lines with no ledger match."""
        ws = wb.create_sheet(self.sheet_config.unmatched_statement.name)
        self._write_headers(ws, ["Date", "Description", "Debit", "Credit", "Balance", "Raw Text"])

        for row_num, stmt in enumerate(unmatched, start=2):
            row_data = [
                stmt.date,
                stmt.description,
                _money(stmt.debit),
                _money(stmt.credit),
                _money(stmt.balance),
                stmt.raw_text,
            ]

            for col, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = THIN_BORDER
                cell.fill = UNMATCHED_FILL

        self._auto_fit_columns(ws)

    def _create_unmatched_ledger_sheet(
        self, wb: Workbook, unmatched: list[Transaction], account_id: str
    ) -> None:
        """Create the sheet of ledger transactions no statement line claimed."""
        ws = wb.create_sheet(self.sheet_config.unmatched_ledger.name)
        self._write_headers(ws, ["Date", "Payee", "Amount", "Memo", "Reconciled", "Transaction ID"])

        for row_num, txn in enumerate(unmatched, start=2):
            posting = txn.posting_for(account_id)
            row_data = [
                txn.date,
                txn.payee,
                float(txn.account_amount(account_id)),
                txn.memo or "",
                "Yes" if posting and posting.is_reconciled else "No",
                txn.id,
            ]

            for col, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = THIN_BORDER
                cell.fill = UNMATCHED_FILL

        self._auto_fit_columns(ws)

    def _write_headers(self, ws: Worksheet, headers: list[str]) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            max_length = 0
            column = column_cells[0].column_letter

            for cell in column_cells:
                if cell.value is not None:
                    max_length = max(max_length, len(str(cell.value)))

            adjusted_width = min(max_length + 2, 50)
            ws.column_dimensions[column].width = adjusted_width


def _money(value) -> object:
    return float(value) if value is not None else ""
