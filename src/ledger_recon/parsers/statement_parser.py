"""
Bank statement text extraction.

Turns raw statement text (from a PDF, a CSV download or a plain text file)
into statement metadata, ordered line items and an advisory confidence.
"""

from pathlib import Path
from typing import Optional
import logging

import pdfplumber

from ..config import ReconConfig
from ..models.statement import (
    Confidence,
    ParsedStatement,
    ParseWarning,
    StatementInfo,
    StatementTransaction,
)
from ..utils.exceptions import StatementParseError
from .csv_parser import CsvStatementParser
from .formats import FORMATS, GenericFormat, StatementFormat

logger = logging.getLogger(__name__)


def detect_format(text: str) -> StatementFormat:
    """Return the first format whose indicators appear in the text."""
    for fmt in FORMATS:
        if fmt.detect(text):
            return fmt
    return GenericFormat()


def extract_statement_info(text: str, fmt: Optional[StatementFormat] = None) -> StatementInfo:
    """Extract statement metadata, detecting the format when none is given."""
    return (fmt or detect_format(text)).extract_info(text)


def extract_transactions(
    text: str,
    fmt: Optional[StatementFormat] = None,
    warnings: Optional[list[ParseWarning]] = None,
) -> list[StatementTransaction]:
    """Extract statement line items in statement order."""
    return (fmt or detect_format(text)).extract_transactions(text, warnings)


def assess_confidence(
    info: StatementInfo, transactions: list[StatementTransaction]
) -> Confidence:
    """
    Score how complete an extraction looks.

    Args:
        info: Extracted statement metadata
        transactions: Extracted line items

    Returns:
        HIGH at 70 points or more, MEDIUM at 40 or more, otherwise LOW
    """
    score = 0

    if info.account_number:
        score += 20
    if info.statement_period:
        score += 20
    if info.opening_balance is not None:
        score += 10
    if info.closing_balance is not None:
        score += 10

    if transactions:
        score += 20
        if len(transactions) > 10:
            score += 10
        with_balance = sum(1 for t in transactions if t.balance is not None)
        if with_balance / len(transactions) >= 0.8:
            score += 10

    if score >= 70:
        return Confidence.HIGH
    if score >= 40:
        return Confidence.MEDIUM
    return Confidence.LOW


def parse_statement(raw_text: str) -> ParsedStatement:
    """
    Parse statement text.

    Unrecognised lines never fail the parse; they are reported on
    ParsedStatement.warnings.

    Args:
        raw_text: Text extracted from a statement

    Returns:
        ParsedStatement with metadata, line items, confidence and warnings
    """
    fmt = detect_format(raw_text)
    warnings: list[ParseWarning] = []

    info = fmt.extract_info(raw_text)
    transactions = fmt.extract_transactions(raw_text, warnings)
    confidence = assess_confidence(info, transactions)

    logger.info(
        f"Parsed {len(transactions)} transactions ({fmt.name} format, "
        f"{confidence.value} confidence, {len(warnings)} lines skipped)"
    )

    return ParsedStatement(
        info=info,
        transactions=transactions,
        confidence=confidence,
        format_name=fmt.name,
        warnings=warnings,
        raw_text=raw_text,
    )


class StatementParser:
    """
    File-level entry point for statements.

    PDFs go through pdfplumber, CSV downloads through the CSV statement
    parser, and any other file is read as text.
    """

    def __init__(self, config: ReconConfig):
        """
        Initialize the parser with configuration.

        Args:
            config: Application configuration object
        """
        self.config = config

    def parse_text(self, raw_text: str) -> ParsedStatement:
        return parse_statement(raw_text)

    def parse_file(self, file_path: Path) -> ParsedStatement:
        """
        Parse a statement file.

        Args:
            file_path: Path to a .pdf, .csv or text statement

        Returns:
            ParsedStatement

        Raises:
            StatementParseError: If the file cannot be read
        """
        file_path = Path(file_path)
        logger.info(f"Parsing statement file: {file_path}")

        if not file_path.exists():
            raise StatementParseError(f"Statement file not found: {file_path}")

        suffix = file_path.suffix.lower()
        if suffix == ".csv":
            return self._parse_csv(file_path)
        if suffix == ".pdf":
            return parse_statement(self._read_pdf(file_path))

        try:
            raw_text = file_path.read_text(encoding=self.config.input.statement.encoding)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read statement file: {e}")
            raise StatementParseError(f"Failed to read statement file: {e}") from e

        return parse_statement(raw_text)

    def _read_pdf(self, file_path: Path) -> str:
        pages_text: list[str] = []
        try:
            with pdfplumber.open(file_path) as pdf:
                for page_num, page in enumerate(pdf.pages, start=1):
                    text = page.extract_text() or ""
                    pages_text.append(text)
                    logger.debug(f"Extracted {len(text)} chars from page {page_num}")
        except Exception as e:
            logger.error(f"Failed to read PDF file: {e}")
            raise StatementParseError(f"Failed to read PDF file: {e}") from e

        return "\n".join(pages_text)

    def _parse_csv(self, file_path: Path) -> ParsedStatement:
        warnings: list[ParseWarning] = []
        transactions = CsvStatementParser(self.config).parse_file(file_path, warnings)

        info = StatementInfo()
        confidence = assess_confidence(info, transactions)

        return ParsedStatement(
            info=info,
            transactions=transactions,
            confidence=confidence,
            format_name="csv",
            warnings=warnings,
        )
