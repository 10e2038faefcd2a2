"""Parsers for bank statements and ledger CSV exports."""

from .common import is_credit, is_debit, parse_amount, parse_date
from .csv_parser import CsvStatementParser, LedgerCsvLoader
from .formats import (
    FORMATS,
    CommBankCreditCardFormat,
    CommBankSavingsFormat,
    GenericFormat,
    StatementFormat,
)
from .statement_parser import (
    StatementParser,
    assess_confidence,
    detect_format,
    extract_statement_info,
    extract_transactions,
    parse_statement,
)

__all__ = [
    "is_credit",
    "is_debit",
    "parse_amount",
    "parse_date",
    "CsvStatementParser",
    "LedgerCsvLoader",
    "FORMATS",
    "CommBankCreditCardFormat",
    "CommBankSavingsFormat",
    "GenericFormat",
    "StatementFormat",
    "StatementParser",
    "assess_confidence",
    "detect_format",
    "extract_statement_info",
    "extract_transactions",
    "parse_statement",
]
