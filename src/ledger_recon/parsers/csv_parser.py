"""
CSV readers for bank statements and ledger exports.

Both readers use pandas and map column names through configuration, so
differently laid out exports only need a config change.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional
import logging

import pandas as pd

from ..config import ReconConfig
from ..models.ledger import Account, AccountKind, AccountType, Posting, Transaction
from ..models.statement import ParseWarning, StatementTransaction
from ..repository import InMemoryLedgerRepository
from ..utils.exceptions import (
    ConflictError,
    LedgerImportError,
    StatementParseError,
    ValidationError,
)
from .common import parse_date

logger = logging.getLogger(__name__)


def _parse_cell_date(value: Any, date_format: str) -> Optional[date]:
    """
    Parse a date cell.

    Args:
        value: Cell value (string, datetime or NaN)
        date_format: strptime format tried first

    Returns:
        Python date object or None
    """
    if value is None or pd.isna(value):
        return None

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    try:
        return datetime.strptime(text, date_format).date()
    except ValueError:
        # Fall back to the statement date forms (DD/MM/YY, "8 Nov 2025")
        return parse_date(text)


def _parse_cell_amount(value: Any) -> Optional[Decimal]:
    """
    Parse an amount cell.

    Args:
        value: Amount value (string, float, or None)

    Returns:
        Decimal amount or None
    """
    if value is None or pd.isna(value) or value == "":
        return None

    try:
        if isinstance(value, str):
            value = value.replace("$", "").replace(",", "").strip()
            if not value:
                return None
        return Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        return None


def _cell_text(row: pd.Series, column: str) -> Optional[str]:
    value = row.get(column)
    if value is None or pd.isna(value):
        return None
    return str(value).strip()


class CsvStatementParser:
    """
    Parser for bank statement CSV downloads.

    Handles either a single signed amount column (negative is money out) or
    separate debit and credit columns, plus an optional running balance.
    """

    def __init__(self, config: ReconConfig):
        """
        Initialize the parser with configuration.

        Args:
            config: Application configuration object
        """
        self.config = config
        self.input_config = config.input.statement
        self.column_mappings = self.input_config.column_mappings

    def parse_file(
        self, file_path: Path, warnings: Optional[list[ParseWarning]] = None
    ) -> list[StatementTransaction]:
        """
        Parse a statement CSV file.

        Args:
            file_path: Path to the CSV file
            warnings: Optional list collecting skipped rows

        Returns:
            Statement transactions in file order

        Raises:
            StatementParseError: If the file cannot be read
        """
        logger.info(f"Parsing statement CSV file: {file_path}")

        try:
            df = pd.read_csv(
                file_path,
                encoding=self.input_config.encoding,
                delimiter=self.input_config.delimiter,
                dtype=str,
                keep_default_na=False,
            )
        except Exception as e:
            logger.error(f"Failed to read CSV file: {e}")
            raise StatementParseError(f"Failed to read CSV file: {e}") from e

        transactions = self.parse_dataframe(df, warnings)
        logger.info(f"Extracted {len(transactions)} transactions from statement CSV")

        return transactions

    def parse_dataframe(
        self, df: pd.DataFrame, warnings: Optional[list[ParseWarning]] = None
    ) -> list[StatementTransaction]:
        """
        Convert DataFrame rows to statement transactions.

        Args:
            df: Pandas DataFrame containing CSV data
            warnings: Optional list collecting skipped rows

        Returns:
            List of statement transactions
        """
        date_col = self.column_mappings.get("date", "Date")
        if date_col not in df.columns:
            raise StatementParseError(f"Statement CSV has no '{date_col}' column")

        transactions: list[StatementTransaction] = []

        for idx, row in df.iterrows():
            # Header is line 1 of the file
            line_number = int(idx) + 2
            txn, reason = self._normalize_row(row)
            if txn:
                transactions.append(txn)
                continue

            line = ",".join(str(v) for v in row.tolist())
            logger.warning(f"Row {line_number}: {reason}, skipping")
            if warnings is not None:
                warnings.append(ParseWarning(line_number=line_number, line=line, reason=reason))

        return transactions

    def _normalize_row(self, row: pd.Series) -> tuple[Optional[StatementTransaction], str]:
        date_col = self.column_mappings.get("date", "Date")
        desc_col = self.column_mappings.get("description", "Description")
        amount_col = self.column_mappings.get("amount", "Amount")
        debit_col = self.column_mappings.get("debit", "Debit")
        credit_col = self.column_mappings.get("credit", "Credit")
        balance_col = self.column_mappings.get("balance", "Balance")

        txn_date = _parse_cell_date(row.get(date_col), self.input_config.date_format)
        if not txn_date:
            return None, "invalid date"

        debit: Optional[Decimal] = None
        credit: Optional[Decimal] = None

        signed = _parse_cell_amount(row.get(amount_col))
        if signed is not None:
            if signed < 0:
                debit = -signed
            else:
                credit = signed
        else:
            debit_val = _parse_cell_amount(row.get(debit_col))
            credit_val = _parse_cell_amount(row.get(credit_col))
            debit = abs(debit_val) if debit_val else None
            credit = abs(credit_val) if credit_val else None

        if debit is None and credit is None:
            return None, "no valid amount found"

        return (
            StatementTransaction(
                date=txn_date,
                description=_cell_text(row, desc_col) or "",
                debit=debit,
                credit=credit,
                balance=_parse_cell_amount(row.get(balance_col)),
                raw_text=",".join(str(v) for v in row.tolist()),
            ),
            "",
        )


class LedgerCsvLoader:
    """
    Loads a ledger CSV export into an in-memory repository.

    Each row becomes a balanced two-posting transaction: the signed amount on
    the reconciled account and the opposite amount on the configured counter
    account.
    """

    def __init__(self, config: ReconConfig):
        self.config = config
        self.input_config = config.input.ledger
        self.column_mappings = self.input_config.column_mappings

    def load(
        self,
        file_path: Path,
        account_id: str,
        repository: Optional[InMemoryLedgerRepository] = None,
    ) -> InMemoryLedgerRepository:
        """
        Read the export and add its transactions to a repository.

        Args:
            file_path: Path to the ledger CSV file
            account_id: Account the amounts post to
            repository: Repository to fill (a new one if omitted)

        Returns:
            The repository holding the loaded transactions

        Raises:
            LedgerImportError: If the file cannot be read
        """
        logger.info(f"Loading ledger CSV file: {file_path}")

        try:
            df = pd.read_csv(
                file_path,
                encoding=self.input_config.encoding,
                delimiter=self.input_config.delimiter,
                dtype=str,
                keep_default_na=False,
            )
        except Exception as e:
            logger.error(f"Failed to read CSV file: {e}")
            raise LedgerImportError(f"Failed to read CSV file: {e}") from e

        repo = repository if repository is not None else InMemoryLedgerRepository()
        self._ensure_accounts(repo, account_id)

        loaded = 0
        for idx, row in df.iterrows():
            txn = self._normalize_row(row, int(idx), account_id)
            if txn is None:
                continue
            try:
                repo.add_transaction(txn)
                loaded += 1
            except (ValidationError, ConflictError) as e:
                logger.warning(f"Row {idx}: {e}, skipping")

        logger.info(f"Loaded {loaded} ledger transactions for account {account_id}")
        return repo

    def _ensure_accounts(self, repo: InMemoryLedgerRepository, account_id: str) -> None:
        if repo.get_account(account_id) is None:
            repo.add_account(Account(id=account_id, name=account_id, type=AccountType.ASSET))

        counter_id = self.input_config.counter_account_id
        if repo.get_account(counter_id) is None:
            repo.add_account(
                Account(
                    id=counter_id,
                    name=counter_id.title(),
                    type=AccountType.EXPENSE,
                    kind=AccountKind.CATEGORY,
                )
            )

    def _normalize_row(self, row: pd.Series, idx: int, account_id: str) -> Optional[Transaction]:
        id_col = self.column_mappings.get("transaction_id", "Transaction_ID")
        date_col = self.column_mappings.get("date", "Date")
        payee_col = self.column_mappings.get("payee", "Payee")
        amount_col = self.column_mappings.get("amount", "Amount")
        memo_col = self.column_mappings.get("memo", "Memo")

        txn_date = _parse_cell_date(row.get(date_col), self.input_config.date_format)
        if not txn_date:
            logger.warning(f"Row {idx}: Invalid date, skipping")
            return None

        amount = _parse_cell_amount(row.get(amount_col))
        if amount is None:
            logger.warning(f"Row {idx}: No valid amount found, skipping")
            return None

        txn_id = _cell_text(row, id_col) or f"LEDGER-{idx:05d}"

        return Transaction(
            id=txn_id,
            date=txn_date,
            payee=_cell_text(row, payee_col) or "",
            memo=_cell_text(row, memo_col) or None,
            postings=[
                Posting(account_id=account_id, amount=amount),
                Posting(account_id=self.input_config.counter_account_id, amount=-amount),
            ],
            metadata={"source_row": idx},
        )
