"""Ephemeral models produced by bank statement extraction."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional


class Confidence(Enum):
    """Advisory confidence in an extraction result."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class StatementPeriod:
    """Date range covered by a statement."""

    start: date
    end: date


@dataclass
class StatementInfo:
    """Statement metadata. Every field is optional."""

    account_number: Optional[str] = None
    statement_period: Optional[StatementPeriod] = None
    opening_balance: Optional[Decimal] = None
    closing_balance: Optional[Decimal] = None


@dataclass
class StatementTransaction:
    """A single line item parsed from a bank statement."""

    date: date
    description: str
    debit: Optional[Decimal] = None
    credit: Optional[Decimal] = None
    balance: Optional[Decimal] = None
    raw_text: str = ""

    @property
    def amount(self) -> Decimal:
        """Signed amount from the account holder's view (credits in, debits out)."""
        return (self.credit or Decimal("0")) - (self.debit or Decimal("0"))


@dataclass
class ParseWarning:
    """A statement line that could not be turned into a transaction."""

    line_number: int
    line: str
    reason: str


@dataclass
class ParsedStatement:
    """Result of parsing a statement: metadata, line items and confidence."""

    info: StatementInfo
    transactions: list[StatementTransaction]
    confidence: Confidence
    format_name: str = "generic"
    warnings: list[ParseWarning] = field(default_factory=list)
    raw_text: str = ""
