"""Data models for reconciliation sessions and match results."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .ledger import Transaction, new_id
from .statement import StatementTransaction


class ReconciliationStatus(Enum):
    """Session state. LOCKED is terminal."""

    IN_PROGRESS = "IN_PROGRESS"
    LOCKED = "LOCKED"


class MatchType(Enum):
    """Confidence tier of a statement-to-ledger pairing."""

    EXACT = "exact"
    PROBABLE = "probable"
    POSSIBLE = "possible"
    NONE = "none"


@dataclass
class Reconciliation:
    """A reconciliation session for one account and one statement."""

    account_id: str
    statement_start_date: date
    statement_end_date: date
    statement_start_balance: Decimal
    statement_end_balance: Decimal
    id: str = field(default_factory=new_id)
    status: ReconciliationStatus = ReconciliationStatus.IN_PROGRESS
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_locked(self) -> bool:
        """Check if the session has been certified and locked."""
        return self.status == ReconciliationStatus.LOCKED


@dataclass
class MatchCandidate:
    """Best pairing found for one statement line."""

    statement_transaction: StatementTransaction
    ledger_transaction: Optional[Transaction]
    score: int
    match_type: MatchType
    reasons: list[str] = field(default_factory=list)

    @property
    def is_match(self) -> bool:
        """Check if a ledger transaction was assigned."""
        return self.ledger_transaction is not None and self.match_type != MatchType.NONE


@dataclass
class MatchSummary:
    """Counts and balances for a matching run."""

    total_statement: int
    total_matched: int
    total_unmatched: int
    ledger_balance: Decimal
    statement_balance: Optional[Decimal] = None
    difference: Optional[Decimal] = None


@dataclass
class MatchResult:
    """Partition of statement lines and ledger transactions after matching."""

    exact_matches: list[MatchCandidate]
    probable_matches: list[MatchCandidate]
    possible_matches: list[MatchCandidate]
    unmatched_statement: list[StatementTransaction]
    unmatched_ledger: list[Transaction]
    summary: MatchSummary

    @property
    def all_matches(self) -> list[MatchCandidate]:
        """Matches across every tier, best tier first."""
        return self.exact_matches + self.probable_matches + self.possible_matches

    def matches_for(self, *tiers: MatchType) -> list[MatchCandidate]:
        """Matches belonging to the given tiers."""
        return [m for m in self.all_matches if m.match_type in tiers]


@dataclass
class ReconciliationBalance:
    """Balance certification figures, recomputed on every request."""

    statement_balance: Decimal
    cleared_balance: Decimal
    unreconciled_balance: Decimal
    difference: Decimal
    is_balanced: bool
    reconciled_count: int
    unreconciled_count: int


@dataclass
class AutoReconcileResult:
    """Postings suggested for reconciliation and the resulting difference."""

    posting_ids: list[str]
    difference: Decimal


@dataclass
class AccountReconciliationSummary:
    """Reconciliation health of one account."""

    account_id: str
    last_reconciled: Optional[date]
    unreconciled_count: int
    unreconciled_amount: Decimal
