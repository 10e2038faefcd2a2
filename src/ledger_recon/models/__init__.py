"""Data models for reconciliation."""

from .ledger import (
    Account,
    AccountKind,
    AccountType,
    GSTCode,
    Posting,
    Transaction,
    TransactionStatus,
)
from .statement import (
    Confidence,
    ParsedStatement,
    ParseWarning,
    StatementInfo,
    StatementPeriod,
    StatementTransaction,
)
from .reconciliation import (
    AccountReconciliationSummary,
    AutoReconcileResult,
    MatchCandidate,
    MatchResult,
    MatchSummary,
    MatchType,
    Reconciliation,
    ReconciliationBalance,
    ReconciliationStatus,
)

__all__ = [
    "Account",
    "AccountKind",
    "AccountType",
    "GSTCode",
    "Posting",
    "Transaction",
    "TransactionStatus",
    "Confidence",
    "ParsedStatement",
    "ParseWarning",
    "StatementInfo",
    "StatementPeriod",
    "StatementTransaction",
    "AccountReconciliationSummary",
    "AutoReconcileResult",
    "MatchCandidate",
    "MatchResult",
    "MatchSummary",
    "MatchType",
    "Reconciliation",
    "ReconciliationBalance",
    "ReconciliationStatus",
]
