"""Matching engine and scoring."""

from .engine import ReconciliationMatchingEngine
from .scoring import (
    MatchScore,
    account_posting_amount,
    calculate_balance,
    calculate_match_score,
    description_similarity,
    get_match_type,
    normalize_description,
    statement_amount,
)

__all__ = [
    "ReconciliationMatchingEngine",
    "MatchScore",
    "account_posting_amount",
    "calculate_balance",
    "calculate_match_score",
    "description_similarity",
    "get_match_type",
    "normalize_description",
    "statement_amount",
]
