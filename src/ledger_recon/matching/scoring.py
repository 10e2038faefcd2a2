"""
Match scoring between statement lines and ledger transactions.

Three independent signals (date proximity, amount agreement and payee
similarity) each add points to an integer score. The score is then mapped
to a confidence tier.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from difflib import SequenceMatcher
from typing import Iterable, Optional
import re

from ..config import ScoringConfig, TierThresholds
from ..models.ledger import Transaction
from ..models.reconciliation import MatchType
from ..models.statement import StatementTransaction


@dataclass
class MatchScore:
    """Total points plus one reason per signal that fired."""

    total: int = 0
    reasons: list[str] = field(default_factory=list)


def normalize_description(description: str) -> str:
    """Normalize description for comparison."""
    # Convert to lowercase
    desc = description.lower()
    # Remove special characters
    desc = re.sub(r"[^a-z0-9\s]", "", desc)
    # Normalize whitespace
    desc = " ".join(desc.split())
    return desc


def description_similarity(a: str, b: str) -> float:
    """
    Similarity ratio of two descriptions after normalization.

    SequenceMatcher's junk heuristics make ratio() order dependent, so the
    better of both orders is used.

    Returns:
        Ratio between 0.0 and 1.0
    """
    left = normalize_description(a)
    right = normalize_description(b)
    if not left and not right:
        return 1.0
    return max(
        SequenceMatcher(None, left, right).ratio(),
        SequenceMatcher(None, right, left).ratio(),
    )


def statement_amount(stmt: StatementTransaction) -> Decimal:
    """Signed statement amount: credits in, debits out."""
    return stmt.amount


def account_posting_amount(transaction: Transaction, account_id: str) -> Decimal:
    """Amount the transaction moves through the reconciled account."""
    return transaction.account_amount(account_id)


def calculate_match_score(
    stmt: StatementTransaction,
    transaction: Transaction,
    account_id: str,
    scoring: Optional[ScoringConfig] = None,
) -> MatchScore:
    """
    Score a statement line against a ledger transaction.

    Args:
        stmt: Statement line
        transaction: Candidate ledger transaction
        account_id: Account being reconciled; only its postings count
        scoring: Point weights and tolerances (defaults if omitted)

    Returns:
        MatchScore with the total and human-readable reasons
    """
    scoring = scoring or ScoringConfig()
    result = MatchScore()

    # Date proximity
    date_diff = abs((stmt.date - transaction.date).days)
    if date_diff == 0:
        result.total += scoring.date_exact_points
        result.reasons.append("Exact date match")
    elif date_diff <= 1:
        result.total += scoring.date_one_day_points
        result.reasons.append("Date within 1 day")
    elif date_diff <= 3:
        result.total += scoring.date_three_days_points
        result.reasons.append("Date within 3 days")

    # Amount agreement
    amount_diff = abs(statement_amount(stmt) - account_posting_amount(transaction, account_id))
    if amount_diff <= Decimal(str(scoring.amount_exact_tolerance)):
        result.total += scoring.amount_exact_points
        result.reasons.append("Exact amount match")
    elif amount_diff <= Decimal(str(scoring.amount_close_tolerance)):
        result.total += scoring.amount_close_points
        result.reasons.append(f"Amount within ${amount_diff:.2f}")

    # Payee similarity
    similarity = description_similarity(stmt.description, transaction.payee)
    if similarity >= scoring.description_high_threshold:
        result.total += scoring.description_high_points
        result.reasons.append(f"Description similarity: {similarity:.0%}")
    elif similarity >= scoring.description_medium_threshold:
        result.total += scoring.description_medium_points
        result.reasons.append(f"Partial description similarity: {similarity:.0%}")

    return result


def get_match_type(score: int, tiers: Optional[TierThresholds] = None) -> MatchType:
    """Map a score to its tier."""
    tiers = tiers or TierThresholds()
    if score >= tiers.exact:
        return MatchType.EXACT
    if score >= tiers.probable:
        return MatchType.PROBABLE
    if score >= tiers.possible:
        return MatchType.POSSIBLE
    return MatchType.NONE


def calculate_balance(account_id: str, transactions: Iterable[Transaction]) -> Decimal:
    """Sum of the account-scoped posting amounts."""
    return sum(
        (account_posting_amount(tx, account_id) for tx in transactions), Decimal("0")
    )
