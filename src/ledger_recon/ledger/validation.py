"""Ledger invariant checks: double entry, GST arithmetic and the category/transfer rule."""

from decimal import Decimal
from typing import Iterable, Optional

from ..models.ledger import GSTCode, Posting, Transaction
from ..utils.exceptions import ValidationError
from .gst import CENT, gst_component

XOR_MESSAGE = "Choose either a category or a transfer account for each line."

# GST codes that carry no tax amount
ZERO_RATED_CODES = (GSTCode.GST_FREE, GSTCode.INPUT_TAXED)


def double_entry_issues(postings: Iterable[Posting]) -> list[str]:
    """Issues with the postings-sum-to-zero rule."""
    postings = list(postings)
    issues: list[str] = []
    if len(postings) < 2:
        issues.append("Transaction must have at least 2 postings")
    total = sum((p.amount for p in postings), Decimal("0"))
    if abs(total) > CENT:
        issues.append(f"Transaction postings must sum to zero. Current sum: {total:.2f}")
    return issues


def gst_issues(posting: Posting) -> list[str]:
    """Issues with a single posting's GST fields."""
    has_gst_fields = bool(posting.gst_code or posting.gst_rate or posting.gst_amount)

    if not posting.is_business:
        if has_gst_fields:
            return ["Personal postings cannot carry GST information"]
        return []

    if posting.gst_code is None or posting.gst_code in ZERO_RATED_CODES:
        return []

    if not posting.gst_rate or posting.gst_amount is None:
        return [
            f'Business posting with GST code "{posting.gst_code.value}" '
            "must have a GST rate and GST amount"
        ]

    # Persisted postings hold the exclusive amount; the GST leg sits elsewhere
    gross = posting.amount + posting.gst_amount
    expected = gst_component(gross, posting.gst_rate)
    if abs(posting.gst_amount - expected) > CENT:
        return [
            f"GST amount mismatch: expected {expected:.2f}, got {posting.gst_amount:.2f}"
        ]
    return []


def line_issues(category_id: Optional[str], transfer_account_id: Optional[str]) -> list[str]:
    """Issues with the one-of category/transfer account rule for an entry line."""
    has_category = bool(category_id and category_id.strip())
    has_transfer = bool(transfer_account_id and transfer_account_id.strip())
    if has_category == has_transfer:
        return [XOR_MESSAGE]
    return []


def validate_double_entry(postings: Iterable[Posting]) -> None:
    """Raise ValidationError unless the postings balance to zero (within a cent)."""
    issues = double_entry_issues(postings)
    if issues:
        raise ValidationError(issues)


def validate_gst(posting: Posting) -> None:
    """Raise ValidationError if the posting's GST fields are inconsistent."""
    issues = gst_issues(posting)
    if issues:
        raise ValidationError(issues)


def validate_line(category_id: Optional[str], transfer_account_id: Optional[str]) -> None:
    """Raise ValidationError unless exactly one of category or transfer account is set."""
    issues = line_issues(category_id, transfer_account_id)
    if issues:
        raise ValidationError(issues)


def validate_transaction(transaction: Transaction) -> None:
    """
    Check every ledger invariant on a transaction.

    All issues are collected and raised together as one ValidationError.
    """
    issues = double_entry_issues(transaction.postings)
    for posting in transaction.postings:
        issues.extend(gst_issues(posting))
    if issues:
        raise ValidationError(issues)
