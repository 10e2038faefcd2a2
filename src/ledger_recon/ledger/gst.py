"""
GST arithmetic shared by every ingestion path.

Australian GST is 10% of the GST-exclusive price, so the GST component of a
gross amount is gross * rate / (1 + rate).
"""

from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from ..models.ledger import GSTCode, Posting

DEFAULT_GST_RATE = Decimal("0.1")
CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class GstSplit:
    """A gross amount split into its GST-exclusive and GST parts."""

    exclusive: Decimal
    gst: Decimal

    @property
    def gross(self) -> Decimal:
        return self.exclusive + self.gst


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def gst_component(gross: Number, rate: Number = DEFAULT_GST_RATE) -> Decimal:
    """Unrounded GST contained in a gross amount."""
    rate = to_decimal(rate)
    return to_decimal(gross) * rate / (Decimal("1") + rate)


def gross_to_exclusive(gross: Number, rate: Number = DEFAULT_GST_RATE) -> GstSplit:
    """
    Split a GST-inclusive amount into exclusive amount and GST, rounded to cents.

    The parts always add back up to the gross amount. Negative amounts
    (income) split symmetrically.

    Args:
        gross: GST-inclusive amount
        rate: GST rate (0.1 for 10%)

    Returns:
        GstSplit with exclusive and gst components
    """
    gross = to_decimal(gross).quantize(CENT, rounding=ROUND_HALF_UP)
    gst = gst_component(gross, rate).quantize(CENT, rounding=ROUND_HALF_UP)
    return GstSplit(exclusive=gross - gst, gst=gst)


def split_gst_posting(
    posting: Posting,
    gst_paid_account_id: str,
    gst_collected_account_id: str,
    rate: Optional[Number] = None,
) -> tuple[Posting, Posting]:
    """
    Split a gross business posting into its GST-exclusive leg and a GST control leg.

    Positive (expense) postings move their GST into GST Paid; negative
    (income) postings into GST Collected. The two returned postings add up to
    the gross amount of the input posting, so the cash movement of the
    transaction is unchanged.

    Args:
        posting: Business posting holding the gross amount
        gst_paid_account_id: GST Paid control account (asset)
        gst_collected_account_id: GST Collected control account (liability)
        rate: Override for the posting's GST rate

    Returns:
        Tuple of (exclusive posting, GST control posting)
    """
    gst_rate = to_decimal(rate) if rate is not None else (posting.gst_rate or DEFAULT_GST_RATE)
    split = gross_to_exclusive(posting.amount, gst_rate)

    exclusive_posting = replace(
        posting,
        amount=split.exclusive,
        is_business=True,
        gst_code=posting.gst_code or GSTCode.GST,
        gst_rate=gst_rate,
        gst_amount=split.gst,
    )
    control_account_id = gst_paid_account_id if posting.amount > 0 else gst_collected_account_id
    control_posting = Posting(
        account_id=control_account_id,
        amount=split.gst,
        transaction_id=posting.transaction_id,
        is_business=False,
        cleared=posting.cleared,
    )
    return exclusive_posting, control_posting
