"""Date, amount and keyword helpers shared by the statement parsers."""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional
import re

MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

MONTH_PATTERN = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)"

NUMERIC_DATE_RE = re.compile(r"^\s*(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})\s*$")
BANK_DATE_RE = re.compile(r"^\s*(\d{1,2})\s+([A-Za-z]{3})[A-Za-z]*\s+(\d{4})\s*$")

DEBIT_KEYWORDS = (
    "withdrawal",
    "payment",
    "purchase",
    "fee",
    "charge",
    "debit",
    "transfer to",
    "eftpos",
    "atm",
)

CREDIT_KEYWORDS = (
    "deposit",
    "credit",
    "salary",
    "interest",
    "refund",
    "transfer from",
    "dividend",
)


def expand_year(year: int) -> int:
    """Expand a 2-digit year: below 50 is 20xx, otherwise 19xx."""
    if year < 100:
        return year + (2000 if year < 50 else 1900)
    return year


def month_to_number(month: str) -> Optional[int]:
    """Convert a month name or abbreviation to 1-12."""
    return MONTHS.get(month[:3].lower())


def safe_date(year: int, month: int, day: int) -> Optional[date]:
    """Build a date, returning None for impossible calendar values."""
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: str) -> Optional[date]:
    """
    Parse a statement date.

    Accepts DD/MM/YYYY, DD-MM-YYYY, the same with 2-digit years, and
    bank-style "8 Nov 2025".

    Args:
        value: Date text

    Returns:
        Parsed date or None if the text is not a valid date
    """
    match = NUMERIC_DATE_RE.match(value)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return safe_date(expand_year(year), month, day)

    return parse_bank_date(value)


def parse_bank_date(value: str) -> Optional[date]:
    """Parse the "D MMM YYYY" form used by CommBank statements."""
    match = BANK_DATE_RE.match(value)
    if not match:
        return None
    month = month_to_number(match.group(2))
    if month is None:
        return None
    return safe_date(int(match.group(3)), month, int(match.group(1)))


def parse_amount(value: str) -> Optional[Decimal]:
    """
    Parse a money token such as "$1,234.56".

    Args:
        value: Amount text

    Returns:
        Decimal amount or None
    """
    cleaned = value.replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def is_debit(description: str) -> bool:
    """Check if a description carries a money-out keyword (case-insensitive)."""
    desc = description.lower()
    return any(keyword in desc for keyword in DEBIT_KEYWORDS)


def is_credit(description: str) -> bool:
    """Check if a description carries a money-in keyword (case-insensitive)."""
    desc = description.lower()
    return any(keyword in desc for keyword in CREDIT_KEYWORDS)
