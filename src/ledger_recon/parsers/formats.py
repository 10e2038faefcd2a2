"""
Bank statement formats.

Each format knows how to recognise its statements and how to pull the
metadata and line items out of the extracted text. Formats are checked in
the order of FORMATS; the generic format accepts anything.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Pattern
import logging
import re

from ..models.statement import (
    ParseWarning,
    StatementInfo,
    StatementPeriod,
    StatementTransaction,
)
from .common import (
    MONTH_PATTERN,
    is_credit,
    is_debit,
    month_to_number,
    parse_amount,
    parse_bank_date,
    parse_date,
    safe_date,
)

logger = logging.getLogger(__name__)

AMOUNT = r"[\d,]+\.\d{2}"
BANK_DATE = rf"\d{{1,2}}\s+{MONTH_PATTERN}\s+\d{{4}}"
NUMERIC_DATE = r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}"


def _amount(value: str) -> Decimal:
    # Regex groups only ever capture well-formed amounts
    parsed = parse_amount(value)
    return parsed if parsed is not None else Decimal("0")


def _signed_balance(value: str, cr_dr: Optional[str]) -> Decimal:
    balance = _amount(value)
    return -balance if cr_dr and cr_dr.upper() == "DR" else balance


def _record(warnings: Optional[list[ParseWarning]], line_number: int, line: str, reason: str) -> None:
    logger.debug(f"Skipping statement line {line_number} ({reason}): {line}")
    if warnings is not None:
        warnings.append(ParseWarning(line_number=line_number, line=line, reason=reason))


class StatementFormat(ABC):
    """Capability shared by every supported statement layout."""

    name: str = "generic"

    @abstractmethod
    def detect(self, text: str) -> bool:
        """Check if the text looks like a statement in this format."""
        pass

    @abstractmethod
    def extract_info(self, text: str) -> StatementInfo:
        """Extract account number, period and balances. Missing fields stay None."""
        pass

    @abstractmethod
    def extract_transactions(
        self, text: str, warnings: Optional[list[ParseWarning]] = None
    ) -> list[StatementTransaction]:
        """
        Extract line items in statement order.

        Args:
            text: Raw statement text
            warnings: Optional list collecting skipped lines
        """
        pass


class GenericFormat(StatementFormat):
    """
    Fallback for Australian-style statements.

    Each transaction sits on one line: a DD/MM/YYYY date, a description and
    one to three trailing amounts (amount, amount + balance, or
    debit + credit + balance).
    """

    name = "generic"

    ACCOUNT_PATTERNS = (
        re.compile(r"Account\s+Number:?\s*(\d[\d \t-]*\d)", re.IGNORECASE),
        re.compile(
            r"BSB\s*[-:]?\s*(\d{3}[-\s]?\d{3})\s+Account\s*:?\s*(\d+)", re.IGNORECASE
        ),
        re.compile(r"Account:?\s*(\d{6,})", re.IGNORECASE),
    )
    PERIOD_RE = re.compile(
        rf"Statement\s+Period:?\s*({NUMERIC_DATE})\s*(?:to|-)\s*({NUMERIC_DATE})",
        re.IGNORECASE,
    )
    OPENING_RE = re.compile(rf"Opening\s+Balance:?\s*\$?({AMOUNT})", re.IGNORECASE)
    CLOSING_RE = re.compile(rf"Closing\s+Balance:?\s*\$?({AMOUNT})", re.IGNORECASE)
    DATE_PREFIX_RE = re.compile(rf"^{NUMERIC_DATE}\b")
    LINE_RE = re.compile(
        rf"^({NUMERIC_DATE})\s+(.+?)"
        rf"\s+\$?({AMOUNT})"
        rf"(?:\s+\$?({AMOUNT}))?"
        rf"(?:\s+\$?({AMOUNT}))?"
        r"(?:\s*(CR|DR))?\s*$",
        re.IGNORECASE,
    )

    def detect(self, text: str) -> bool:
        return True

    def extract_info(self, text: str) -> StatementInfo:
        info = StatementInfo()

        for pattern in self.ACCOUNT_PATTERNS:
            match = pattern.search(text)
            if match:
                info.account_number = re.sub(r"[\s-]", "", match.group(match.lastindex or 1))
                break

        period_match = self.PERIOD_RE.search(text)
        if period_match:
            start = parse_date(period_match.group(1))
            end = parse_date(period_match.group(2))
            if start and end:
                info.statement_period = StatementPeriod(start=start, end=end)

        opening_match = self.OPENING_RE.search(text)
        if opening_match:
            info.opening_balance = _amount(opening_match.group(1))

        closing_match = self.CLOSING_RE.search(text)
        if closing_match:
            info.closing_balance = _amount(closing_match.group(1))

        return info

    def extract_transactions(
        self, text: str, warnings: Optional[list[ParseWarning]] = None
    ) -> list[StatementTransaction]:
        transactions: list[StatementTransaction] = []

        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.strip()
            if not line:
                continue

            match = self.LINE_RE.match(line)
            if not match:
                if self.DATE_PREFIX_RE.match(line):
                    _record(warnings, line_number, line, "no trailing amount")
                continue

            date_str, description, amount1, amount2, amount3, cr_dr = match.groups()
            txn_date = parse_date(date_str)
            if txn_date is None:
                _record(warnings, line_number, line, f"invalid date {date_str}")
                continue

            description = description.strip()
            debit: Optional[Decimal] = None
            credit: Optional[Decimal] = None
            balance: Optional[Decimal] = None

            if amount3:
                # Debit, credit, balance columns
                debit = _amount(amount1) or None
                credit = _amount(amount2) or None
                balance = _signed_balance(amount3, cr_dr)
            else:
                if amount2:
                    balance = _signed_balance(amount2, cr_dr)
                if self.classify_debit(description):
                    debit = _amount(amount1)
                else:
                    credit = _amount(amount1)

            transactions.append(
                StatementTransaction(
                    date=txn_date,
                    description=description,
                    debit=debit,
                    credit=credit,
                    balance=balance,
                    raw_text=line,
                )
            )

        return transactions

    @staticmethod
    def classify_debit(description: str) -> bool:
        """
        Decide the direction of a single-amount line.

        Money-out keywords win; otherwise a line is a credit only when it
        carries a money-in cue.
        """
        if is_debit(description):
            return True
        return not is_credit(description)


@dataclass
class _Entry:
    """A dated anchor line plus its continuation lines."""

    line_number: int
    anchor: str
    txn_date: date
    parts: list[str] = field(default_factory=list)

    @property
    def body(self) -> str:
        return " ".join(part for part in self.parts if part)


class SectionedFormat(StatementFormat):
    """
    Base for bank layouts with a transactions section and "D MMM" dated lines.

    Lines are scanned with a small state machine: a header marker enters the
    section, a trailer marker leaves it, skip markers (page furniture) are
    ignored, and undated lines are appended to the previous dated line.
    """

    header_patterns: tuple[Pattern[str], ...] = ()
    trailer_patterns: tuple[Pattern[str], ...] = ()
    skip_patterns: tuple[Pattern[str], ...] = ()
    period_re: Pattern[str] = re.compile(
        rf"Period\s+({BANK_DATE})\s*-\s*({BANK_DATE})", re.IGNORECASE
    )
    anchor_re = re.compile(rf"^(\d{{1,2}})\s+({MONTH_PATTERN})\b", re.IGNORECASE)

    def extract_period(self, text: str) -> Optional[StatementPeriod]:
        match = self.period_re.search(text)
        if not match:
            return None
        start = parse_bank_date(match.group(1))
        end = parse_bank_date(match.group(2))
        if start and end:
            return StatementPeriod(start=start, end=end)
        return None

    def extract_transactions(
        self, text: str, warnings: Optional[list[ParseWarning]] = None
    ) -> list[StatementTransaction]:
        period = self.extract_period(text)
        transactions: list[StatementTransaction] = []

        for entry in self._scan(text, period, warnings):
            txn = self.parse_entry(entry, warnings)
            if txn:
                transactions.append(txn)

        return transactions

    @abstractmethod
    def parse_entry(
        self, entry: _Entry, warnings: Optional[list[ParseWarning]]
    ) -> Optional[StatementTransaction]:
        pass

    def _scan(
        self,
        text: str,
        period: Optional[StatementPeriod],
        warnings: Optional[list[ParseWarning]],
    ) -> list[_Entry]:
        entries: list[_Entry] = []
        current: Optional[_Entry] = None
        in_section = False

        def flush() -> None:
            nonlocal current
            if current is not None:
                entries.append(current)
                current = None

        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.strip()

            if _matches_any(self.header_patterns, line):
                flush()
                in_section = True
                continue

            if _matches_any(self.trailer_patterns, line):
                flush()
                in_section = False
                continue

            if not in_section:
                continue

            if not line or _matches_any(self.skip_patterns, line):
                flush()
                continue

            anchor = self.anchor_re.match(line)
            if anchor:
                flush()
                txn_date = self._resolve_date(int(anchor.group(1)), anchor.group(2), period)
                if txn_date is None:
                    _record(warnings, line_number, line, "invalid date")
                    continue
                current = _Entry(
                    line_number=line_number,
                    anchor=line,
                    txn_date=txn_date,
                    parts=[line[anchor.end():].strip()],
                )
                continue

            if current is not None:
                current.parts.append(line)

        flush()
        return entries

    @staticmethod
    def _resolve_date(day: int, month_name: str, period: Optional[StatementPeriod]) -> Optional[date]:
        month = month_to_number(month_name)
        if month is None:
            return None
        if period is None:
            return safe_date(date.today().year, month, day)

        # Cross-year statements: months before the start month belong to the end year
        year = period.start.year
        if period.end.year > period.start.year and month < period.start.month:
            year = period.end.year
        return safe_date(year, month, day)


def _matches_any(patterns: tuple[Pattern[str], ...], line: str) -> bool:
    return any(pattern.search(line) for pattern in patterns)


class CommBankCreditCardFormat(SectionedFormat):
    """
    Commonwealth Bank credit card statements.

    Line items look like "08 Nov Apple.Com/Bill Sydney 22.99"; payments and
    refunds carry a trailing minus: "24 Nov Payment Received, Thank You 4,113.69-".
    """

    name = "commbank-cc"

    header_patterns = (re.compile(r"Date\s+Transaction\s+details\s+Amount", re.IGNORECASE),)
    trailer_patterns = (
        re.compile(
            r"^Total\s+(new\s+)?(purchases|payments|credits|debits|cash|interest|fees)",
            re.IGNORECASE,
        ),
        re.compile(r"^Closing\s+balance", re.IGNORECASE),
    )
    skip_patterns = (
        re.compile(r"^TransactionsAccount"),
        re.compile(r"^Please check your transactions"),
        re.compile(r"Interest charged on"),
    )
    period_re = re.compile(
        rf"Statement\s+Period\s+({BANK_DATE})\s*-\s*({BANK_DATE})", re.IGNORECASE
    )
    CARD_RE = re.compile(r"(\d{4}\s+\d{4}\s+\d{4}\s+\d{4})")
    OPENING_RE = re.compile(
        rf"Opening\s+balance\s+at\s+\d{{1,2}}\s+\w{{3}}\s+\$?({AMOUNT})", re.IGNORECASE
    )
    CLOSING_RE = re.compile(
        rf"Closing\s+balance\s+at\s+\d{{1,2}}\s+\w{{3}}\s+\$?({AMOUNT})", re.IGNORECASE
    )
    BODY_RE = re.compile(rf"^(.+?)\s+({AMOUNT})(-)?$")

    def detect(self, text: str) -> bool:
        return (
            "Ultimate Awards Credit Card" in text
            or "Awards points balance" in text
            or ("commbank.com.au" in text and "Credit limit" in text)
        )

    def extract_info(self, text: str) -> StatementInfo:
        info = StatementInfo(statement_period=self.extract_period(text))

        card_match = self.CARD_RE.search(text)
        if card_match:
            info.account_number = re.sub(r"\s+", "", card_match.group(1))

        opening_match = self.OPENING_RE.search(text)
        if opening_match:
            info.opening_balance = _amount(opening_match.group(1))

        closing_match = self.CLOSING_RE.search(text)
        if closing_match:
            info.closing_balance = _amount(closing_match.group(1))

        return info

    def parse_entry(
        self, entry: _Entry, warnings: Optional[list[ParseWarning]]
    ) -> Optional[StatementTransaction]:
        # The dated line carries the amount; wrapped descriptions put it on a later line
        match = self.BODY_RE.match(entry.parts[0])
        if not match and len(entry.parts) > 1:
            match = self.BODY_RE.match(entry.body)
        if not match:
            # e.g. "08 Dec Monthly Fee Waived"
            _record(warnings, entry.line_number, entry.anchor, "no amount")
            return None

        description, amount_str, credit_marker = match.groups()
        amount = _amount(amount_str)

        # Purchases are debits; the trailing minus marks payments and refunds
        if credit_marker == "-":
            return StatementTransaction(
                date=entry.txn_date,
                description=description.strip(),
                credit=amount,
                raw_text=entry.anchor,
            )
        return StatementTransaction(
            date=entry.txn_date,
            description=description.strip(),
            debit=amount,
            raw_text=entry.anchor,
        )


class CommBankSavingsFormat(SectionedFormat):
    """
    Commonwealth Bank savings and transaction accounts.

    Every line item ends with the running balance "$xxx.xx CR|DR". Before it,
    credits show a "$"-prefixed amount ("$2.27") and debits a bare amount,
    optionally followed by "(" or "$" ("4.00 ("). Descriptions may wrap onto
    following lines.
    """

    name = "commbank-savings"

    header_patterns = (re.compile(r"^Date\s+Transaction", re.IGNORECASE),)
    trailer_patterns = (
        re.compile(r"^Opening\s+balance\s+-\s+Total", re.IGNORECASE),
        re.compile(r"^Transaction\s+Summary", re.IGNORECASE),
        re.compile(r"^Important\s+Information", re.IGNORECASE),
    )
    skip_patterns = (
        re.compile(r"OPENING BALANCE"),
        re.compile(r"CLOSING BALANCE"),
        re.compile(r"^Statement\s+\d+", re.IGNORECASE),
        re.compile(r"^Account\s+Number", re.IGNORECASE),
        re.compile(r"^\d{4}\.\d{4}"),
    )
    ACCOUNT_RE = re.compile(r"Account\s+Number\s+(\d{2}\s+\d{4}\s+\d{8})", re.IGNORECASE)
    OPENING_RE = re.compile(rf"OPENING\s+BALANCE\s+\$?({AMOUNT})\s*(CR|DR)?", re.IGNORECASE)
    CLOSING_RE = re.compile(rf"Closing\s+Balance\s+\$?({AMOUNT})\s*(CR|DR)?", re.IGNORECASE)
    BALANCE_RE = re.compile(rf"\$({AMOUNT})\s*(CR|DR)\s*$", re.IGNORECASE)
    CREDIT_RE = re.compile(rf"\$({AMOUNT})\s*$")
    DEBIT_RE = re.compile(rf"({AMOUNT})\s*[\(\$]?\s*$")

    def detect(self, text: str) -> bool:
        return "Smart Access" in text or ("commbank.com.au" in text and "NetBank" in text)

    def extract_info(self, text: str) -> StatementInfo:
        # "Statement" and "Period" may land on separate lines, so match on "Period" alone
        info = StatementInfo(statement_period=self.extract_period(text))

        account_match = self.ACCOUNT_RE.search(text)
        if account_match:
            info.account_number = re.sub(r"\s+", "", account_match.group(1))

        opening_match = self.OPENING_RE.search(text)
        if opening_match:
            info.opening_balance = _signed_balance(opening_match.group(1), opening_match.group(2))

        closing_match = self.CLOSING_RE.search(text)
        if closing_match:
            info.closing_balance = _signed_balance(closing_match.group(1), closing_match.group(2))

        return info

    def parse_entry(
        self, entry: _Entry, warnings: Optional[list[ParseWarning]]
    ) -> Optional[StatementTransaction]:
        body = entry.body

        # Step 1: strip the running balance from the end
        balance_match = self.BALANCE_RE.search(body)
        if not balance_match:
            _record(warnings, entry.line_number, entry.anchor, "no running balance")
            return None
        balance = _signed_balance(balance_match.group(1), balance_match.group(2))
        remaining = body[: balance_match.start()].strip()

        # Step 2: classify the trailing amount
        credit_match = self.CREDIT_RE.search(remaining)
        debit_match = None if credit_match else self.DEBIT_RE.search(remaining)
        amount_match = credit_match or debit_match
        if not amount_match:
            _record(warnings, entry.line_number, entry.anchor, "no transaction amount")
            return None

        amount = _amount(amount_match.group(1))
        description = remaining[: amount_match.start()].strip()
        description = re.sub(r"[\$\(\)]+\s*$", "", description).strip()

        return StatementTransaction(
            date=entry.txn_date,
            description=description,
            debit=None if credit_match else amount,
            credit=amount if credit_match else None,
            balance=balance,
            raw_text=entry.anchor,
        )


# Credit card indicators are checked first: savings phrases can appear on card statements
FORMATS: tuple[StatementFormat, ...] = (
    CommBankCreditCardFormat(),
    CommBankSavingsFormat(),
    GenericFormat(),
)


def get_format(name: str) -> StatementFormat:
    """Look up a format by name."""
    for fmt in FORMATS:
        if fmt.name == name:
            return fmt
    raise KeyError(f"Unknown statement format: {name}")
