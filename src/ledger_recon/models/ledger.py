"""Double-entry ledger models: accounts, transactions and their postings."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
import uuid


class AccountType(Enum):
    """Accounting class of an account."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class AccountKind(Enum):
    """Whether an account is a spending/earning category or a real transfer account."""

    CATEGORY = "CATEGORY"
    TRANSFER = "TRANSFER"


class TransactionStatus(Enum):
    """Lifecycle status of a ledger transaction."""

    NORMAL = "NORMAL"
    VOID = "VOID"


class GSTCode(Enum):
    """GST treatment of a business posting."""

    GST = "GST"
    GST_FREE = "GST_FREE"
    INPUT_TAXED = "INPUT_TAXED"


def new_id() -> str:
    """Generate a new opaque identifier."""
    return str(uuid.uuid4())


@dataclass
class Account:
    """A ledger account (bank account, card, category, or control account)."""

    id: str
    name: str
    type: AccountType
    kind: AccountKind = AccountKind.TRANSFER
    is_business_default: bool = False
    default_has_gst: bool = False
    archived: bool = False
    opening_balance: Decimal = Decimal("0")


@dataclass
class Posting:
    """
    One signed leg of a double-entry transaction, tied to one account.

    Business postings carrying GST store the GST-exclusive amount; the GST
    portion sits on a paired posting against a GST control account.
    """

    account_id: str
    amount: Decimal
    id: str = field(default_factory=new_id)
    transaction_id: Optional[str] = None
    is_business: bool = False
    gst_code: Optional[GSTCode] = None
    gst_rate: Optional[Decimal] = None
    gst_amount: Optional[Decimal] = None
    cleared: bool = False
    reconciliation_id: Optional[str] = None

    @property
    def is_reconciled(self) -> bool:
        """Check if this posting is stamped with a reconciliation."""
        return self.reconciliation_id is not None


@dataclass
class Transaction:
    """A dated ledger transaction made up of balanced postings."""

    date: date
    payee: str
    postings: list[Posting] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    memo: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    status: TransactionStatus = TransactionStatus.NORMAL
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Attach postings to this transaction."""
        for posting in self.postings:
            posting.transaction_id = self.id

    @property
    def total(self) -> Decimal:
        """Sum of all posting amounts (zero for a balanced transaction)."""
        return sum((p.amount for p in self.postings), Decimal("0"))

    def posting_for(self, account_id: str) -> Optional[Posting]:
        """Return the first posting against the given account, if any."""
        return next((p for p in self.postings if p.account_id == account_id), None)

    def account_amount(self, account_id: str) -> Decimal:
        """Net amount this transaction moves through the given account."""
        return sum(
            (p.amount for p in self.postings if p.account_id == account_id),
            Decimal("0"),
        )

    def touches(self, account_id: str) -> bool:
        """Check if any posting hits the given account."""
        return any(p.account_id == account_id for p in self.postings)
