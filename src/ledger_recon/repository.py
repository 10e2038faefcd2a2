"""
Ledger repository interface and an in-memory implementation.

The matching engine and the reconciliation session receive a repository at
construction; swapping stores means passing a different implementation.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional
import logging
import threading

from .ledger.validation import validate_transaction
from .models.ledger import Account, Posting, Transaction, TransactionStatus
from .models.reconciliation import Reconciliation, ReconciliationStatus
from .utils.exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class LedgerRepository(ABC):
    """Storage contract for ledger data used by reconciliation."""

    # Accounts

    @abstractmethod
    def get_account(self, account_id: str) -> Optional[Account]:
        pass

    @abstractmethod
    def add_account(self, account: Account) -> Account:
        pass

    # Transactions

    @abstractmethod
    def add_transaction(self, transaction: Transaction) -> Transaction:
        """Persist a transaction after checking the ledger invariants."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    def update_transaction(self, transaction: Transaction) -> Transaction:
        """Replace a transaction. Must reject edits to locked postings."""
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: str) -> None:
        pass

    @abstractmethod
    def fetch_transactions(
        self,
        account_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Transaction]:
        """
        NORMAL transactions touching the account within [start, end], oldest first.

        Args:
            account_id: Account the transactions must post to
            start: Inclusive lower date bound (None for open-ended)
            end: Inclusive upper date bound (None for open-ended)
        """
        pass

    # Postings

    @abstractmethod
    def get_posting(self, posting_id: str) -> Optional[Posting]:
        pass

    @abstractmethod
    def reconcile_posting(self, posting_id: str, reconciliation_id: str) -> Posting:
        """Stamp a posting with a reconciliation and mark it cleared."""
        pass

    @abstractmethod
    def unreconcile_posting(self, posting_id: str) -> Posting:
        """Clear a posting's reconciliation stamp and cleared flag."""
        pass

    @abstractmethod
    def mark_cleared(self, posting_id: str, cleared: bool = True) -> Posting:
        pass

    @abstractmethod
    def postings_for_reconciliation(self, reconciliation_id: str) -> list[Posting]:
        pass

    # Reconciliations

    @abstractmethod
    def add_reconciliation(self, reconciliation: Reconciliation) -> Reconciliation:
        pass

    @abstractmethod
    def get_reconciliation(self, reconciliation_id: str) -> Optional[Reconciliation]:
        pass

    @abstractmethod
    def save_reconciliation(self, reconciliation: Reconciliation) -> Reconciliation:
        pass

    @abstractmethod
    def list_reconciliations(self, account_id: Optional[str] = None) -> list[Reconciliation]:
        """Reconciliations, newest first, optionally for one account."""
        pass

    @abstractmethod
    def delete_reconciliation(self, reconciliation_id: str) -> None:
        pass


class InMemoryLedgerRepository(LedgerRepository):
    """
    Dictionary-backed repository.

    Enforces the ledger invariants on write and rejects any change to a
    posting that belongs to a locked reconciliation.
    """

    def __init__(
        self,
        accounts: Iterable[Account] = (),
        transactions: Iterable[Transaction] = (),
    ):
        self._lock = threading.RLock()
        self._accounts: dict[str, Account] = {}
        self._transactions: dict[str, Transaction] = {}
        self._postings: dict[str, Posting] = {}
        self._reconciliations: dict[str, Reconciliation] = {}

        for account in accounts:
            self.add_account(account)
        for transaction in transactions:
            self.add_transaction(transaction)

    # Accounts

    def get_account(self, account_id: str) -> Optional[Account]:
        return self._accounts.get(account_id)

    def add_account(self, account: Account) -> Account:
        with self._lock:
            self._accounts[account.id] = account
        return account

    def list_accounts(self) -> list[Account]:
        return list(self._accounts.values())

    # Transactions

    def add_transaction(self, transaction: Transaction) -> Transaction:
        validate_transaction(transaction)
        with self._lock:
            if transaction.id in self._transactions:
                raise ConflictError(f"Transaction {transaction.id} already exists")
            self._store(transaction)
        logger.debug(f"Added transaction {transaction.id} ({transaction.payee})")
        return transaction

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    def update_transaction(self, transaction: Transaction) -> Transaction:
        with self._lock:
            existing = self._require_transaction(transaction.id)
            self._ensure_unlocked(existing.postings, "edit")
            validate_transaction(transaction)
            for posting in existing.postings:
                self._postings.pop(posting.id, None)
            self._store(transaction)
        return transaction

    def delete_transaction(self, transaction_id: str) -> None:
        with self._lock:
            existing = self._require_transaction(transaction_id)
            if any(p.is_reconciled for p in existing.postings):
                raise ConflictError(
                    "Cannot delete transaction with reconciled postings. Void it instead."
                )
            for posting in existing.postings:
                self._postings.pop(posting.id, None)
            del self._transactions[transaction_id]

    def void_transaction(self, transaction_id: str) -> Transaction:
        with self._lock:
            existing = self._require_transaction(transaction_id)
            self._ensure_unlocked(existing.postings, "void")
            existing.status = TransactionStatus.VOID
        return existing

    def fetch_transactions(
        self,
        account_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Transaction]:
        with self._lock:
            selected = [
                tx
                for tx in self._transactions.values()
                if tx.status == TransactionStatus.NORMAL
                and tx.touches(account_id)
                and (start is None or tx.date >= start)
                and (end is None or tx.date <= end)
            ]
        # Stable sort keeps insertion order within a day
        return sorted(selected, key=lambda tx: tx.date)

    # Postings

    def get_posting(self, posting_id: str) -> Optional[Posting]:
        return self._postings.get(posting_id)

    def reconcile_posting(self, posting_id: str, reconciliation_id: str) -> Posting:
        with self._lock:
            posting = self._require_posting(posting_id)
            if posting.reconciliation_id not in (None, reconciliation_id):
                self._ensure_unlocked([posting], "reconcile")
            target = self._reconciliations.get(reconciliation_id)
            if target and target.status == ReconciliationStatus.LOCKED:
                raise ConflictError(
                    f"Cannot reconcile posting {posting.id} into locked "
                    f"reconciliation {reconciliation_id}"
                )
            posting.reconciliation_id = reconciliation_id
            posting.cleared = True
        return posting

    def unreconcile_posting(self, posting_id: str) -> Posting:
        with self._lock:
            posting = self._require_posting(posting_id)
            self._ensure_unlocked([posting], "unreconcile")
            posting.reconciliation_id = None
            posting.cleared = False
        return posting

    def mark_cleared(self, posting_id: str, cleared: bool = True) -> Posting:
        with self._lock:
            posting = self._require_posting(posting_id)
            self._ensure_unlocked([posting], "change the cleared flag of")
            posting.cleared = cleared
        return posting

    def postings_for_reconciliation(self, reconciliation_id: str) -> list[Posting]:
        with self._lock:
            return [
                p for p in self._postings.values() if p.reconciliation_id == reconciliation_id
            ]

    # Reconciliations

    def add_reconciliation(self, reconciliation: Reconciliation) -> Reconciliation:
        with self._lock:
            self._reconciliations[reconciliation.id] = reconciliation
        return reconciliation

    def get_reconciliation(self, reconciliation_id: str) -> Optional[Reconciliation]:
        return self._reconciliations.get(reconciliation_id)

    def save_reconciliation(self, reconciliation: Reconciliation) -> Reconciliation:
        with self._lock:
            if reconciliation.id not in self._reconciliations:
                raise NotFoundError("Reconciliation", reconciliation.id)
            self._reconciliations[reconciliation.id] = reconciliation
        return reconciliation

    def list_reconciliations(self, account_id: Optional[str] = None) -> list[Reconciliation]:
        with self._lock:
            selected = [
                r
                for r in self._reconciliations.values()
                if account_id is None or r.account_id == account_id
            ]
        return sorted(selected, key=lambda r: r.created_at, reverse=True)

    def delete_reconciliation(self, reconciliation_id: str) -> None:
        with self._lock:
            if reconciliation_id not in self._reconciliations:
                raise NotFoundError("Reconciliation", reconciliation_id)
            del self._reconciliations[reconciliation_id]

    # Helpers

    def _store(self, transaction: Transaction) -> None:
        for posting in transaction.postings:
            posting.transaction_id = transaction.id
            self._postings[posting.id] = posting
        self._transactions[transaction.id] = transaction

    def _require_transaction(self, transaction_id: str) -> Transaction:
        transaction = self._transactions.get(transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)
        return transaction

    def _require_posting(self, posting_id: str) -> Posting:
        posting = self._postings.get(posting_id)
        if posting is None:
            raise NotFoundError("Posting", posting_id)
        return posting

    def _ensure_unlocked(self, postings: Iterable[Posting], action: str) -> None:
        for posting in postings:
            if posting.reconciliation_id is None:
                continue
            reconciliation = self._reconciliations.get(posting.reconciliation_id)
            if reconciliation and reconciliation.status == ReconciliationStatus.LOCKED:
                raise ConflictError(
                    f"Cannot {action} posting {posting.id}: it belongs to locked "
                    f"reconciliation {reconciliation.id}"
                )
