"""
Reconciliation sessions.

A session certifies that the cleared ledger balance of an account agrees
with a bank statement's closing balance. It moves from IN_PROGRESS to
LOCKED once balanced; locking is terminal and freezes every posting the
session covers.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional
import logging
import threading

from ..config import ReconConfig
from ..models.ledger import Posting, Transaction
from ..models.reconciliation import (
    AccountReconciliationSummary,
    AutoReconcileResult,
    MatchResult,
    MatchType,
    Reconciliation,
    ReconciliationBalance,
    ReconciliationStatus,
)
from ..repository import LedgerRepository
from ..utils.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class ReconciliationSessionService:
    """
    Drives reconciliation sessions against a ledger repository.

    Mutations of one session are serialized with a lock per reconciliation
    id, and starting sessions is serialized per account so that an account
    never has two sessions in progress.
    """

    def __init__(self, repository: LedgerRepository, config: Optional[ReconConfig] = None):
        """
        Initialize the session service.

        Args:
            repository: Ledger storage holding accounts, postings and sessions
            config: Application configuration (defaults if omitted)
        """
        self.repository = repository
        self.config = config or ReconConfig()
        self.tolerance = Decimal(str(self.config.session.balance_tolerance))
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # Lifecycle

    def start(
        self,
        account_id: str,
        start_date: date,
        end_date: date,
        start_balance: Decimal,
        end_balance: Decimal,
        notes: Optional[str] = None,
    ) -> Reconciliation:
        """
        Open a reconciliation session for a statement.

        Args:
            account_id: Account being reconciled
            start_date: First day of the statement
            end_date: Last day of the statement
            start_balance: Statement opening balance
            end_balance: Statement closing balance
            notes: Free-form notes

        Returns:
            The new IN_PROGRESS reconciliation

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If start_date is after end_date
            ConflictError: If the account already has a session in progress
        """
        if self.repository.get_account(account_id) is None:
            raise NotFoundError("Account", account_id)
        self._validate_dates(start_date, end_date)

        with self._lock_for(f"account:{account_id}"):
            for existing in self.repository.list_reconciliations(account_id):
                if existing.status == ReconciliationStatus.IN_PROGRESS:
                    raise ConflictError(
                        f"Account {account_id} already has reconciliation "
                        f"{existing.id} in progress"
                    )

            reconciliation = Reconciliation(
                account_id=account_id,
                statement_start_date=start_date,
                statement_end_date=end_date,
                statement_start_balance=Decimal(str(start_balance)),
                statement_end_balance=Decimal(str(end_balance)),
                notes=notes,
            )
            self.repository.add_reconciliation(reconciliation)

        logger.info(
            f"Started reconciliation {reconciliation.id} for account {account_id} "
            f"({start_date} to {end_date})"
        )
        return reconciliation

    def get(self, reconciliation_id: str) -> Reconciliation:
        reconciliation = self.repository.get_reconciliation(reconciliation_id)
        if reconciliation is None:
            raise NotFoundError("Reconciliation", reconciliation_id)
        return reconciliation

    def list_sessions(self, account_id: Optional[str] = None) -> list[Reconciliation]:
        """Sessions, newest first, optionally for one account."""
        return self.repository.list_reconciliations(account_id)

    def update(
        self,
        reconciliation_id: str,
        statement_start_date: Optional[date] = None,
        statement_end_date: Optional[date] = None,
        statement_start_balance: Optional[Decimal] = None,
        statement_end_balance: Optional[Decimal] = None,
        notes: Optional[str] = None,
    ) -> Reconciliation:
        """Change the statement figures of an in-progress session."""
        with self._lock_for(reconciliation_id):
            reconciliation = self._require_in_progress(reconciliation_id)

            start = statement_start_date or reconciliation.statement_start_date
            end = statement_end_date or reconciliation.statement_end_date
            self._validate_dates(start, end)

            reconciliation.statement_start_date = start
            reconciliation.statement_end_date = end
            if statement_start_balance is not None:
                reconciliation.statement_start_balance = Decimal(str(statement_start_balance))
            if statement_end_balance is not None:
                reconciliation.statement_end_balance = Decimal(str(statement_end_balance))
            if notes is not None:
                reconciliation.notes = notes

            return self.repository.save_reconciliation(reconciliation)

    def delete(self, reconciliation_id: str) -> None:
        """Delete an in-progress session and release its postings."""
        with self._lock_for(reconciliation_id):
            self._require_in_progress(reconciliation_id)
            for posting in self.repository.postings_for_reconciliation(reconciliation_id):
                self.repository.unreconcile_posting(posting.id)
            self.repository.delete_reconciliation(reconciliation_id)

        with self._locks_guard:
            self._locks.pop(reconciliation_id, None)
        logger.info(f"Deleted reconciliation {reconciliation_id}")

    # Posting membership

    def reconcile_postings(self, reconciliation_id: str, posting_ids: Iterable[str]) -> int:
        """
        Add postings to a session, marking them reconciled and cleared.

        Every id is checked before any posting changes.

        Returns:
            Number of postings reconciled

        Raises:
            ConflictError: If the session is locked or a posting is held by
                another session
            NotFoundError: If a posting does not exist
            ValidationError: If a posting belongs to another account
        """
        with self._lock_for(reconciliation_id):
            reconciliation = self._require_in_progress(reconciliation_id)
            postings = [self._require_posting(pid) for pid in posting_ids]

            foreign = [p.id for p in postings if p.account_id != reconciliation.account_id]
            if foreign:
                raise ValidationError(
                    [
                        f"Posting {pid} does not belong to account {reconciliation.account_id}"
                        for pid in foreign
                    ]
                )

            held = [
                p.id for p in postings if p.reconciliation_id not in (None, reconciliation_id)
            ]
            if held:
                raise ConflictError(
                    f"Postings already reconciled in another session: {', '.join(held)}"
                )

            for posting in postings:
                self.repository.reconcile_posting(posting.id, reconciliation_id)

        logger.info(f"Reconciled {len(postings)} postings in {reconciliation_id}")
        return len(postings)

    def unreconcile_postings(self, reconciliation_id: str, posting_ids: Iterable[str]) -> int:
        """
        Remove postings from a session.

        Postings that belong to another session (or none) are left alone.

        Returns:
            Number of postings released
        """
        with self._lock_for(reconciliation_id):
            self._require_in_progress(reconciliation_id)
            postings = [self._require_posting(pid) for pid in posting_ids]

            released = 0
            for posting in postings:
                if posting.reconciliation_id != reconciliation_id:
                    continue
                self.repository.unreconcile_posting(posting.id)
                released += 1

        logger.info(f"Unreconciled {released} postings in {reconciliation_id}")
        return released

    def reconcile_matches(
        self,
        reconciliation_id: str,
        match_result: MatchResult,
        tiers: Iterable[MatchType] = (MatchType.EXACT,),
    ) -> int:
        """
        Reconcile the account postings of matched ledger transactions.

        Args:
            reconciliation_id: Session to add postings to
            match_result: Output of the matching engine
            tiers: Match tiers to accept (exact only by default)

        Returns:
            Number of postings reconciled
        """
        account_id = self.get(reconciliation_id).account_id
        posting_ids: list[str] = []

        for match in match_result.matches_for(*tiers):
            if match.ledger_transaction is None:
                continue
            posting_ids.extend(
                p.id
                for p in match.ledger_transaction.postings
                if p.account_id == account_id and p.reconciliation_id is None
            )

        return self.reconcile_postings(reconciliation_id, posting_ids)

    # Certification

    def status(self, reconciliation_id: str) -> ReconciliationBalance:
        """
        Recompute the session's balances.

        Only postings on the account from NORMAL transactions dated on or
        before the statement end date are counted.

        Returns:
            ReconciliationBalance; the session is balanced when the cleared
            balance is within tolerance of the statement closing balance
        """
        reconciliation = self.get(reconciliation_id)
        opening = self._opening_balance(reconciliation.account_id)

        cleared_balance = opening
        unreconciled_balance = opening
        reconciled_count = 0
        unreconciled_count = 0

        for posting in self._account_postings(
            reconciliation.account_id, reconciliation.statement_end_date
        ):
            if posting.cleared:
                cleared_balance += posting.amount
            if posting.is_reconciled:
                reconciled_count += 1
            else:
                unreconciled_balance += posting.amount
                unreconciled_count += 1

        difference = cleared_balance - reconciliation.statement_end_balance

        return ReconciliationBalance(
            statement_balance=reconciliation.statement_end_balance,
            cleared_balance=cleared_balance,
            unreconciled_balance=unreconciled_balance,
            difference=difference,
            is_balanced=abs(difference) < self.tolerance,
            reconciled_count=reconciled_count,
            unreconciled_count=unreconciled_count,
        )

    def lock(self, reconciliation_id: str) -> Reconciliation:
        """
        Lock a balanced session. Locking is permanent.

        Raises:
            ConflictError: If the session is already locked or not balanced
        """
        with self._lock_for(reconciliation_id):
            reconciliation = self._require_in_progress(reconciliation_id)
            balance = self.status(reconciliation_id)

            if not balance.is_balanced:
                raise ConflictError(
                    f"Cannot lock reconciliation with difference of {balance.difference:.2f}"
                )

            reconciliation.status = ReconciliationStatus.LOCKED
            self.repository.save_reconciliation(reconciliation)

        logger.info(
            f"Locked reconciliation {reconciliation_id} "
            f"({balance.reconciled_count} postings reconciled)"
        )
        return reconciliation

    # Account helpers

    def auto_reconcile(
        self, account_id: str, statement_end_date: date, statement_end_balance: Decimal
    ) -> AutoReconcileResult:
        """
        Suggest postings for a statement: every cleared, unreconciled posting
        up to the end date.

        Returns:
            Suggested posting ids (oldest first) and the difference between
            the resulting cleared balance and the statement balance
        """
        running_balance = self._opening_balance(account_id)
        suggested: list[str] = []

        for posting in self._account_postings(account_id, statement_end_date):
            if not posting.cleared:
                continue
            running_balance += posting.amount
            if not posting.is_reconciled:
                suggested.append(posting.id)

        return AutoReconcileResult(
            posting_ids=suggested,
            difference=running_balance - Decimal(str(statement_end_balance)),
        )

    def account_summary(self, account_id: str) -> AccountReconciliationSummary:
        """Last locked statement date and what is still unreconciled."""
        if self.repository.get_account(account_id) is None:
            raise NotFoundError("Account", account_id)

        locked = [
            r for r in self.repository.list_reconciliations(account_id) if r.is_locked
        ]
        last_reconciled = max((r.statement_end_date for r in locked), default=None)

        unreconciled = [p for p in self._account_postings(account_id) if not p.is_reconciled]

        return AccountReconciliationSummary(
            account_id=account_id,
            last_reconciled=last_reconciled,
            unreconciled_count=len(unreconciled),
            unreconciled_amount=sum((p.amount for p in unreconciled), Decimal("0")),
        )

    # Helpers

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def _require_in_progress(self, reconciliation_id: str) -> Reconciliation:
        reconciliation = self.get(reconciliation_id)
        if reconciliation.is_locked:
            raise ConflictError(f"Cannot modify locked reconciliation {reconciliation_id}")
        return reconciliation

    def _require_posting(self, posting_id: str) -> Posting:
        posting = self.repository.get_posting(posting_id)
        if posting is None:
            raise NotFoundError("Posting", posting_id)
        return posting

    def _opening_balance(self, account_id: str) -> Decimal:
        account = self.repository.get_account(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account.opening_balance

    def _account_postings(
        self, account_id: str, end_date: Optional[date] = None
    ) -> list[Posting]:
        transactions: list[Transaction] = self.repository.fetch_transactions(
            account_id, end=end_date
        )
        return [p for tx in transactions for p in tx.postings if p.account_id == account_id]

    @staticmethod
    def _validate_dates(start_date: date, end_date: date) -> None:
        if start_date > end_date:
            raise ValidationError(
                f"Statement start date {start_date} is after end date {end_date}"
            )
