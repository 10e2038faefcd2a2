"""Tests for reconciliation sessions."""

from datetime import date
from decimal import Decimal
import threading

import pytest

from ledger_recon.matching import ReconciliationMatchingEngine
from ledger_recon.models.reconciliation import MatchType, ReconciliationStatus
from ledger_recon.reconciliation import ReconciliationSessionService
from ledger_recon.utils.exceptions import ConflictError, NotFoundError, ValidationError

from .helpers import CHECKING, GROCERIES, SAVINGS, make_statement_line, make_transaction

JAN_START = date(2025, 1, 1)
JAN_END = date(2025, 1, 31)
JAN_CLOSING = Decimal("3294.25")


def _posting_id(repository, tx_id: str, account_id: str = CHECKING) -> str:
    return repository.get_transaction(tx_id).posting_for(account_id).id


@pytest.fixture
def service(seeded_repository, config):
    return ReconciliationSessionService(seeded_repository, config)


@pytest.fixture
def session(service):
    return service.start(CHECKING, JAN_START, JAN_END, Decimal("1000.00"), JAN_CLOSING)


class TestStart:
    """Tests for opening sessions."""

    def test_start(self, service, session):
        assert session.status == ReconciliationStatus.IN_PROGRESS
        assert session.statement_end_balance == JAN_CLOSING
        assert service.get(session.id) is session

    def test_coerces_balances(self, service):
        reconciliation = service.start(CHECKING, JAN_START, JAN_END, 1000, "3294.25")
        assert reconciliation.statement_end_balance == JAN_CLOSING

    def test_unknown_account(self, service):
        with pytest.raises(NotFoundError):
            service.start("missing", JAN_START, JAN_END, Decimal("0"), Decimal("0"))

    def test_start_after_end(self, service):
        with pytest.raises(ValidationError):
            service.start(CHECKING, JAN_END, JAN_START, Decimal("0"), Decimal("0"))

    def test_one_session_in_progress_per_account(self, service, session):
        with pytest.raises(ConflictError, match="in progress"):
            service.start(CHECKING, JAN_START, JAN_END, Decimal("0"), Decimal("0"))

        # Other accounts are unaffected
        service.start(SAVINGS, JAN_START, JAN_END, Decimal("0"), Decimal("0"))

    def test_concurrent_starts(self, service):
        barrier = threading.Barrier(4)
        outcomes = []

        def start():
            barrier.wait()
            try:
                service.start(CHECKING, JAN_START, JAN_END, Decimal("0"), Decimal("0"))
                outcomes.append("started")
            except ConflictError:
                outcomes.append("conflict")

        threads = [threading.Thread(target=start) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ["conflict", "conflict", "conflict", "started"]

    def test_unknown_session(self, service):
        with pytest.raises(NotFoundError, match="Reconciliation missing not found"):
            service.get("missing")

    def test_list_sessions_by_account(self, service, session):
        other = service.start(SAVINGS, JAN_START, JAN_END, Decimal("0"), Decimal("0"))

        assert service.list_sessions(CHECKING) == [session]
        assert {r.id for r in service.list_sessions()} == {session.id, other.id}


class TestPostingMembership:
    """Tests for reconciling and unreconciling postings."""

    def test_reconcile(self, service, session, seeded_repository):
        pid = _posting_id(seeded_repository, "tx-woolworths")

        count = service.reconcile_postings(session.id, [pid])

        posting = seeded_repository.get_posting(pid)
        assert count == 1
        assert posting.reconciliation_id == session.id
        assert posting.cleared is True

    def test_foreign_posting_rejected_before_any_change(
        self, service, session, seeded_repository
    ):
        own = _posting_id(seeded_repository, "tx-woolworths")
        foreign = _posting_id(seeded_repository, "tx-woolworths", GROCERIES)

        with pytest.raises(ValidationError, match="does not belong to account"):
            service.reconcile_postings(session.id, [own, foreign])

        assert seeded_repository.get_posting(own).reconciliation_id is None

    def test_unknown_posting(self, service, session):
        with pytest.raises(NotFoundError):
            service.reconcile_postings(session.id, ["missing"])

    def test_posting_held_by_locked_session_rejects_whole_batch(
        self, service, seeded_repository
    ):
        salary = _posting_id(seeded_repository, "tx-salary")
        woolworths = _posting_id(seeded_repository, "tx-woolworths")
        early = service.start(
            CHECKING, JAN_START, date(2025, 1, 12), Decimal("1000.00"), Decimal("3500.00")
        )
        service.reconcile_postings(early.id, [salary])
        service.lock(early.id)
        january = service.start(CHECKING, JAN_START, JAN_END, Decimal("1000.00"), JAN_CLOSING)

        with pytest.raises(ConflictError, match="another session"):
            service.reconcile_postings(january.id, [woolworths, salary])

        assert seeded_repository.get_posting(woolworths).reconciliation_id is None
        assert seeded_repository.get_posting(woolworths).cleared is False
        assert seeded_repository.get_posting(salary).reconciliation_id == early.id

    def test_posting_held_by_open_session_is_not_taken_over(
        self, service, session, seeded_repository
    ):
        coles = _posting_id(seeded_repository, "tx-coles")
        seeded_repository.reconcile_posting(coles, "another-session")

        with pytest.raises(ConflictError):
            service.reconcile_postings(session.id, [coles])

        assert seeded_repository.get_posting(coles).reconciliation_id == "another-session"

    def test_reconcile_is_idempotent_within_session(self, service, session, seeded_repository):
        pid = _posting_id(seeded_repository, "tx-coles")
        service.reconcile_postings(session.id, [pid])

        assert service.reconcile_postings(session.id, [pid]) == 1
        assert seeded_repository.get_posting(pid).reconciliation_id == session.id

    def test_unreconcile_only_touches_this_session(self, service, session, seeded_repository):
        mine = _posting_id(seeded_repository, "tx-woolworths")
        other = _posting_id(seeded_repository, "tx-coles")
        service.reconcile_postings(session.id, [mine])
        seeded_repository.reconcile_posting(other, "another-session")

        released = service.unreconcile_postings(session.id, [mine, other])

        assert released == 1
        assert seeded_repository.get_posting(mine).reconciliation_id is None
        assert seeded_repository.get_posting(mine).cleared is False
        assert seeded_repository.get_posting(other).reconciliation_id == "another-session"

    def test_reconcile_matches(self, service, session, seeded_repository, config):
        lines = [
            make_statement_line(date(2025, 1, 10), "Employer Pty Ltd", credit="2500.00"),
            make_statement_line(date(2025, 1, 15), "Woolworths", debit="125.50"),
            make_statement_line(date(2025, 1, 21), "COLES 0123", debit="80.25"),
        ]
        result = ReconciliationMatchingEngine(seeded_repository, config).match_transactions(
            CHECKING, lines
        )

        assert service.reconcile_matches(session.id, result) == 2
        assert service.status(session.id).reconciled_count == 2

        count = service.reconcile_matches(
            session.id, result, tiers=(MatchType.EXACT, MatchType.PROBABLE)
        )
        assert count == 1
        assert service.status(session.id).is_balanced


class TestStatus:
    """Tests for balance certification figures."""

    def test_nothing_cleared(self, service, session):
        balance = service.status(session.id)

        assert balance.statement_balance == JAN_CLOSING
        assert balance.cleared_balance == Decimal("1000.00")
        assert balance.unreconciled_balance == JAN_CLOSING
        assert balance.difference == Decimal("-2294.25")
        assert balance.is_balanced is False
        assert balance.reconciled_count == 0
        assert balance.unreconciled_count == 3

    def test_everything_reconciled(self, service, session, seeded_repository):
        ids = [_posting_id(seeded_repository, t) for t in ("tx-salary", "tx-woolworths", "tx-coles")]
        service.reconcile_postings(session.id, ids)

        balance = service.status(session.id)

        assert balance.cleared_balance == JAN_CLOSING
        assert balance.unreconciled_balance == Decimal("1000.00")
        assert balance.difference == Decimal("0")
        assert balance.is_balanced is True
        assert balance.reconciled_count == 3
        assert balance.unreconciled_count == 0

    def test_cleared_but_unreconciled_counts_towards_cleared(
        self, service, session, seeded_repository
    ):
        seeded_repository.mark_cleared(_posting_id(seeded_repository, "tx-salary"))

        balance = service.status(session.id)

        assert balance.cleared_balance == Decimal("3500.00")
        assert balance.unreconciled_count == 3

    def test_ignores_postings_after_end_date_and_void(self, service, seeded_repository):
        seeded_repository.add_transaction(
            make_transaction(date(2025, 1, 16), "Refunded", "-40.00", tx_id="tx-void")
        )
        seeded_repository.void_transaction("tx-void")
        reconciliation = service.start(
            CHECKING, JAN_START, date(2025, 1, 17), Decimal("1000.00"), Decimal("3374.50")
        )

        balance = service.status(reconciliation.id)

        assert balance.unreconciled_balance == Decimal("3374.50")
        assert balance.unreconciled_count == 2


class TestLock:
    """Tests for certifying a session."""

    def test_lock_unbalanced(self, service, session, seeded_repository):
        service.reconcile_postings(session.id, [_posting_id(seeded_repository, "tx-woolworths")])

        with pytest.raises(ConflictError, match="difference of -2419.75"):
            service.lock(session.id)
        assert service.get(session.id).status == ReconciliationStatus.IN_PROGRESS

    def test_lock_freezes_session_and_postings(self, service, session, seeded_repository):
        ids = [_posting_id(seeded_repository, t) for t in ("tx-salary", "tx-woolworths", "tx-coles")]
        service.reconcile_postings(session.id, ids)

        locked = service.lock(session.id)

        assert locked.status == ReconciliationStatus.LOCKED
        with pytest.raises(ConflictError, match="locked reconciliation"):
            service.reconcile_postings(session.id, ids)
        with pytest.raises(ConflictError, match="locked reconciliation"):
            service.unreconcile_postings(session.id, ids)
        with pytest.raises(ConflictError):
            service.lock(session.id)
        with pytest.raises(ConflictError):
            service.update(session.id, notes="too late")
        with pytest.raises(ConflictError):
            service.delete(session.id)
        with pytest.raises(ConflictError):
            seeded_repository.update_transaction(seeded_repository.get_transaction("tx-coles"))

    def test_new_session_allowed_after_lock(self, service, session, seeded_repository):
        ids = [_posting_id(seeded_repository, t) for t in ("tx-salary", "tx-woolworths", "tx-coles")]
        service.reconcile_postings(session.id, ids)
        service.lock(session.id)

        february = service.start(
            CHECKING, date(2025, 2, 1), date(2025, 2, 28), JAN_CLOSING, JAN_CLOSING
        )

        assert february.status == ReconciliationStatus.IN_PROGRESS


class TestConcurrentLock:
    """Tests for locking while postings are being changed."""

    def _race(self, service, session_id, mutate):
        barrier = threading.Barrier(2)

        def run_mutation():
            barrier.wait()
            try:
                mutate()
            except ConflictError:
                pass

        def run_lock():
            barrier.wait()
            try:
                service.lock(session_id)
            except ConflictError:
                pass

        threads = [threading.Thread(target=run_mutation), threading.Thread(target=run_lock)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    @pytest.mark.parametrize("attempt", range(10))
    def test_lock_racing_unreconcile(self, service, session, seeded_repository, attempt):
        ids = [_posting_id(seeded_repository, t) for t in ("tx-salary", "tx-woolworths", "tx-coles")]
        service.reconcile_postings(session.id, ids)
        salary = ids[0]

        self._race(
            service, session.id, lambda: service.unreconcile_postings(session.id, [salary])
        )

        reconciliation = service.get(session.id)
        if reconciliation.status == ReconciliationStatus.LOCKED:
            assert service.status(session.id).is_balanced
            assert seeded_repository.get_posting(salary).reconciliation_id == session.id
        else:
            assert reconciliation.status == ReconciliationStatus.IN_PROGRESS
            assert not service.status(session.id).is_balanced

    @pytest.mark.parametrize("attempt", range(10))
    def test_lock_racing_reconcile(self, service, session, seeded_repository, attempt):
        salary = _posting_id(seeded_repository, "tx-salary")
        woolworths = _posting_id(seeded_repository, "tx-woolworths")
        coles = _posting_id(seeded_repository, "tx-coles")
        service.reconcile_postings(session.id, [salary, woolworths])

        self._race(service, session.id, lambda: service.reconcile_postings(session.id, [coles]))

        reconciliation = service.get(session.id)
        if reconciliation.status == ReconciliationStatus.LOCKED:
            assert service.status(session.id).is_balanced
        else:
            assert reconciliation.status == ReconciliationStatus.IN_PROGRESS
            # The lock lost the race, so the posting landed afterwards
            assert seeded_repository.get_posting(coles).reconciliation_id == session.id

    def test_lock_under_sustained_churn_never_certifies_unbalanced(
        self, service, session, seeded_repository
    ):
        ids = [_posting_id(seeded_repository, t) for t in ("tx-salary", "tx-woolworths", "tx-coles")]
        service.reconcile_postings(session.id, ids)
        coles = ids[2]
        stop = threading.Event()

        def churn():
            try:
                while not stop.is_set():
                    service.unreconcile_postings(session.id, [coles])
                    service.reconcile_postings(session.id, [coles])
            except ConflictError:
                pass

        worker = threading.Thread(target=churn)
        worker.start()
        locked = False
        try:
            for _ in range(200):
                try:
                    service.lock(session.id)
                    locked = True
                    break
                except ConflictError:
                    continue
        finally:
            stop.set()
            worker.join()

        if locked:
            assert service.get(session.id).status == ReconciliationStatus.LOCKED
            assert service.status(session.id).is_balanced
        else:
            assert service.get(session.id).status == ReconciliationStatus.IN_PROGRESS


class TestUpdateAndDelete:
    """Tests for editing and discarding sessions."""

    def test_update(self, service, session):
        updated = service.update(
            session.id, statement_end_balance=Decimal("3000.00"), notes="corrected"
        )

        assert updated.statement_end_balance == Decimal("3000.00")
        assert updated.statement_end_date == JAN_END
        assert updated.notes == "corrected"

    def test_update_rejects_inverted_dates(self, service, session):
        with pytest.raises(ValidationError):
            service.update(session.id, statement_start_date=date(2025, 2, 15))

    def test_delete_releases_postings(self, service, session, seeded_repository):
        pid = _posting_id(seeded_repository, "tx-coles")
        service.reconcile_postings(session.id, [pid])

        service.delete(session.id)

        assert seeded_repository.get_posting(pid).reconciliation_id is None
        assert seeded_repository.get_posting(pid).cleared is False
        with pytest.raises(NotFoundError):
            service.get(session.id)


class TestAccountHelpers:
    """Tests for auto-reconcile suggestions and account summaries."""

    def test_auto_reconcile_suggests_cleared_postings(self, service, seeded_repository):
        salary = _posting_id(seeded_repository, "tx-salary")
        woolworths = _posting_id(seeded_repository, "tx-woolworths")
        seeded_repository.mark_cleared(salary)
        seeded_repository.mark_cleared(woolworths)
        seeded_repository.reconcile_posting(_posting_id(seeded_repository, "tx-coles"), "old")

        result = service.auto_reconcile(CHECKING, JAN_END, JAN_CLOSING)

        assert result.posting_ids == [salary, woolworths]
        assert result.difference == Decimal("0")

    def test_auto_reconcile_respects_end_date(self, service, seeded_repository):
        for tx_id in ("tx-salary", "tx-woolworths", "tx-coles"):
            seeded_repository.mark_cleared(_posting_id(seeded_repository, tx_id))

        result = service.auto_reconcile(CHECKING, date(2025, 1, 12), Decimal("3500.00"))

        assert result.posting_ids == [_posting_id(seeded_repository, "tx-salary")]
        assert result.difference == Decimal("0")

    def test_account_summary_before_and_after_lock(self, service, session, seeded_repository):
        before = service.account_summary(CHECKING)
        assert before.last_reconciled is None
        assert before.unreconciled_count == 3
        assert before.unreconciled_amount == Decimal("2294.25")

        ids = [_posting_id(seeded_repository, t) for t in ("tx-salary", "tx-woolworths", "tx-coles")]
        service.reconcile_postings(session.id, ids)
        service.lock(session.id)

        after = service.account_summary(CHECKING)
        assert after.last_reconciled == JAN_END
        assert after.unreconciled_count == 0
        assert after.unreconciled_amount == Decimal("0")

    def test_account_summary_unknown_account(self, service):
        with pytest.raises(NotFoundError):
            service.account_summary("missing")
