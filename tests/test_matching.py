"""Tests for match scoring and the matching engine."""

from datetime import date
from decimal import Decimal

from ledger_recon.config import ScoringConfig, TierThresholds
from ledger_recon.matching import (
    ReconciliationMatchingEngine,
    calculate_balance,
    calculate_match_score,
    description_similarity,
    get_match_type,
    normalize_description,
)
from ledger_recon.models.ledger import Posting, Transaction
from ledger_recon.models.reconciliation import MatchType

from .helpers import CHECKING, GROCERIES, SAVINGS, make_statement_line, make_transaction

WOOLWORTHS_LINE = make_statement_line(
    date(2025, 1, 15), "Woolworths", debit="125.50", balance="874.50"
)


class TestDescriptionSimilarity:
    """Tests for payee comparison."""

    def test_normalize(self):
        assert normalize_description("  WOOLWORTHS   1234,  Sydney!! ") == "woolworths 1234 sydney"

    def test_identical_after_normalizing(self):
        assert description_similarity("WOOLWORTHS", "woolworths!") == 1.0

    def test_symmetric(self):
        a, b = "Payment Received, Thank You", "Payment - thanks"
        assert description_similarity(a, b) == description_similarity(b, a)

    def test_unrelated(self):
        assert description_similarity("Netflix", "Bunnings Warehouse") < 0.5


class TestMatchScore:
    """Tests for the additive score."""

    def test_perfect_match(self):
        tx = make_transaction(date(2025, 1, 15), "Woolworths", "-125.50")

        score = calculate_match_score(WOOLWORTHS_LINE, tx, CHECKING)

        assert score.total == 90
        assert score.reasons == [
            "Exact date match",
            "Exact amount match",
            "Description similarity: 100%",
        ]

    def test_date_tiers(self):
        for days, points in ((1, 25), (3, 15), (4, 0)):
            tx = make_transaction(date(2025, 1, 15 + days), "Unrelated Payee", "-999.00")
            assert calculate_match_score(WOOLWORTHS_LINE, tx, CHECKING).total == points

    def test_close_amount(self):
        tx = make_transaction(date(2025, 1, 30), "Unrelated Payee", "-125.00")

        score = calculate_match_score(WOOLWORTHS_LINE, tx, CHECKING)

        assert score.total == 15
        assert score.reasons == ["Amount within $0.50"]

    def test_partial_description(self):
        tx = make_transaction(date(2025, 1, 30), "Woolworths Metro", "-999.00")
        assert calculate_match_score(WOOLWORTHS_LINE, tx, CHECKING).total == 10

    def test_uses_account_scoped_amount(self):
        # Same transaction seen from the category side has the opposite sign
        tx = make_transaction(date(2025, 1, 15), "Woolworths", "-125.50")

        assert calculate_match_score(WOOLWORTHS_LINE, tx, CHECKING).total == 90
        assert calculate_match_score(WOOLWORTHS_LINE, tx, GROCERIES).total == 60

    def test_custom_weights(self):
        tx = make_transaction(date(2025, 1, 15), "Woolworths", "-125.50")
        scoring = ScoringConfig(date_exact_points=10)

        assert calculate_match_score(WOOLWORTHS_LINE, tx, CHECKING, scoring).total == 60


class TestMatchType:
    """Tests for score tiers."""

    def test_boundaries(self):
        assert get_match_type(80) == MatchType.EXACT
        assert get_match_type(79) == MatchType.PROBABLE
        assert get_match_type(60) == MatchType.PROBABLE
        assert get_match_type(59) == MatchType.POSSIBLE
        assert get_match_type(40) == MatchType.POSSIBLE
        assert get_match_type(39) == MatchType.NONE

    def test_custom_thresholds(self):
        assert get_match_type(70, TierThresholds(exact=70)) == MatchType.EXACT


class TestCalculateBalance:
    """Tests for summing account postings."""

    def test_sums_account_postings_only(self):
        txs = [
            make_transaction(date(2025, 1, 1), "A", "100.00"),
            make_transaction(date(2025, 1, 2), "B", "-30.00"),
            make_transaction(date(2025, 1, 3), "C", "-5.00", account_id=SAVINGS),
        ]
        assert calculate_balance(CHECKING, txs) == Decimal("70.00")

    def test_split_postings_on_same_account(self):
        tx = Transaction(
            date=date(2025, 1, 1),
            payee="Split",
            postings=[
                Posting(account_id=CHECKING, amount=Decimal("-10.00")),
                Posting(account_id=CHECKING, amount=Decimal("-5.00")),
                Posting(account_id=GROCERIES, amount=Decimal("15.00")),
            ],
        )
        assert calculate_balance(CHECKING, [tx]) == Decimal("-15.00")


class TestFindBestMatch:
    """Tests for picking the best candidate for one statement line."""

    def test_earliest_date_breaks_ties(self, repository, config):
        engine = ReconciliationMatchingEngine(repository, config)
        later = make_transaction(date(2025, 1, 16), "Woolworths", "-125.50", tx_id="later")
        earlier = make_transaction(date(2025, 1, 14), "Woolworths", "-125.50", tx_id="earlier")

        match = engine.find_best_match(WOOLWORTHS_LINE, [later, earlier], set(), CHECKING)

        assert match.ledger_transaction is earlier
        assert match.score == 75
        assert match.match_type == MatchType.PROBABLE

    def test_input_order_breaks_remaining_ties(self, repository, config):
        engine = ReconciliationMatchingEngine(repository, config)
        first = make_transaction(date(2025, 1, 15), "Woolworths", "-125.50", tx_id="first")
        second = make_transaction(date(2025, 1, 15), "Woolworths", "-125.50", tx_id="second")

        match = engine.find_best_match(WOOLWORTHS_LINE, [first, second], set(), CHECKING)

        assert match.ledger_transaction is first

    def test_excluded_candidates_skipped(self, repository, config):
        engine = ReconciliationMatchingEngine(repository, config)
        first = make_transaction(date(2025, 1, 15), "Woolworths", "-125.50", tx_id="first")
        second = make_transaction(date(2025, 1, 15), "Woolworths", "-125.50", tx_id="second")

        match = engine.find_best_match(WOOLWORTHS_LINE, [first, second], {"first"}, CHECKING)

        assert match.ledger_transaction is second

    def test_none_winner_keeps_score(self, repository, config):
        engine = ReconciliationMatchingEngine(repository, config)
        tx = make_transaction(date(2025, 1, 16), "Bunnings Warehouse", "-999.00")

        match = engine.find_best_match(WOOLWORTHS_LINE, [tx], set(), CHECKING)

        assert match.ledger_transaction is None
        assert match.match_type == MatchType.NONE
        assert match.score == 25
        assert match.reasons == ["Date within 1 day"]

    def test_no_candidates(self, repository, config):
        engine = ReconciliationMatchingEngine(repository, config)

        match = engine.find_best_match(WOOLWORTHS_LINE, [], set(), CHECKING)

        assert match.ledger_transaction is None
        assert match.score == 0


class TestMatchTransactions:
    """Tests for matching a whole statement against the ledger."""

    def test_exact_match_leaves_nothing_unmatched(self, repository, config):
        repository.add_transaction(
            make_transaction(date(2025, 1, 15), "Woolworths", "-125.50", tx_id="w")
        )
        engine = ReconciliationMatchingEngine(repository, config)

        result = engine.match_transactions(CHECKING, [WOOLWORTHS_LINE])

        assert len(result.exact_matches) == 1
        assert result.exact_matches[0].ledger_transaction.id == "w"
        assert result.unmatched_statement == []
        assert result.unmatched_ledger == []
        assert result.summary.total_matched == 1
        assert result.summary.statement_balance == Decimal("874.50")
        assert result.summary.ledger_balance == Decimal("-125.50")
        assert result.summary.difference == Decimal("-1000.00")

    def test_ledger_id_never_assigned_twice(self, seeded_repository, config):
        engine = ReconciliationMatchingEngine(seeded_repository, config)
        duplicate = make_statement_line(date(2025, 1, 15), "Woolworths", debit="125.50")

        result = engine.match_transactions(CHECKING, [WOOLWORTHS_LINE, duplicate])

        assigned = [m.ledger_transaction.id for m in result.all_matches]
        assert assigned == ["tx-woolworths"]
        assert len(assigned) == len(set(assigned))
        assert result.unmatched_statement == [duplicate]

    def test_partition(self, seeded_repository, config):
        engine = ReconciliationMatchingEngine(seeded_repository, config)
        lines = [
            make_statement_line(date(2025, 1, 10), "Employer Pty Ltd", credit="2500.00"),
            WOOLWORTHS_LINE,
            make_statement_line(date(2025, 1, 21), "COLES 0123", debit="80.25"),
            make_statement_line(date(2025, 1, 25), "Netflix", debit="18.99"),
        ]

        result = engine.match_transactions(CHECKING, lines)

        assert [m.ledger_transaction.id for m in result.exact_matches] == [
            "tx-salary",
            "tx-woolworths",
        ]
        assert [m.ledger_transaction.id for m in result.probable_matches] == ["tx-coles"]
        assert result.unmatched_statement == [lines[3]]
        assert result.unmatched_ledger == []
        assert result.summary.total_statement == 4
        assert result.summary.total_matched == 3
        assert result.summary.total_unmatched == 1

    def test_possible_matches_are_claimed(self, repository, config):
        repository.add_transaction(
            make_transaction(date(2025, 1, 15), "Bunnings Warehouse", "-50.00", tx_id="b")
        )
        engine = ReconciliationMatchingEngine(repository, config)
        first = make_statement_line(date(2025, 1, 15), "Netflix", debit="18.99")
        second = make_statement_line(date(2025, 1, 15), "Netflix", debit="18.99")

        result = engine.match_transactions(CHECKING, [first, second])

        assert [m.statement_transaction for m in result.possible_matches] == [first]
        assert result.unmatched_statement == [second]
        assert result.summary.total_matched == 1

    def test_deterministic(self, seeded_repository, config):
        engine = ReconciliationMatchingEngine(seeded_repository, config)
        lines = [
            WOOLWORTHS_LINE,
            make_statement_line(date(2025, 1, 15), "Woolworths", debit="125.50"),
            make_statement_line(date(2025, 1, 20), "Coles", debit="80.25"),
        ]

        def partition(result):
            return (
                [m.ledger_transaction.id for m in result.exact_matches],
                [m.ledger_transaction.id for m in result.probable_matches],
                [m.ledger_transaction.id for m in result.possible_matches],
                [id(s) for s in result.unmatched_statement],
                [t.id for t in result.unmatched_ledger],
            )

        first = engine.match_transactions(CHECKING, lines)
        second = engine.match_transactions(CHECKING, lines)

        assert partition(first) == partition(second)

    def test_reconciled_transactions_not_offered(self, seeded_repository, config):
        posting = seeded_repository.get_transaction("tx-woolworths").posting_for(CHECKING)
        seeded_repository.reconcile_posting(posting.id, "rec-old")
        engine = ReconciliationMatchingEngine(seeded_repository, config)

        result = engine.match_transactions(CHECKING, [WOOLWORTHS_LINE])

        assert result.all_matches == []
        assert "tx-woolworths" in [t.id for t in result.unmatched_ledger]

    def test_candidates_fetched_with_padding(self, repository, config):
        repository.add_transaction(
            make_transaction(date(2025, 1, 8), "Inside", "-1.00", tx_id="inside")
        )
        repository.add_transaction(
            make_transaction(date(2025, 1, 7), "Outside", "-1.00", tx_id="outside")
        )
        engine = ReconciliationMatchingEngine(repository, config)

        result = engine.match_transactions(CHECKING, [WOOLWORTHS_LINE])

        assert [t.id for t in result.unmatched_ledger] == ["inside"]

    def test_explicit_range(self, seeded_repository, config):
        engine = ReconciliationMatchingEngine(seeded_repository, config)

        result = engine.match_transactions(
            CHECKING, [], range_start=date(2025, 1, 20), range_end=date(2025, 1, 31)
        )

        assert [t.id for t in result.unmatched_ledger] == ["tx-woolworths", "tx-coles"]
        assert result.summary.statement_balance is None
        assert result.summary.difference is None

    def test_statement_balance_from_last_line_with_balance(self, repository, config):
        engine = ReconciliationMatchingEngine(repository, config)
        lines = [
            make_statement_line(date(2025, 1, 1), "A", debit="1.00", balance="99.00"),
            make_statement_line(date(2025, 1, 2), "B", debit="2.00"),
        ]

        result = engine.match_transactions(CHECKING, lines)

        assert result.summary.statement_balance == Decimal("99.00")
