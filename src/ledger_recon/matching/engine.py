"""
Reconciliation matching engine.

Pairs statement lines with ledger transactions using the additive score
from scoring.py, assigning greedily in statement order so that no ledger
transaction is ever used twice.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional
import logging

from ..config import ReconConfig
from ..models.ledger import Transaction
from ..models.reconciliation import MatchCandidate, MatchResult, MatchSummary, MatchType
from ..models.statement import StatementTransaction
from ..repository import LedgerRepository
from .scoring import calculate_balance, calculate_match_score, get_match_type

logger = logging.getLogger(__name__)


class ReconciliationMatchingEngine:
    """
    Matches bank statement lines against ledger transactions for one account.

    Ledger candidates come from the injected repository; the scoring and
    assignment steps are pure and can be called directly.
    """

    def __init__(self, repository: LedgerRepository, config: Optional[ReconConfig] = None):
        """
        Initialize the matching engine.

        Args:
            repository: Source of ledger transactions
            config: Application configuration (defaults if omitted)
        """
        self.repository = repository
        self.config = config or ReconConfig()
        self.matching_config = self.config.matching

    def find_best_match(
        self,
        stmt: StatementTransaction,
        candidates: list[Transaction],
        excluded_ids: Iterable[str],
        account_id: str,
    ) -> MatchCandidate:
        """
        Pick the highest-scoring candidate that is not excluded.

        Ties go to the earliest ledger date, then to the earliest candidate
        in input order. When the best score falls below the lowest tier, no
        ledger transaction is reported but the score and reasons are kept.

        Args:
            stmt: Statement line to match
            candidates: Ledger transactions in input order
            excluded_ids: Ledger transaction ids that may not be used
            account_id: Account being reconciled

        Returns:
            MatchCandidate for the statement line
        """
        excluded = excluded_ids if isinstance(excluded_ids, (set, frozenset)) else set(excluded_ids)

        best: Optional[tuple[tuple[int, date, int], Transaction, int, list[str]]] = None
        for idx, txn in enumerate(candidates):
            if txn.id in excluded:
                continue
            score = calculate_match_score(stmt, txn, account_id, self.matching_config.scoring)
            key = (-score.total, txn.date, idx)
            if best is None or key < best[0]:
                best = (key, txn, score.total, score.reasons)

        if best is None:
            return MatchCandidate(
                statement_transaction=stmt,
                ledger_transaction=None,
                score=0,
                match_type=MatchType.NONE,
            )

        _, txn, total, reasons = best
        match_type = get_match_type(total, self.matching_config.tiers)
        return MatchCandidate(
            statement_transaction=stmt,
            ledger_transaction=txn if match_type != MatchType.NONE else None,
            score=total,
            match_type=match_type,
            reasons=reasons,
        )

    def match_candidates(
        self,
        account_id: str,
        statement_transactions: list[StatementTransaction],
        ledger_transactions: list[Transaction],
        excluded_ids: Iterable[str] = (),
    ) -> MatchResult:
        """
        Greedily assign ledger transactions to statement lines.

        Statement lines are processed in input order and every assigned
        ledger transaction is claimed, so it is never offered again.

        Args:
            account_id: Account being reconciled
            statement_transactions: Statement lines in statement order
            ledger_transactions: Every fetched ledger transaction
            excluded_ids: Ledger ids never offered (still reported as unmatched)

        Returns:
            MatchResult partition with its summary
        """
        unavailable = set(excluded_ids)
        claimed: set[str] = set()

        tiers: dict[MatchType, list[MatchCandidate]] = {
            MatchType.EXACT: [],
            MatchType.PROBABLE: [],
            MatchType.POSSIBLE: [],
        }
        unmatched_statement: list[StatementTransaction] = []

        for stmt in statement_transactions:
            match = self.find_best_match(stmt, ledger_transactions, unavailable, account_id)
            if match.is_match and match.ledger_transaction is not None:
                ledger_id = match.ledger_transaction.id
                claimed.add(ledger_id)
                unavailable.add(ledger_id)
                tiers[match.match_type].append(match)
            else:
                unmatched_statement.append(stmt)

        unmatched_ledger = [txn for txn in ledger_transactions if txn.id not in claimed]

        for match_type, matches in tiers.items():
            logger.debug(f"Tier {match_type.value}: {len(matches)} matches")

        total_matched = sum(len(matches) for matches in tiers.values())
        statement_balance = next(
            (s.balance for s in reversed(statement_transactions) if s.balance is not None),
            None,
        )
        ledger_balance = calculate_balance(account_id, ledger_transactions)

        summary = MatchSummary(
            total_statement=len(statement_transactions),
            total_matched=total_matched,
            total_unmatched=len(unmatched_statement),
            ledger_balance=ledger_balance,
            statement_balance=statement_balance,
            difference=(
                ledger_balance - statement_balance if statement_balance is not None else None
            ),
        )

        return MatchResult(
            exact_matches=tiers[MatchType.EXACT],
            probable_matches=tiers[MatchType.PROBABLE],
            possible_matches=tiers[MatchType.POSSIBLE],
            unmatched_statement=unmatched_statement,
            unmatched_ledger=unmatched_ledger,
            summary=summary,
        )

    def match_transactions(
        self,
        account_id: str,
        statement_transactions: list[StatementTransaction],
        range_start: Optional[date] = None,
        range_end: Optional[date] = None,
        excluded_ids: Optional[Iterable[str]] = None,
    ) -> MatchResult:
        """
        Match statement lines against the account's ledger transactions.

        Candidates are fetched for the statement range widened by
        matching.date_padding_days on both sides. Transactions whose posting
        on the account is already reconciled are not offered.

        Args:
            account_id: Account being reconciled
            statement_transactions: Statement lines in statement order
            range_start: Start of the statement range (earliest line if omitted)
            range_end: End of the statement range (latest line if omitted)
            excluded_ids: Extra ledger ids to hold back

        Returns:
            MatchResult partition with its summary
        """
        start_time = datetime.now()

        dates = [s.date for s in statement_transactions]
        range_start = range_start or (min(dates) if dates else None)
        range_end = range_end or (max(dates) if dates else None)

        padding = timedelta(days=self.matching_config.date_padding_days)
        fetch_start = range_start - padding if range_start else None
        fetch_end = range_end + padding if range_end else None

        ledger_transactions = self.repository.fetch_transactions(account_id, fetch_start, fetch_end)
        logger.info(
            f"Starting matching for account {account_id}: {len(statement_transactions)} "
            f"statement lines, {len(ledger_transactions)} ledger candidates"
        )

        held_back = set(excluded_ids or ())
        if self.matching_config.exclude_reconciled:
            held_back.update(
                txn.id for txn in ledger_transactions if self._is_reconciled(txn, account_id)
            )

        result = self.match_candidates(
            account_id, statement_transactions, ledger_transactions, held_back
        )

        elapsed = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Matching complete in {elapsed:.2f}s: {result.summary.total_matched} matched, "
            f"{len(result.unmatched_statement)} statement-only, "
            f"{len(result.unmatched_ledger)} ledger-only"
        )

        return result

    def calculate_balance(self, account_id: str, transactions: Iterable[Transaction]) -> Decimal:
        """Sum of the account-scoped posting amounts."""
        return calculate_balance(account_id, transactions)

    @staticmethod
    def _is_reconciled(transaction: Transaction, account_id: str) -> bool:
        return any(
            p.is_reconciled for p in transaction.postings if p.account_id == account_id
        )
