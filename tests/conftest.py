"""Shared fixtures: configuration and a seeded in-memory ledger."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_recon.config import ReconConfig
from ledger_recon.models.ledger import Account, AccountKind, AccountType
from ledger_recon.repository import InMemoryLedgerRepository

from .helpers import (
    CHECKING,
    GROCERIES,
    GST_COLLECTED,
    GST_PAID,
    SALARY,
    SAVINGS,
    make_transaction,
)


@pytest.fixture
def config() -> ReconConfig:
    return ReconConfig()


@pytest.fixture
def accounts() -> list[Account]:
    return [
        Account(
            id=CHECKING,
            name="Everyday Checking",
            type=AccountType.ASSET,
            opening_balance=Decimal("1000.00"),
        ),
        Account(id=SAVINGS, name="Savings", type=AccountType.ASSET),
        Account(
            id=GROCERIES,
            name="Groceries",
            type=AccountType.EXPENSE,
            kind=AccountKind.CATEGORY,
        ),
        Account(id=SALARY, name="Salary", type=AccountType.INCOME, kind=AccountKind.CATEGORY),
        Account(id=GST_PAID, name="GST Paid", type=AccountType.ASSET),
        Account(id=GST_COLLECTED, name="GST Collected", type=AccountType.LIABILITY),
    ]


@pytest.fixture
def repository(accounts) -> InMemoryLedgerRepository:
    """Repository with the standard accounts and no transactions."""
    return InMemoryLedgerRepository(accounts=accounts)


@pytest.fixture
def seeded_repository(repository) -> InMemoryLedgerRepository:
    """Repository with a month of checking account activity."""
    repository.add_transaction(
        make_transaction(
            date(2025, 1, 10), "Employer Pty Ltd", "2500.00",
            counter_account_id=SALARY, tx_id="tx-salary",
        )
    )
    repository.add_transaction(
        make_transaction(date(2025, 1, 15), "Woolworths", "-125.50", tx_id="tx-woolworths")
    )
    repository.add_transaction(
        make_transaction(date(2025, 1, 20), "Coles", "-80.25", tx_id="tx-coles")
    )
    return repository
