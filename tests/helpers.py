"""Builders and identifiers shared by the test modules."""

from datetime import date
from decimal import Decimal
from typing import Optional

from ledger_recon.models.ledger import Posting, Transaction
from ledger_recon.models.statement import StatementTransaction

CHECKING = "checking"
SAVINGS = "savings"
GROCERIES = "groceries"
SALARY = "salary"
GST_PAID = "gst-paid"
GST_COLLECTED = "gst-collected"


def make_transaction(
    tx_date: date,
    payee: str,
    amount: str,
    account_id: str = CHECKING,
    counter_account_id: str = GROCERIES,
    tx_id: Optional[str] = None,
) -> Transaction:
    """Two-posting transaction moving `amount` through `account_id`."""
    kwargs = {"id": tx_id} if tx_id else {}
    return Transaction(
        date=tx_date,
        payee=payee,
        postings=[
            Posting(account_id=account_id, amount=Decimal(amount)),
            Posting(account_id=counter_account_id, amount=-Decimal(amount)),
        ],
        **kwargs,
    )


def make_statement_line(
    line_date: date,
    description: str,
    debit: Optional[str] = None,
    credit: Optional[str] = None,
    balance: Optional[str] = None,
) -> StatementTransaction:
    return StatementTransaction(
        date=line_date,
        description=description,
        debit=Decimal(debit) if debit else None,
        credit=Decimal(credit) if credit else None,
        balance=Decimal(balance) if balance else None,
    )
