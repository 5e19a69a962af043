"""Reward ledger: append-only transaction log and the balance fields that track it."""

from datetime import datetime
from typing import Iterable

from app.models.account import Account, Transaction
from app.services.accounts import AccountUpdate

WELCOME_BONUS = 500
WELCOME_DESCRIPTION = "Welcome Bonus"


def credit_entry(
    amount: int,
    description: str,
    now: datetime,
    reference_id: str | None = None,
) -> Transaction:
    return Transaction(
        kind="credit",
        amount=amount,
        description=description,
        status="completed",
        created_at=now,
        reference_id=reference_id,
    )


def debit_entry(amount: int, method: str, account_number: str, now: datetime) -> Transaction:
    """Withdrawal debit; stays pending until the payout is settled outside this service."""
    return Transaction(
        kind="debit",
        amount=amount,
        description=f"Withdraw to {method} ({account_number})",
        status="pending",
        created_at=now,
        payment_method=method,
        account_number=account_number,
    )


def apply_credit(update: AccountUpdate, amount: int, description: str, now: datetime) -> Transaction | None:
    """
    Add a credit to the pending update: log line, balance and lifetime earnings move together.
    Zero amounts (losing spin) change nothing and log nothing.
    """
    if amount <= 0:
        return None
    txn = credit_entry(amount, description, now)
    update.append(txn)
    update.inc("balance", amount)
    update.inc("total_earned", amount)
    return txn


def credit_ops(txn: Transaction) -> dict:
    """Update operators that credit `txn` onto an account in one write."""
    return {
        "$inc": {"balance": txn.amount, "total_earned": txn.amount},
        "$push": {"transactions": txn.model_dump()},
    }


def debit_ops(txn: Transaction) -> dict:
    return {
        "$inc": {"balance": -txn.amount},
        "$push": {"transactions": txn.model_dump()},
    }


def balance_from_log(transactions: Iterable[Transaction]) -> int:
    """Completed and pending credits minus debits; the figure `balance` must always equal."""
    total = 0
    for t in transactions:
        if t.status == "failed":
            continue
        total += t.amount if t.kind == "credit" else -t.amount
    return total


def newest_first(account: Account) -> list[Transaction]:
    return list(reversed(account.transactions))
