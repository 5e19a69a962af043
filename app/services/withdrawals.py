"""Withdrawal guard: the only path that lowers a balance."""

from beanie import PydanticObjectId

from app.core.audit import log_event
from app.core.clock import Clock
from app.core.exceptions import BadRequestError, InsufficientFundsError, NotFoundError
from app.core.logging import get_logger
from app.models.account import Account
from app.services import accounts as accounts_service
from app.services import ledger

log = get_logger(__name__)

MIN_WITHDRAWAL = 5000


async def request_withdrawal(
    account_id: PydanticObjectId,
    amount: int,
    method: str,
    account_number: str,
    clock: Clock,
) -> int:
    """
    Debit `amount` and log a pending withdrawal in one conditional update.

    The store only applies the decrement while balance >= amount, so of several
    concurrent requests only those the balance can cover succeed. Returns the
    new balance.
    """
    if amount <= 0:
        raise BadRequestError("Invalid amount", code="INVALID_AMOUNT")
    if amount < MIN_WITHDRAWAL:
        raise BadRequestError(
            f"Minimum withdraw is {MIN_WITHDRAWAL}",
            code="BELOW_MINIMUM_WITHDRAWAL",
            details={"minimum": MIN_WITHDRAWAL},
        )
    txn = ledger.debit_entry(amount, method, account_number, clock.now())
    stored = await accounts_service.update_where(
        {"_id": account_id, "balance": {"$gte": amount}},
        ledger.debit_ops(txn),
    )
    if stored is None:
        if not await Account.get(account_id):
            log.error("withdrawal_account_missing", account_id=str(account_id))
            raise NotFoundError("Account not found")
        log.info("withdrawal_rejected", reason="insufficient_funds", amount=amount)
        raise InsufficientFundsError()
    log.info("withdrawal_requested", amount=amount, method=method, balance=stored.balance, transaction_id=txn.id)
    await log_event(
        str(account_id),
        "withdrawal_requested",
        "transaction",
        txn.id,
        {"amount": amount, "method": method, "balance_after": stored.balance},
    )
    return stored.balance
