"""Account store access: loads, and single-document conditional writes."""

from typing import Any

from beanie import PydanticObjectId, UpdateResponse

from app.core.exceptions import NotFoundError
from app.models.account import Account, Transaction


class AccountUpdate:
    """
    Collects the field changes of one request against an account snapshot.

    Changes are mirrored onto the in-memory snapshot so later checks in the same
    request see them. `set` is for counters and dates, `inc` for money and
    monotonic counters; a field must not be used with both in one update.
    """

    def __init__(self, account: Account):
        self.account = account
        self.fields: dict[str, Any] = {}
        self.increments: dict[str, int] = {}
        self.appended: list[Transaction] = []

    def set(self, field: str, value: Any) -> None:
        setattr(self.account, field, value)
        self.fields[field] = value

    def inc(self, field: str, by: int) -> None:
        setattr(self.account, field, getattr(self.account, field) + by)
        self.increments[field] = self.increments.get(field, 0) + by

    def append(self, txn: Transaction) -> None:
        self.account.transactions.append(txn)
        self.appended.append(txn)

    def to_mongo(self) -> dict[str, Any]:
        ops: dict[str, Any] = {"$inc": {**self.increments, "revision": 1}}
        if self.fields:
            ops["$set"] = dict(self.fields)
        if self.appended:
            ops["$push"] = {"transactions": {"$each": [t.model_dump() for t in self.appended]}}
        return ops


async def get_account(account_id: PydanticObjectId) -> Account:
    account = await Account.get(account_id)
    if not account:
        raise NotFoundError("Account not found")
    return account


async def find_by_referral_code(code: str) -> Account | None:
    return await Account.find_one(Account.referral_code == code)


async def commit(update: AccountUpdate) -> Account | None:
    """
    Write the update only if nobody else wrote the account since it was read.
    Returns the stored account after the write, or None on a revision mismatch.
    """
    account = update.account
    return await Account.find_one(
        Account.id == account.id,
        Account.revision == account.revision,
    ).update(update.to_mongo(), response_type=UpdateResponse.NEW_DOCUMENT)


async def update_where(filters: dict[str, Any], ops: dict[str, Any]) -> Account | None:
    """Atomic find-and-update on one account; None if no document matched `filters`."""
    ops = {**ops, "$inc": {**ops.get("$inc", {}), "revision": 1}}
    return await Account.find_one(filters).update(ops, response_type=UpdateResponse.NEW_DOCUMENT)
