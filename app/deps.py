"""Shared FastAPI dependencies."""

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import Request

from app.core.clock import Clock
from app.core.config import get_settings
from app.core.exceptions import UnauthorizedError
from app.core.logging import bind_account_id
from app.core.security import load_access_token
from app.models.account import Account


def get_clock() -> Clock:
    """Dependency: ledger clock (overridden in tests to move across days)."""
    return Clock(get_settings().ledger_timezone)


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_account(request: Request) -> Account:
    """Dependency: resolve the bearer token to an Account; every failure is a plain 401."""
    token = _bearer_token(request)
    if not token:
        raise UnauthorizedError("Not authenticated")
    payload = load_access_token(token)
    if not payload or not payload.get("account_id"):
        raise UnauthorizedError("Invalid or expired token")
    try:
        account_id = PydanticObjectId(payload["account_id"])
    except (InvalidId, TypeError):
        raise UnauthorizedError("Invalid or expired token")
    account = await Account.get(account_id)
    if not account:
        raise UnauthorizedError("Invalid or expired token")
    bind_account_id(str(account.id))
    return account
