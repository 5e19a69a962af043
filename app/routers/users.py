from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.core.clock import Clock
from app.core.pagination import slice_page
from app.deps import get_clock, get_current_account
from app.models.account import Account
from app.services import ledger, tasks as tasks_service
from app.services.users import profile_payload, transaction_payload

router = APIRouter()


class RefillRequest(BaseModel):
    task_type: str


@router.get("/profile")
async def user_profile(account: Account = Depends(get_current_account), clock: Clock = Depends(get_clock)):
    """Current account state without credential; transactions newest first."""
    return profile_payload(account, clock)


@router.get("/transactions")
async def user_transactions(
    account: Account = Depends(get_current_account),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Page through the transaction log (newest first)."""
    page = slice_page(ledger.newest_first(account), limit, offset)
    return {
        "items": [transaction_payload(t) for t in page.items],
        "limit": page.limit,
        "offset": page.offset,
        "total": page.total,
    }


@router.post("/refill")
async def user_refill(body: RefillRequest, account: Account = Depends(get_current_account)):
    """Add daily slots for a task after a rewarded ad view."""
    new_limit = await tasks_service.refill_limit(account.id, body.task_type)
    return {"success": True, f"{body.task_type}_limit": new_limit}
