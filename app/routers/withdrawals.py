from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.core.clock import Clock
from app.deps import get_clock, get_current_account
from app.models.account import Account
from app.services import withdrawals as withdrawals_service

router = APIRouter()


class WithdrawRequest(BaseModel):
    amount: int
    method: str = Field(min_length=1, max_length=50)
    account: str = Field(min_length=1, max_length=100)  # destination account number


@router.post("")
async def withdraw(
    body: WithdrawRequest,
    account: Account = Depends(get_current_account),
    clock: Clock = Depends(get_clock),
):
    """Request a payout; the debit is logged as pending until settled."""
    balance = await withdrawals_service.request_withdrawal(account.id, body.amount, body.method, body.account, clock)
    return {"success": True, "balance": balance}
