from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.core.clock import Clock
from app.deps import get_clock, get_current_account
from app.models.account import Account
from app.services import tasks as tasks_service

router = APIRouter()


class CompleteTaskRequest(BaseModel):
    task_type: str
    data: dict[str, Any] | None = None  # spin only: {"score": int}


@router.post("/complete")
async def complete_task(
    body: CompleteTaskRequest,
    account: Account = Depends(get_current_account),
    clock: Clock = Depends(get_clock),
):
    """Complete a daily task (checkin, math, video, spin) and credit its reward."""
    outcome = await tasks_service.complete_task(account.id, body.task_type, body.data, clock)
    return {"success": True, "balance": outcome.balance, "earned": outcome.earned}
