"""Task gate: validates a reward-granting task, computes its reward and commits it."""

from dataclasses import dataclass
from typing import Any

from beanie import PydanticObjectId

from app.core.clock import Clock
from app.core.config import get_settings
from app.core.exceptions import BadRequestError, ConflictError, DailyLimitError, NotFoundError
from app.core.logging import get_logger
from app.services import accounts as accounts_service
from app.services import ledger, quota
from app.services.accounts import AccountUpdate
from app.services.referrals import resolve_referral_bonus

log = get_logger(__name__)

REWARDS = {
    "checkin": 50,
    "math": 20,
    "video": 30,
}
DESCRIPTIONS = {
    "checkin": "Daily Check-in",
    "math": "Quiz Reward",
    "video": "Video Ad Reward",
    "spin": "Lucky Spin Win",
}
VALID_SPIN_VALUES = frozenset({0, 5, 10, 15, 20, 25, 30, 40})
SPIN_CEILING = 50
TASK_TYPES = ("checkin", "math", "video", "spin", "refer")
REFILL_INCREMENT = 2


@dataclass
class TaskOutcome:
    task_type: str
    earned: int
    balance: int


def spin_score(data: dict[str, Any] | None) -> int:
    """Validate the wheel result sent by the client. The ceiling is checked before the value set."""
    score = (data or {}).get("score") or 0
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise BadRequestError("Invalid spin value", code="INVALID_SPIN_VALUE")
    if score > SPIN_CEILING:
        raise BadRequestError("Security Alert: Points exceed limit.", code="SPIN_CEILING_EXCEEDED")
    # JSON clients may send 10.0 for 10
    if score not in VALID_SPIN_VALUES:
        raise BadRequestError("Invalid spin value", code="INVALID_SPIN_VALUE")
    return int(score)


def _evaluate(update: AccountUpdate, task_type: str, data: dict[str, Any] | None, clock: Clock) -> int:
    """Check the task precondition and stage its counter changes. Returns the reward amount."""
    account = update.account
    if task_type == "checkin":
        if quota.checked_in_today(account, clock):
            raise BadRequestError("Already checked in today", code="ALREADY_CHECKED_IN")
        update.set("last_check_in", clock.now())
        return REWARDS["checkin"]

    if not quota.has_quota(account, task_type):
        raise DailyLimitError(task_type)
    if task_type == "spin":
        amount = spin_score(data)
    else:
        amount = REWARDS[task_type]
    update.set(f"{task_type}_count", getattr(account, f"{task_type}_count") + 1)
    if task_type == "video":
        update.inc("lifetime_video_count", 1)
    return amount


def _check_task_type(task_type: str) -> None:
    if task_type == "refer":
        raise BadRequestError(
            "Referral rewards are automatic upon friend activity.",
            code="REFERRAL_NOT_CLAIMABLE",
        )
    if task_type not in TASK_TYPES:
        raise BadRequestError("Invalid task type", code="INVALID_TASK_TYPE")


async def complete_task(
    account_id: PydanticObjectId,
    task_type: str,
    data: dict[str, Any] | None,
    clock: Clock,
) -> TaskOutcome:
    """
    Complete one task for the account.

    Quota reset, counter change, credit and log line go out as one conditional
    write keyed on the account revision. If another request wrote the account in
    between, the task is re-evaluated against fresh state.
    """
    _check_task_type(task_type)
    attempts = get_settings().task_commit_attempts
    for attempt in range(attempts):
        account = await accounts_service.get_account(account_id)
        update = AccountUpdate(account)
        quota.reset_if_stale(update, clock.today())
        amount = _evaluate(update, task_type, data, clock)
        ledger.apply_credit(update, amount, DESCRIPTIONS[task_type], clock.now())
        stored = await accounts_service.commit(update)
        if stored is None:
            log.info("task_commit_conflict", task_type=task_type, attempt=attempt + 1)
            continue
        log.info("task_completed", task_type=task_type, earned=amount, balance=stored.balance)
        if task_type == "video":
            await resolve_referral_bonus(stored, clock.now())
        return TaskOutcome(task_type=task_type, earned=amount, balance=stored.balance)
    raise ConflictError("Account is busy, please retry", details={"task_type": task_type})


async def refill_limit(account_id: PydanticObjectId, task_type: str) -> int:
    """Raise a daily limit after a rewarded ad view. Returns the new limit."""
    if task_type not in quota.QUOTA_TASKS:
        raise BadRequestError("Invalid task type", code="INVALID_TASK_TYPE")
    field = f"{task_type}_limit"
    stored = await accounts_service.update_where({"_id": account_id}, {"$inc": {field: REFILL_INCREMENT}})
    if stored is None:
        raise NotFoundError("Account not found")
    log.info("limit_refilled", task_type=task_type, limit=getattr(stored, field))
    return getattr(stored, field)
