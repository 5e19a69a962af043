"""Daily task quotas: calendar-day reset of the per-task counters and the check-in gate."""

from datetime import date

from app.core.clock import Clock
from app.models.account import Account
from app.services.accounts import AccountUpdate

QUOTA_TASKS = ("spin", "math", "video")


def is_stale(account: Account, today: date) -> bool:
    return account.task_date != today.isoformat()


def reset_if_stale(update: AccountUpdate, today: date) -> bool:
    """Zero the daily counters when the stored task day is not today. Returns True if it reset."""
    if not is_stale(update.account, today):
        return False
    for task in QUOTA_TASKS:
        update.set(f"{task}_count", 0)
    update.set("task_date", today.isoformat())
    return True


def has_quota(account: Account, task: str) -> bool:
    return getattr(account, f"{task}_count") < getattr(account, f"{task}_limit")


def checked_in_today(account: Account, clock: Clock) -> bool:
    if account.last_check_in is None:
        return False
    return clock.day_of(account.last_check_in) == clock.today()


def effective_counts(account: Account, today: date) -> dict[str, int]:
    """Counters as the next task call would see them, without writing a reset."""
    stale = is_stale(account, today)
    out = {}
    for task in QUOTA_TASKS:
        out[f"{task}_count"] = 0 if stale else getattr(account, f"{task}_count")
        out[f"{task}_limit"] = getattr(account, f"{task}_limit")
    return out
