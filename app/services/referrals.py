"""Referral codes, the one-time referrer bonus, and repair of unmarked bonuses."""

import secrets
from datetime import datetime

from app.core.audit import log_event
from app.core.exceptions import ConflictError
from app.core.logging import get_logger
from app.models.account import Account
from app.services import accounts as accounts_service
from app.services import ledger

log = get_logger(__name__)

REFERRAL_BONUS = 500
REFERRAL_VIDEO_THRESHOLD = 10
CODE_PREFIX = "PRO"


def _generate_code() -> str:
    return f"{CODE_PREFIX}{10000 + secrets.randbelow(90000)}"


async def new_referral_code() -> str:
    """Pick a referral code no account holds yet."""
    for _ in range(10):
        code = _generate_code()
        if not await accounts_service.find_by_referral_code(code):
            return code
    raise ConflictError("Could not generate unique referral code")


async def validate_referral_code(code: str | None) -> str | None:
    """Return the code if it belongs to an existing account; unknown codes are dropped silently."""
    code = (code or "").strip().upper()
    if not code:
        return None
    referrer = await accounts_service.find_by_referral_code(code)
    return code if referrer else None


def is_bonus_due(referee: Account) -> bool:
    return (
        referee.referred_by is not None
        and not referee.referral_bonus_paid
        and referee.lifetime_video_count >= REFERRAL_VIDEO_THRESHOLD
    )


async def _mark_bonus_paid(referee_id) -> bool:
    marked = await accounts_service.update_where(
        {"_id": referee_id, "referral_bonus_paid": False},
        {"$set": {"referral_bonus_paid": True}},
    )
    return marked is not None


async def resolve_referral_bonus(referee: Account, now: datetime) -> bool:
    """
    Credit the referrer once the referee has watched enough videos.

    Two single-document writes: the referrer credit first, then the referee flag.
    The credit is filtered on "no bonus for this referee yet", so re-running after
    a crash between the writes only sets the flag. A referral code that no longer
    resolves skips the bonus and leaves the flag false; it is not retried.
    Returns True when the referee ends up marked paid.
    """
    if not is_bonus_due(referee):
        return False
    referee_id = str(referee.id)
    txn = ledger.credit_entry(
        REFERRAL_BONUS,
        f"Referral Bonus: {referee.name} watched {REFERRAL_VIDEO_THRESHOLD} videos",
        now,
        reference_id=referee_id,
    )
    referrer = await accounts_service.update_where(
        {"referral_code": referee.referred_by, "transactions.reference_id": {"$ne": referee_id}},
        ledger.credit_ops(txn),
    )
    if referrer is None:
        existing = await accounts_service.find_by_referral_code(referee.referred_by)
        if existing is None:
            log.warning("referral_referrer_missing", referee_id=referee_id, referral_code=referee.referred_by)
            return False
        log.info("referral_bonus_already_credited", referee_id=referee_id, referrer_id=str(existing.id))
    else:
        log.info("referral_bonus_paid", referee_id=referee_id, referrer_id=str(referrer.id), amount=REFERRAL_BONUS)
        await log_event(
            str(referrer.id),
            "referral_bonus_paid",
            "transaction",
            txn.id,
            {"referee_id": referee_id, "amount": REFERRAL_BONUS},
        )
    await _mark_bonus_paid(referee.id)
    return True


async def reconcile_referral_flags(limit: int = 200) -> int:
    """
    Set referral_bonus_paid on referees whose referrer already holds their bonus.
    Never pays anything. Returns the number of accounts repaired.
    """
    candidates = await Account.find(
        {
            "referred_by": {"$ne": None},
            "referral_bonus_paid": False,
            "lifetime_video_count": {"$gte": REFERRAL_VIDEO_THRESHOLD},
        }
    ).limit(limit).to_list()
    repaired = 0
    for referee in candidates:
        paid = await Account.find_one(
            {"referral_code": referee.referred_by, "transactions.reference_id": str(referee.id)}
        )
        if paid is None:
            continue
        if await _mark_bonus_paid(referee.id):
            repaired += 1
            log.info("referral_flag_repaired", referee_id=str(referee.id), referrer_id=str(paid.id))
    return repaired


async def referral_stats(account: Account) -> dict:
    """Accounts registered with my code, and bonuses received for them."""
    referred_count = await Account.find(Account.referred_by == account.referral_code).count()
    bonuses = [t for t in account.transactions if t.kind == "credit" and t.reference_id]
    return {
        "referral_code": account.referral_code,
        "referred_count": referred_count,
        "bonuses_received": len(bonuses),
        "total_referral_points": sum(t.amount for t in bonuses),
    }
