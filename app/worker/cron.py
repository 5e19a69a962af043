"""Cron: repair referral bonus flags left unset by an interrupted referral payout."""

from app.core.config import get_settings
from app.core.logging import get_logger
from app.services.referrals import reconcile_referral_flags

log = get_logger(__name__)


async def run_reconcile_referral_flags() -> int:
    """One sweep over referred accounts past the video threshold. Returns accounts repaired."""
    batch = get_settings().referral_sweep_batch_size
    repaired = await reconcile_referral_flags(limit=batch)
    if repaired:
        log.info("referral_flags_reconciled", repaired=repaired)
    return repaired
