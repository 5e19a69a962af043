from fastapi import APIRouter, Depends

from app.deps import get_current_account
from app.models.account import Account
from app.services import referrals as referrals_service

router = APIRouter()


@router.get("/me")
async def referral_me(account: Account = Depends(get_current_account)):
    """My referral code and whether my own referral bonus has been paid out."""
    return {
        "referral_code": account.referral_code,
        "referred_by": account.referred_by,
        "referral_bonus_paid": account.referral_bonus_paid,
        "videos_until_bonus": max(0, referrals_service.REFERRAL_VIDEO_THRESHOLD - account.lifetime_video_count),
    }


@router.get("/stats")
async def referral_stats(account: Account = Depends(get_current_account)):
    """Referral stats: referred_count, bonuses_received, total_referral_points."""
    return await referrals_service.referral_stats(account)
