"""Referral bonus: paid once to the referrer after the referee's 10th lifetime video."""

import pytest

pytestmark = pytest.mark.asyncio


async def _watch_videos(account, clock, n):
    from app.services import tasks as tasks_service
    outcome = None
    for _ in range(n):
        outcome = await tasks_service.complete_task(account.id, "video", None, clock)
    return outcome


async def _reload(account):
    from app.services import accounts as accounts_service
    return await accounts_service.get_account(account.id)


async def test_registration_keeps_only_existing_codes(make_account):
    referrer = await make_account()
    referee = await make_account(referral_code=referrer.referral_code.lower())
    stranger = await make_account(referral_code="PRO00000")
    assert referee.referred_by == referrer.referral_code
    assert stranger.referred_by is None


async def test_tenth_video_pays_referrer_once(make_account, clock):
    referrer = await make_account()
    referee = await make_account(referral_code=referrer.referral_code)

    await _watch_videos(referee, clock, 9)
    assert (await _reload(referrer)).balance == 500
    assert (await _reload(referee)).referral_bonus_paid is False

    await _watch_videos(referee, clock, 1)
    paid_referrer = await _reload(referrer)
    assert paid_referrer.balance == 1000
    assert paid_referrer.total_earned == 1000
    bonus = paid_referrer.transactions[-1]
    assert bonus.amount == 500
    assert bonus.reference_id == str(referee.id)
    assert bonus.description == f"Referral Bonus: {referee.name} watched 10 videos"

    marked = await _reload(referee)
    assert marked.referral_bonus_paid is True
    # the referee only gets its own video rewards
    assert marked.balance == 500 + 10 * 30

    clock.advance(days=1)
    await _watch_videos(referee, clock, 1)
    assert (await _reload(referrer)).balance == 1000


async def test_unreferred_account_pays_nobody(make_account, clock):
    other = await make_account()
    solo = await make_account()
    await _watch_videos(solo, clock, 10)
    assert (await _reload(other)).balance == 500
    assert (await _reload(solo)).referral_bonus_paid is False


async def test_missing_referrer_is_skipped_without_marking(make_account, clock):
    from app.models.account import Account
    referrer = await make_account()
    referee = await make_account(referral_code=referrer.referral_code)
    await referrer.delete()

    outcome = await _watch_videos(referee, clock, 10)
    assert outcome.earned == 30
    stored = await _reload(referee)
    assert stored.referral_bonus_paid is False
    assert stored.lifetime_video_count == 10
    assert await Account.find_one({"transactions.reference_id": str(referee.id)}) is None


async def test_rerun_after_lost_flag_does_not_pay_twice(make_account, clock):
    from app.services import referrals as referrals_service
    referrer = await make_account()
    referee = await make_account(referral_code=referrer.referral_code)
    await _watch_videos(referee, clock, 10)

    # simulate a crash between the referrer credit and the referee flag write
    stored = await _reload(referee)
    stored.referral_bonus_paid = False
    await stored.save()

    assert await referrals_service.resolve_referral_bonus(await _reload(referee), clock.now()) is True
    paid_referrer = await _reload(referrer)
    assert paid_referrer.balance == 1000
    assert len([t for t in paid_referrer.transactions if t.reference_id]) == 1
    assert (await _reload(referee)).referral_bonus_paid is True


async def test_reconcile_marks_paid_referees(make_account, clock):
    from app.services import referrals as referrals_service
    referrer = await make_account()
    referee = await make_account(referral_code=referrer.referral_code)
    await _watch_videos(referee, clock, 10)
    stored = await _reload(referee)
    stored.referral_bonus_paid = False
    await stored.save()

    assert await referrals_service.reconcile_referral_flags() == 1
    assert (await _reload(referee)).referral_bonus_paid is True
    assert (await _reload(referrer)).balance == 1000
    assert await referrals_service.reconcile_referral_flags() == 0


async def test_reconcile_never_pays_a_missed_bonus(make_account, clock):
    from app.models.account import Account
    from app.services import referrals as referrals_service
    referrer = await make_account()
    referee = await make_account(referral_code=referrer.referral_code)
    await Account.find_one(Account.id == referee.id).update({"$set": {"lifetime_video_count": 12}})

    assert await referrals_service.reconcile_referral_flags() == 0
    assert (await _reload(referrer)).balance == 500
    assert (await _reload(referee)).referral_bonus_paid is False


async def test_referral_stats(make_account, clock):
    from app.services import referrals as referrals_service
    referrer = await make_account()
    first = await make_account(referral_code=referrer.referral_code)
    await make_account(referral_code=referrer.referral_code)
    await _watch_videos(first, clock, 10)

    stats = await referrals_service.referral_stats(await _reload(referrer))
    assert stats == {
        "referral_code": referrer.referral_code,
        "referred_count": 2,
        "bonuses_received": 1,
        "total_referral_points": 500,
    }


async def test_generated_codes_are_prefixed_and_unique(make_account):
    accounts = [await make_account() for _ in range(5)]
    codes = {a.referral_code for a in accounts}
    assert len(codes) == 5
    assert all(c.startswith("PRO") and len(c) == 8 for c in codes)
