"""Task gate: quotas, rewards and error codes."""

import pytest

from app.core.exceptions import AppError

pytestmark = pytest.mark.asyncio


async def _complete(account, task_type, clock, data=None):
    from app.services import tasks as tasks_service
    return await tasks_service.complete_task(account.id, task_type, data, clock)


async def _reload(account):
    from app.services import accounts as accounts_service
    return await accounts_service.get_account(account.id)


async def test_math_task_credits_and_counts(make_account, clock):
    account = await make_account()
    outcome = await _complete(account, "math", clock)
    assert outcome.earned == 20
    assert outcome.balance == 520
    stored = await _reload(account)
    assert stored.math_count == 1
    assert stored.total_earned == 520
    assert stored.transactions[-1].description == "Quiz Reward"


async def test_math_at_limit_is_rejected_and_balance_unchanged(make_account, clock):
    from app.models.account import Account
    account = await make_account()
    await Account.find_one(Account.id == account.id).update({"$set": {"math_count": 10, "math_limit": 10}})
    with pytest.raises(AppError) as exc:
        await _complete(account, "math", clock)
    assert exc.value.code == "DAILY_LIMIT_REACHED"
    stored = await _reload(account)
    assert stored.balance == 500
    assert len(stored.transactions) == 1


async def test_quota_never_exceeds_limit_within_a_day(make_account, clock):
    account = await make_account()
    for _ in range(10):
        await _complete(account, "video", clock)
    with pytest.raises(AppError) as exc:
        await _complete(account, "video", clock)
    assert exc.value.code == "DAILY_LIMIT_REACHED"
    stored = await _reload(account)
    assert stored.video_count == 10
    assert stored.lifetime_video_count == 10
    assert stored.balance == 500 + 10 * 30


async def test_counters_reset_on_first_task_of_new_day(make_account, clock):
    account = await make_account()
    for _ in range(10):
        await _complete(account, "math", clock)
    clock.advance(days=1)
    outcome = await _complete(account, "math", clock)
    assert outcome.earned == 20
    stored = await _reload(account)
    assert stored.math_count == 1
    assert stored.task_date == "2024-03-11"


async def test_second_task_same_day_keeps_counters(make_account, clock):
    account = await make_account()
    await _complete(account, "spin", clock, {"score": 10})
    clock.advance(hours=5)
    await _complete(account, "spin", clock, {"score": 5})
    stored = await _reload(account)
    assert stored.spin_count == 2
    assert stored.task_date == "2024-03-10"


async def test_limit_exhausted_yesterday_is_usable_today(make_account, clock):
    from app.models.account import Account
    account = await make_account()
    await Account.find_one(Account.id == account.id).update(
        {"$set": {"video_count": 10, "task_date": "2024-03-09"}}
    )
    outcome = await _complete(account, "video", clock)
    assert outcome.earned == 30
    assert (await _reload(account)).video_count == 1


async def test_checkin_once_per_calendar_day(make_account, clock):
    account = await make_account()
    outcome = await _complete(account, "checkin", clock)
    assert outcome.earned == 50
    with pytest.raises(AppError) as exc:
        await _complete(account, "checkin", clock)
    assert exc.value.code == "ALREADY_CHECKED_IN"
    clock.advance(days=1)
    outcome = await _complete(account, "checkin", clock)
    assert outcome.balance == 600
    stored = await _reload(account)
    assert stored.last_check_in == clock.now()


async def test_losing_spin_counts_but_logs_nothing(make_account, clock):
    account = await make_account()
    outcome = await _complete(account, "spin", clock, {"score": 0})
    assert outcome.earned == 0
    stored = await _reload(account)
    assert stored.spin_count == 1
    assert stored.balance == 500
    assert len(stored.transactions) == 1


async def test_missing_spin_score_is_a_losing_spin(make_account, clock):
    account = await make_account()
    outcome = await _complete(account, "spin", clock)
    assert outcome.earned == 0


@pytest.mark.parametrize(
    "score, code",
    [
        (45, "INVALID_SPIN_VALUE"),
        (55, "SPIN_CEILING_EXCEEDED"),
        (60, "SPIN_CEILING_EXCEEDED"),
        (-5, "INVALID_SPIN_VALUE"),
        ("40", "INVALID_SPIN_VALUE"),
        (True, "INVALID_SPIN_VALUE"),
        (12.5, "INVALID_SPIN_VALUE"),
        (55.5, "SPIN_CEILING_EXCEEDED"),
    ],
)
async def test_bad_spin_scores_rejected(make_account, clock, score, code):
    account = await make_account()
    with pytest.raises(AppError) as exc:
        await _complete(account, "spin", clock, {"score": score})
    assert exc.value.code == code
    stored = await _reload(account)
    assert stored.spin_count == 0
    assert stored.balance == 500


async def test_spin_win_credits_score(make_account, clock):
    account = await make_account()
    outcome = await _complete(account, "spin", clock, {"score": 40})
    assert outcome.earned == 40
    assert (await _reload(account)).transactions[-1].description == "Lucky Spin Win"


async def test_refer_is_never_claimable(make_account, clock):
    account = await make_account()
    with pytest.raises(AppError) as exc:
        await _complete(account, "refer", clock)
    assert exc.value.code == "REFERRAL_NOT_CLAIMABLE"


async def test_unknown_task_type_rejected(make_account, clock):
    account = await make_account()
    with pytest.raises(AppError) as exc:
        await _complete(account, "survey", clock)
    assert exc.value.code == "INVALID_TASK_TYPE"


async def test_concurrent_write_forces_reevaluation(make_account, clock, monkeypatch):
    """A write landing between read and commit makes the gate retry on fresh state."""
    from app.models.account import Account
    from app.services import accounts as accounts_service
    account = await make_account()
    real_commit = accounts_service.commit
    calls = {"n": 0}

    async def racing_commit(update):
        calls["n"] += 1
        if calls["n"] == 1:
            # another request spends the last math slot first
            await Account.find_one(Account.id == account.id).update(
                {"$set": {"math_count": 10, "task_date": "2024-03-10"}, "$inc": {"revision": 1}}
            )
        return await real_commit(update)

    monkeypatch.setattr(accounts_service, "commit", racing_commit)
    with pytest.raises(AppError) as exc:
        await _complete(account, "math", clock)
    assert exc.value.code == "DAILY_LIMIT_REACHED"
    assert calls["n"] == 1
    assert (await _reload(account)).balance == 500


async def test_refill_adds_two_slots(make_account, clock):
    from app.services import tasks as tasks_service
    account = await make_account()
    assert await tasks_service.refill_limit(account.id, "spin") == 12
    assert await tasks_service.refill_limit(account.id, "spin") == 14
    stored = await _reload(account)
    assert stored.spin_limit == 14
    assert stored.math_limit == 10


async def test_refill_rejects_other_task_types(make_account):
    from app.services import tasks as tasks_service
    account = await make_account()
    with pytest.raises(AppError) as exc:
        await tasks_service.refill_limit(account.id, "checkin")
    assert exc.value.code == "INVALID_TASK_TYPE"


async def test_balance_always_matches_log(make_account, clock):
    from app.services import ledger
    account = await make_account()
    await _complete(account, "checkin", clock)
    await _complete(account, "spin", clock, {"score": 25})
    await _complete(account, "spin", clock, {"score": 0})
    await _complete(account, "video", clock)
    stored = await _reload(account)
    assert stored.balance == ledger.balance_from_log(stored.transactions) == 605


async def test_whole_float_spin_score_is_accepted(make_account, clock):
    account = await make_account()
    outcome = await _complete(account, "spin", clock, {"score": 10.0})
    assert outcome.earned == 10
    stored = await _reload(account)
    assert stored.transactions[-1].amount == 10
    assert stored.balance == 510
