"""Registration, login with device binding, and the profile view."""

from beanie.operators import Or
from fastapi.concurrency import run_in_threadpool
from pymongo.errors import DuplicateKeyError

from app.core.audit import log_event
from app.core.clock import Clock
from app.core.config import get_settings
from app.core.exceptions import BadRequestError, ConflictError, ForbiddenError
from app.core.logging import get_logger
from app.core.security import hash_password, verify_password
from app.models.account import Account
from app.services import accounts as accounts_service
from app.services import ledger, quota
from app.services.accounts import AccountUpdate
from app.services.referrals import new_referral_code, validate_referral_code

log = get_logger(__name__)

REGISTER_ATTEMPTS = 3


async def _device_holder(device_id: str) -> Account | None:
    return await Account.find_one(Account.device_id == device_id)


def _device_taken() -> ForbiddenError:
    return ForbiddenError("This device is already registered to another account.", code="DEVICE_ALREADY_BOUND")


async def _taken_field(email: str, phone: str, device_id: str | None) -> str | None:
    """Which unique field a rejected insert collided on; None means the referral code."""
    if await Account.find_one(Account.phone == phone):
        return "phone"
    if await Account.find_one(Account.email == email):
        return "email"
    if device_id and await _device_holder(device_id):
        return "device_id"
    return None


async def register(
    name: str,
    email: str,
    phone: str,
    password: str,
    clock: Clock,
    referral_code: str | None = None,
    device_id: str | None = None,
) -> Account:
    """Create an account with the welcome bonus already on its ledger."""
    email = email.strip().lower()
    phone = phone.strip()
    device_id = (device_id or "").strip() or None

    existing = await Account.find_one(Or(Account.email == email, Account.phone == phone))
    if existing:
        if existing.phone == phone:
            raise ConflictError("Phone number already exists", details={"field": "phone"})
        raise ConflictError("Email already exists", details={"field": "email"})
    if device_id and await _device_holder(device_id):
        raise _device_taken()

    now = clock.now()
    account = Account(
        name=name.strip(),
        email=email,
        phone=phone,
        password_hash=await run_in_threadpool(hash_password, password),
        referral_code=await new_referral_code(),
        referred_by=await validate_referral_code(referral_code),
        device_id=device_id,
        balance=ledger.WELCOME_BONUS,
        total_earned=ledger.WELCOME_BONUS,
        task_date=clock.today().isoformat(),
        transactions=[ledger.credit_entry(ledger.WELCOME_BONUS, ledger.WELCOME_DESCRIPTION, now)],
        created_at=now,
    )
    for _ in range(REGISTER_ATTEMPTS):
        try:
            await account.insert()
            break
        except DuplicateKeyError as e:
            # Lost a race with a concurrent registration on a unique field
            field = await _taken_field(email, phone, device_id)
            if field == "device_id":
                raise _device_taken() from e
            if field == "phone":
                raise ConflictError("Phone number already exists", details={"field": "phone"}) from e
            if field == "email":
                raise ConflictError("Email already exists", details={"field": "email"}) from e
            log.warning("referral_code_collision", referral_code=account.referral_code)
            account.id = None
            account.referral_code = await new_referral_code()
    else:
        raise ConflictError("Could not allocate a referral code, please retry")
    log.info("account_registered", account_id=str(account.id), referred_by=account.referred_by)
    await log_event(
        str(account.id),
        "account_registered",
        "account",
        str(account.id),
        {"referred_by": account.referred_by, "device_bound": device_id is not None},
    )
    return account


async def _stage_device(update: AccountUpdate, device_id: str | None) -> None:
    account = update.account
    if account.device_id:
        if account.device_id != device_id:
            raise ForbiddenError(
                "Access Denied: You cannot login from a different device.",
                code="DEVICE_MISMATCH",
            )
        return
    if not device_id:
        return
    holder = await _device_holder(device_id)
    if holder and holder.id != account.id:
        raise _device_taken()
    # Accounts created before device binding adopt the first device they log in from
    update.set("device_id", device_id)


async def login(phone: str, password: str, clock: Clock, device_id: str | None = None) -> Account:
    """Check credentials and device, bind a first device, and reset a stale task day."""
    device_id = (device_id or "").strip() or None
    account = await Account.find_one(Account.phone == phone.strip())
    if not account:
        raise BadRequestError("User not found", code="ACCOUNT_NOT_FOUND")
    if not await run_in_threadpool(verify_password, password, account.password_hash):
        raise BadRequestError("Invalid password", code="INVALID_PASSWORD")

    for _ in range(get_settings().task_commit_attempts):
        update = AccountUpdate(account)
        await _stage_device(update, device_id)
        quota.reset_if_stale(update, clock.today())
        update.set("last_login_at", clock.now())
        try:
            stored = await accounts_service.commit(update)
        except DuplicateKeyError as e:
            # Another account bound this device after it was checked
            if "device_id" in update.fields:
                raise _device_taken() from e
            raise
        if stored is not None:
            log.info("account_login", account_id=str(stored.id))
            await log_event(str(stored.id), "account_login", "account", str(stored.id), {"device_id": stored.device_id})
            return stored
        account = await accounts_service.get_account(account.id)
    raise ConflictError("Account is busy, please retry")


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def profile_payload(account: Account, clock: Clock) -> dict:
    """Account state without the credential; transactions newest first."""
    return {
        "id": str(account.id),
        "name": account.name,
        "email": account.email,
        "phone": account.phone,
        "balance": account.balance,
        "total_earned": account.total_earned,
        "referral_code": account.referral_code,
        "referred_by": account.referred_by,
        "referral_bonus_paid": account.referral_bonus_paid,
        "device_id": account.device_id,
        "task_date": account.task_date,
        "last_check_in": _iso(account.last_check_in),
        **quota.effective_counts(account, clock.today()),
        "lifetime_video_count": account.lifetime_video_count,
        "joined_date": _iso(account.created_at),
        "transactions": [transaction_payload(t) for t in ledger.newest_first(account)],
    }


def transaction_payload(t) -> dict:
    return {
        "id": t.id,
        "type": t.kind,
        "amount": t.amount,
        "description": t.description,
        "status": t.status,
        "date": t.created_at.isoformat(),
        "payment_method": t.payment_method,
        "account_number": t.account_number,
    }
