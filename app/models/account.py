import uuid
from datetime import datetime
from typing import Literal

from beanie import Document, Indexed
from pydantic import BaseModel, Field
from pymongo import IndexModel

TransactionKind = Literal["credit", "debit"]
TransactionStatus = Literal["completed", "pending", "failed"]

DEFAULT_DAILY_LIMIT = 10


class Transaction(BaseModel):
    """One ledger line, embedded in the account document. Never edited after append."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    kind: TransactionKind
    amount: int = Field(gt=0)
    description: str
    status: TransactionStatus = "completed"
    created_at: datetime = Field(default_factory=datetime.utcnow)
    # Debits only
    payment_method: str | None = None
    account_number: str | None = None
    # Referral bonus credits: the referee account that triggered it
    reference_id: str | None = None


class Account(Document):
    name: str
    email: Indexed(str, unique=True)
    phone: Indexed(str, unique=True)
    password_hash: str
    referral_code: Indexed(str, unique=True)
    referred_by: str | None = None  # referral code of the inviter
    referral_bonus_paid: bool = False
    device_id: str | None = None  # absent until bound; unique among bound accounts

    balance: int = Field(default=0, ge=0)
    total_earned: int = Field(default=0, ge=0)

    # Daily quota state; counters are valid only while task_date is today
    task_date: str | None = None  # ISO calendar day
    last_check_in: datetime | None = None
    spin_count: int = 0
    spin_limit: int = DEFAULT_DAILY_LIMIT
    math_count: int = 0
    math_limit: int = DEFAULT_DAILY_LIMIT
    video_count: int = 0
    video_limit: int = DEFAULT_DAILY_LIMIT
    lifetime_video_count: int = 0

    transactions: list[Transaction] = Field(default_factory=list)

    revision: int = 0  # bumped by every write; conditional writes compare it
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "accounts"
        # Unset fields are left out of the stored document so the sparse device index skips them
        keep_nulls = False
        indexes = [
            IndexModel([("device_id", 1)], unique=True, sparse=True, name="device_id_unique"),
            [("referred_by", 1), ("referral_bonus_paid", 1)],
        ]
