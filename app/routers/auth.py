from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.core.clock import Clock
from app.core.security import create_access_token
from app.deps import get_clock
from app.services import users as user_service

router = APIRouter()


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=254)
    phone: str = Field(min_length=3, max_length=32)
    password: str = Field(min_length=6, max_length=72)
    referral_code: str | None = None
    device_id: str | None = None


class LoginRequest(BaseModel):
    phone: str
    password: str
    device_id: str | None = None


@router.post("/register")
async def auth_register(body: RegisterRequest, clock: Clock = Depends(get_clock)):
    """Create account (welcome bonus applied) and return a bearer token."""
    account = await user_service.register(
        body.name,
        body.email,
        body.phone,
        body.password,
        clock,
        referral_code=body.referral_code,
        device_id=body.device_id,
    )
    return {
        "token": create_access_token(str(account.id)),
        "user": user_service.profile_payload(account, clock),
    }


@router.post("/login")
async def auth_login(body: LoginRequest, clock: Clock = Depends(get_clock)):
    """Phone + password login; enforces device binding."""
    account = await user_service.login(body.phone, body.password, clock, device_id=body.device_id)
    return {
        "token": create_access_token(str(account.id)),
        "user": user_service.profile_payload(account, clock),
    }
