import hashlib
from functools import lru_cache
from typing import Any

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext

from app.core.config import get_settings


def get_token_serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(
        settings.secret_key,
        salt="rewards-access-token",
        signer_kwargs={"key_derivation": "hmac", "digest_method": hashlib.sha256},
    )


def create_access_token(account_id: str) -> str:
    """Signed bearer token; expiry is enforced on load (TOKEN_MAX_AGE_SECONDS)."""
    return get_token_serializer().dumps({"account_id": account_id})


def load_access_token(token: str) -> dict[str, Any] | None:
    serializer = get_token_serializer()
    try:
        payload = serializer.loads(token, max_age=get_settings().token_max_age_seconds)
    except (BadSignature, SignatureExpired):
        return None
    return payload if isinstance(payload, dict) else None


@lru_cache
def _password_context() -> CryptContext:
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=get_settings().bcrypt_rounds,
    )


def hash_password(password: str) -> str:
    return _password_context().hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return _password_context().verify(password, password_hash)
