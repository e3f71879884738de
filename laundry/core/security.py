"""
Laundry Service — Password hashing and JWT issue/verify
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from laundry.core.config import get_settings

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str | None) -> bool:
    # Walk-in customers have no password until they accept their invitation.
    return bool(hashed) and pwd_context.verify(plain, hashed)


def _issue(claims: dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    payload = {
        **claims,
        "type": token_type,
        "exp": datetime.now(tz=timezone.utc) + lifetime,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(claims: dict[str, Any]) -> str:
    """Short-lived token carrying sub, email and role."""
    return _issue(claims, ACCESS, timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(claims: dict[str, Any]) -> str:
    return _issue(claims, REFRESH, timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS))


def decode_token(token: str, expected_type: str = ACCESS) -> dict[str, Any]:
    """Verify signature, expiry and token type. Raises JWTError on any failure."""
    claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if claims.get("type") != expected_type:
        raise JWTError(f"expected a {expected_type} token")
    return claims
