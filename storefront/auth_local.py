from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import jwt
from typing import Optional
from .core_settings import get_settings


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: Optional[str] = None
    is_admin: bool = False


def create_access_token(subject: str, email: Optional[str] = None, is_admin: bool = False,
                        expires_minutes: int = 60) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {"sub": subject, "iat": now, "exp": now + timedelta(minutes=expires_minutes), "is_admin": is_admin}
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_access_token(token: str) -> Optional[dict]:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.PyJWTError:
        return None


def identity_from_claims(claims: dict) -> Optional[Identity]:
    """Admin is either an explicit claim or the configured admin email."""
    user_id = claims.get("sub")
    if not user_id:
        return None
    email = claims.get("email")
    is_admin = bool(claims.get("is_admin")) or (
        email is not None and email.lower() == get_settings().ADMIN_EMAIL.lower()
    )
    return Identity(user_id=str(user_id), email=email, is_admin=is_admin)
