from datetime import datetime, timedelta, timezone
import secrets
from typing import Dict, Optional, Tuple

import bcrypt
from jose import jwt

from lms.core.config import settings

# Refresh tokens are opaque; only their row in refresh_tokens gives them meaning
REFRESH_TOKEN_BYTES = 48


def hash_password(plain_password: str) -> str:
    return bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored hash is not a bcrypt hash (e.g. a placeholder on a seeded row)
        return False


def create_access_token(*, claims: Dict, expires_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    minutes = settings.access_token_expire_minutes if expires_minutes is None else expires_minutes
    payload = {**claims, "iat": int(now.timestamp()), "exp": now + timedelta(minutes=minutes)}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_refresh_token(*, expires_days: Optional[int] = None) -> Tuple[str, datetime]:
    days = settings.refresh_token_expire_days if expires_days is None else expires_days
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES), datetime.now(timezone.utc) + timedelta(days=days)


def access_token_for(user) -> str:
    """Access token for a User row; get_current_user reads user_id (falling back to sub)."""
    return create_access_token(
        claims={
            "sub": str(user.id),
            "user_id": str(user.id),
            "role": user.role,
            "username": user.username,
        }
    )
