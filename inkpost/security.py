"""Password hashing and bearer token signing."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from inkpost.config import SECRET_KEY, TOKEN_ALGORITHM, TOKEN_TTL_MINUTES

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(user_id: int, email: str, ttl_minutes: int = TOKEN_TTL_MINUTES) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + timedelta(minutes=ttl_minutes),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=TOKEN_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Return the verified claims. Raises ``jwt.PyJWTError`` for bad or expired tokens."""
    return jwt.decode(token, SECRET_KEY, algorithms=[TOKEN_ALGORITHM])
