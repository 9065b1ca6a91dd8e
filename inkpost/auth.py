"""Bearer-token authentication gate."""

import logging
from typing import Optional

import jwt
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from inkpost.db import get_db
from inkpost.errors import Unauthorized
from inkpost.models import User
from inkpost.security import decode_access_token

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def resolve_user(authorization: Optional[str], db: Session) -> Optional[User]:
    """
    Resolve an ``Authorization`` header value to a user.

    Returns None when the header is absent or malformed, the token fails
    verification, or the user it names no longer exists. Never raises for
    bad credentials; callers decide whether a missing user is an error.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None

    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        return None

    try:
        claims = decode_access_token(token)
        user_id = int(claims["sub"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError) as e:
        logger.debug("Rejected bearer token: %s", e)
        return None

    return db.get(User, user_id)


def get_optional_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[User]:
    return resolve_user(authorization, db)


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise Unauthorized()
    return user
