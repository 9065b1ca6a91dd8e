# inkpost/services/users.py
"""Accounts: signup, login and profiles."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from inkpost.errors import Conflict, NotFound, Unauthorized, ValidationError
from inkpost.models import Follow, Post, User
from inkpost.security import create_access_token, hash_password, verify_password
from inkpost.services.social import is_following

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MIN_NAME_LENGTH = 2
MAX_BIO_LENGTH = 500


@dataclass
class UserProfile:
    user: User
    posts_count: int
    followers_count: int
    following_count: int
    is_following: bool


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _validate_name(name: Optional[str]) -> str:
    if name is None or len(name.strip()) < MIN_NAME_LENGTH:
        raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters")
    return name.strip()


def register_user(db: Session, email: str, password: str, name: str) -> User:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    name = _validate_name(name)
    email = _normalize_email(email)

    if db.query(User.id).filter(User.email == email).first() is not None:
        raise Conflict("Email already registered")

    user = User(email=email, password_hash=hash_password(password), name=name)
    db.add(user)
    db.flush()
    logger.info("User %s registered", user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    """Return the user for valid credentials; one error for every kind of mismatch."""
    user = db.query(User).filter(User.email == _normalize_email(email)).first()
    if user is None or not verify_password(password, user.password_hash):
        raise Unauthorized("Invalid email or password")
    return user


def issue_token(user: User) -> str:
    return create_access_token(user.id, user.email)


def update_profile(db: Session, user: User, patch: Dict[str, Any]) -> User:
    """
    Patch name, bio and image. Absent keys are unchanged; an empty ``image``
    string clears the image.
    """
    if patch.get("name") is not None:
        user.name = _validate_name(patch["name"])
    if patch.get("bio") is not None:
        if len(patch["bio"]) > MAX_BIO_LENGTH:
            raise ValidationError(f"Bio must be at most {MAX_BIO_LENGTH} characters")
        user.bio = patch["bio"]
    if patch.get("image") is not None:
        user.image = patch["image"] or None
    db.flush()
    return user


def get_profile(db: Session, user_id: int, viewer_id: Optional[int] = None) -> UserProfile:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    posts_count = (
        db.query(func.count(Post.id))
        .filter(Post.author_id == user_id, Post.published.is_(True))
        .scalar()
    )
    followers_count = db.query(func.count(Follow.id)).filter(Follow.following_id == user_id).scalar()
    following_count = db.query(func.count(Follow.id)).filter(Follow.follower_id == user_id).scalar()

    return UserProfile(
        user=user,
        posts_count=posts_count,
        followers_count=followers_count,
        following_count=following_count,
        is_following=is_following(db, viewer_id, user_id),
    )
