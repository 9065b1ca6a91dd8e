# inkpost/services/social.py
"""Follow and like edges: uniqueness-constrained join rows toggled on and off."""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inkpost.errors import Conflict, InvalidOperation, NotFound
from inkpost.models import Follow, Like, Post, User

logger = logging.getLogger(__name__)


def _insert_edge(db: Session, edge, conflict_message: str) -> None:
    try:
        with db.begin_nested():
            db.add(edge)
            db.flush()
    except IntegrityError:
        # a concurrent writer won the race on the unique constraint
        raise Conflict(conflict_message)


def follow(db: Session, follower_id: int, target_id: int) -> Follow:
    if follower_id == target_id:
        raise InvalidOperation("You cannot follow yourself")
    if db.get(User, target_id) is None:
        raise NotFound("User not found")
    if is_following(db, follower_id, target_id):
        raise Conflict("Already following this user")

    edge = Follow(follower_id=follower_id, following_id=target_id)
    _insert_edge(db, edge, "Already following this user")
    logger.info("User %s followed user %s", follower_id, target_id)
    return edge


def unfollow(db: Session, follower_id: int, target_id: int) -> None:
    edge = (
        db.query(Follow)
        .filter(Follow.follower_id == follower_id, Follow.following_id == target_id)
        .first()
    )
    if edge is None:
        raise NotFound("Not following this user")
    db.delete(edge)
    db.flush()
    logger.info("User %s unfollowed user %s", follower_id, target_id)


def like(db: Session, user_id: int, post_id: int) -> Like:
    if db.get(Post, post_id) is None:
        raise NotFound("Post not found")
    if is_liked(db, user_id, post_id):
        raise Conflict("Post already liked")

    edge = Like(post_id=post_id, user_id=user_id)
    _insert_edge(db, edge, "Post already liked")
    logger.info("User %s liked post %s", user_id, post_id)
    return edge


def unlike(db: Session, user_id: int, post_id: int) -> None:
    edge = db.query(Like).filter(Like.post_id == post_id, Like.user_id == user_id).first()
    if edge is None:
        raise NotFound("Like not found")
    db.delete(edge)
    db.flush()
    logger.info("User %s unliked post %s", user_id, post_id)


def is_following(db: Session, viewer_id: Optional[int], target_id: int) -> bool:
    if viewer_id is None:
        return False
    return (
        db.query(Follow.id)
        .filter(Follow.follower_id == viewer_id, Follow.following_id == target_id)
        .first()
        is not None
    )


def is_liked(db: Session, user_id: Optional[int], post_id: int) -> bool:
    if user_id is None:
        return False
    return (
        db.query(Like.id)
        .filter(Like.post_id == post_id, Like.user_id == user_id)
        .first()
        is not None
    )


def like_count(db: Session, post_id: int) -> int:
    return db.query(Like).filter(Like.post_id == post_id).count()


def following_ids(db: Session, user_id: int) -> List[int]:
    rows = db.query(Follow.following_id).filter(Follow.follower_id == user_id).all()
    return [row[0] for row in rows]
