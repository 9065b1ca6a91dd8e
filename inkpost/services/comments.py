# inkpost/services/comments.py
"""Comment threads: top-level comments with eagerly loaded replies."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from inkpost.config import COMMENT_MAX_LENGTH
from inkpost.errors import Forbidden, NotFound, ValidationError
from inkpost.models import Comment, Post

logger = logging.getLogger(__name__)

# Replies are fetched two levels below each top-level comment. A reply nested
# deeper than that is stored but not part of the returned thread.
REPLY_DEPTH = 2


def _validate_content(content: Optional[str]) -> str:
    if content is None or not content.strip():
        raise ValidationError("Comment cannot be empty")
    if len(content) > COMMENT_MAX_LENGTH:
        raise ValidationError("Comment is too long")
    return content


def _load_owned(db: Session, comment_id: int, requester_id: int) -> Comment:
    comment = db.get(Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    if comment.author_id != requester_id:
        raise Forbidden()
    return comment


def list_comments(db: Session, post_id: int) -> List[Comment]:
    """
    Top-level comments for a post, newest first.

    Each comment has its replies and their replies loaded (REPLY_DEPTH
    levels), every reply list ordered oldest first.
    """
    return (
        db.query(Comment)
        .options(
            joinedload(Comment.author),
            selectinload(Comment.replies).joinedload(Comment.author),
            selectinload(Comment.replies).selectinload(Comment.replies).joinedload(Comment.author),
        )
        .filter(Comment.post_id == post_id, Comment.parent_id.is_(None))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .all()
    )


def create_comment(
    db: Session,
    author_id: int,
    post_id: int,
    content: str,
    parent_id: Optional[int] = None,
) -> Comment:
    _validate_content(content)

    if db.get(Post, post_id) is None:
        raise NotFound("Post not found")

    if parent_id is not None:
        parent = db.get(Comment, parent_id)
        if parent is None or parent.post_id != post_id:
            raise NotFound("Parent comment not found")

    comment = Comment(content=content, post_id=post_id, author_id=author_id, parent_id=parent_id)
    db.add(comment)
    db.flush()
    logger.info("Comment %s created on post %s by user %s", comment.id, post_id, author_id)
    return comment


def update_comment(db: Session, comment_id: int, requester_id: int, content: str) -> Comment:
    comment = _load_owned(db, comment_id, requester_id)
    comment.content = _validate_content(content)
    db.flush()
    return comment


def delete_comment(db: Session, comment_id: int, requester_id: int) -> None:
    """Delete a comment; every reply beneath it goes with it."""
    comment = _load_owned(db, comment_id, requester_id)
    db.delete(comment)
    db.flush()
    logger.info("Comment %s deleted by user %s", comment_id, requester_id)
