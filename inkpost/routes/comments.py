# inkpost/routes/comments.py
"""FastAPI routes for editing and deleting a single comment."""

from typing import Dict

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from inkpost.auth import get_current_user
from inkpost.config import COMMENT_MAX_LENGTH, MAX_ID
from inkpost.db import get_db
from inkpost.models import User
from inkpost.serializers import comment_to_dict
from inkpost.services.comments import delete_comment, update_comment

router = APIRouter(prefix="/comments", tags=["comments"])


class CommentUpdate(BaseModel):
    """Request body for editing a comment."""
    content: str = Field(..., max_length=COMMENT_MAX_LENGTH)

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Comment cannot be empty")
        return v


@router.put("/{comment_id}")
def edit_comment(
    payload: CommentUpdate,
    comment_id: int = Path(..., description="ID of the comment to edit", ge=1, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict:
    """Replace a comment's text. Only its author may edit it."""
    comment = update_comment(db, comment_id, user.id, payload.content)
    return {"comment": comment_to_dict(comment)}


@router.delete("/{comment_id}")
def remove_comment(
    comment_id: int = Path(..., description="ID of the comment to delete", ge=1, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict:
    """
    Delete a comment and, recursively, every reply beneath it.
    Only its author may delete it.
    """
    delete_comment(db, comment_id, user.id)
    return {"message": "Comment deleted successfully"}
