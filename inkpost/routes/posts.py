"""
FastAPI routes for posts, their likes and their comment threads.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from inkpost.auth import get_current_user, get_optional_user
from inkpost.config import COMMENT_MAX_LENGTH, DEFAULT_PAGE_SIZE, MAX_ID, MAX_PAGE_SIZE
from inkpost.db import get_db
from inkpost.models import User
from inkpost.serializers import comment_to_dict, post_page_to_dict, post_to_dict
from inkpost.services import comments as comment_service
from inkpost.services import posts as post_service
from inkpost.services import social
from inkpost.services.comments import REPLY_DEPTH


# Request models
class PostCreate(BaseModel):
    """Request body for creating a post."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(..., description="Post title")
    content: str = Field(..., description="Rich-text body")
    excerpt: Optional[str] = Field(None, description="Short summary shown in listings")
    cover_image: Optional[str] = Field(None, description="Cover image URL")
    published: bool = Field(False, description="Publish immediately")
    tags: List[str] = Field(default_factory=list, description="Tag names")

    @field_validator("title")
    @classmethod
    def title_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title is required")
        return v

    @field_validator("content")
    @classmethod
    def content_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Content is required")
        return v


class PostUpdate(BaseModel):
    """Request body for a partial post update; omitted fields stay unchanged."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: Optional[str] = Field(None, min_length=1)
    content: Optional[str] = Field(None, min_length=1)
    excerpt: Optional[str] = None
    cover_image: Optional[str] = Field(None, description="Empty string clears the image")
    published: Optional[bool] = None
    tags: Optional[List[str]] = Field(None, description="Replaces the whole tag set")


class CommentCreate(BaseModel):
    """Request body for a comment or reply."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: str = Field(..., max_length=COMMENT_MAX_LENGTH)
    parent_id: Optional[int] = Field(None, ge=1, le=MAX_ID, description="Comment being replied to")

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Comment cannot be empty")
        return v


# Router
router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("")
def list_posts(
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Posts per page"),
    tag: Optional[str] = Query(None, description="Tag slug"),
    author_id: Optional[int] = Query(None, alias="authorId", ge=1, le=MAX_ID, description="Author user id"),
    search: Optional[str] = Query(None, description="Substring of title, content or excerpt"),
    draft: bool = Query(False, description="List the caller's own posts in any state"),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> Dict:
    """
    List published posts newest first, or the caller's own posts with
    ``draft=true`` (requires a bearer token).
    """
    result = post_service.list_posts(
        db,
        page=page,
        limit=limit,
        tag=tag,
        author_id=author_id,
        search=search,
        drafts_only=draft,
        requester_id=user.id if user else None,
    )
    return post_page_to_dict(result)


@router.post("", status_code=201)
def create_post(
    payload: PostCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict:
    post = post_service.create_post(
        db,
        author_id=user.id,
        title=payload.title,
        content=payload.content,
        excerpt=payload.excerpt,
        cover_image=payload.cover_image,
        published=payload.published,
        tags=payload.tags,
    )
    return {"post": post_to_dict(post)}


@router.get("/{id_or_slug}")
def get_post(
    id_or_slug: str = Path(..., description="Numeric id or slug"),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> Dict:
    """Fetch one post. Drafts are only visible to their author."""
    viewer_id = user.id if user else None
    post = post_service.get_post(db, id_or_slug, requester_id=viewer_id)
    counts = post_service.engagement_counts(db, [post.id])[post.id]

    data = post_to_dict(post, counts)
    data["isLiked"] = social.is_liked(db, viewer_id, post.id)
    return {"post": data}


@router.put("/{post_id}")
def update_post(
    payload: PostUpdate,
    post_id: int = Path(..., ge=1, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict:
    post = post_service.update_post(db, post_id, user.id, payload.model_dump(exclude_unset=True))
    counts = post_service.engagement_counts(db, [post.id])[post.id]
    return {"post": post_to_dict(post, counts)}


@router.delete("/{post_id}")
def delete_post(
    post_id: int = Path(..., ge=1, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict:
    post_service.delete_post(db, post_id, user.id)
    return {"message": "Post deleted successfully"}


@router.get("/{post_id}/like")
def get_like_status(
    post_id: int = Path(..., ge=1, le=MAX_ID),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> Dict:
    return {"isLiked": social.is_liked(db, user.id if user else None, post_id)}


@router.post("/{post_id}/like")
def like_post(
    post_id: int = Path(..., ge=1, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict:
    social.like(db, user.id, post_id)
    return {"message": "Post liked successfully", "likesCount": social.like_count(db, post_id)}


@router.delete("/{post_id}/like")
def unlike_post(
    post_id: int = Path(..., ge=1, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict:
    social.unlike(db, user.id, post_id)
    return {"message": "Post unliked successfully", "likesCount": social.like_count(db, post_id)}


@router.get("/{post_id}/comments")
def list_comments(
    post_id: int = Path(..., ge=1, le=MAX_ID),
    db: Session = Depends(get_db),
) -> Dict:
    """Top-level comments newest first, each with two levels of replies."""
    comments = comment_service.list_comments(db, post_id)
    return {"comments": [comment_to_dict(c, depth=REPLY_DEPTH) for c in comments]}


@router.post("/{post_id}/comments", status_code=201)
def create_comment(
    payload: CommentCreate,
    post_id: int = Path(..., ge=1, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict:
    comment = comment_service.create_comment(
        db, author_id=user.id, post_id=post_id, content=payload.content, parent_id=payload.parent_id
    )
    return {"comment": comment_to_dict(comment)}
