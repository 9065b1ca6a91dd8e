"""
FastAPI routes for profiles and the follow graph.
"""
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from inkpost.auth import get_current_user, get_optional_user
from inkpost.config import DEFAULT_PAGE_SIZE, MAX_ID, MAX_PAGE_SIZE
from inkpost.db import get_db
from inkpost.models import User
from inkpost.serializers import post_page_to_dict, user_to_dict
from inkpost.services import social
from inkpost.services.posts import list_user_posts
from inkpost.services.users import MAX_BIO_LENGTH, MIN_NAME_LENGTH, get_profile, update_profile


class ProfileUpdate(BaseModel):
    """Request body for profile edits; omitted fields stay unchanged."""
    name: Optional[str] = Field(None, min_length=MIN_NAME_LENGTH, max_length=100)
    bio: Optional[str] = Field(None, max_length=MAX_BIO_LENGTH)
    image: Optional[str] = Field(None, pattern=r"^(https?://\S+)?$", description="Image URL; empty string clears it")


router = APIRouter(tags=["users"])


@router.get("/users/{user_id}")
def read_user(
    user_id: int = Path(..., ge=1, le=MAX_ID),
    viewer: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> Dict:
    """Public profile with follower/following totals and the viewer's follow state."""
    profile = get_profile(db, user_id, viewer_id=viewer.id if viewer else None)
    data = user_to_dict(profile.user)
    data.update(
        postsCount=profile.posts_count,
        followersCount=profile.followers_count,
        followingCount=profile.following_count,
        isFollowing=profile.is_following,
    )
    return {"user": data}


@router.get("/users/{user_id}/posts")
def read_user_posts(
    user_id: int = Path(..., ge=1, le=MAX_ID),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
) -> Dict:
    return post_page_to_dict(list_user_posts(db, user_id, page=page, limit=limit))


@router.post("/users/{user_id}/follow")
def follow_user(
    user_id: int = Path(..., ge=1, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict:
    social.follow(db, user.id, user_id)
    return {"message": "Successfully followed user"}


@router.delete("/users/{user_id}/follow")
def unfollow_user(
    user_id: int = Path(..., ge=1, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict:
    social.unfollow(db, user.id, user_id)
    return {"message": "Successfully unfollowed user"}


@router.put("/profile")
def edit_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict:
    updated = update_profile(db, user, payload.model_dump(exclude_unset=True))
    return {"user": user_to_dict(updated)}
