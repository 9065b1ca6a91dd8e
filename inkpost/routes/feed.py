"""
FastAPI routes for discovery: the personal feed, search and tag listings.
"""
from typing import Dict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from inkpost.auth import get_current_user
from inkpost.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from inkpost.db import get_db
from inkpost.models import User
from inkpost.serializers import post_page_to_dict, post_to_dict, tag_to_dict, user_to_dict
from inkpost.services.feed import SearchKind, personal_feed, search, trending_tags

router = APIRouter(tags=["discovery"])


@router.get("/feed")
def get_feed(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict:
    """Published posts from followed authors, newest published first."""
    return post_page_to_dict(personal_feed(db, user.id, page=page, limit=limit))


@router.get("/search")
def search_content(
    q: str = Query("", description="Search text (at least 2 characters)"),
    type: SearchKind = Query(SearchKind.all, description="all, posts, users or tags"),
    db: Session = Depends(get_db),
) -> Dict:
    results = search(db, q, type)

    users = []
    for hit in results.users:
        data = user_to_dict(hit.user)
        data.update(postsCount=hit.posts_count, followersCount=hit.followers_count)
        users.append(data)

    return {
        "posts": [post_to_dict(p, results.post_counts.get(p.id)) for p in results.posts],
        "users": users,
        "tags": [tag_to_dict(tag, count) for tag, count in results.tags],
    }


@router.get("/tags")
def list_tags(
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE, description="Number of tags to return"),
    db: Session = Depends(get_db),
) -> Dict:
    """Tags ordered by number of linked posts, most used first."""
    return {"tags": [tag_to_dict(tag, count) for tag, count in trending_tags(db, limit=limit)]}
