# inkpost/services/feed.py
"""Personal feed, free-text search and tag popularity."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from inkpost.config import SEARCH_RESULT_LIMIT
from inkpost.models import Follow, Post, PostTag, Tag, User
from inkpost.services.posts import (
    PostPage, contains, engagement_counts, paginate_posts, validate_paging, with_relations
)
from inkpost.services.social import following_ids

MIN_QUERY_LENGTH = 2


class SearchKind(str, Enum):
    all = "all"
    posts = "posts"
    users = "users"
    tags = "tags"


@dataclass
class UserHit:
    user: User
    posts_count: int
    followers_count: int


@dataclass
class SearchResults:
    posts: List[Post] = field(default_factory=list)
    post_counts: dict = field(default_factory=dict)
    users: List[UserHit] = field(default_factory=list)
    tags: List[Tuple[Tag, int]] = field(default_factory=list)


def personal_feed(db: Session, user_id: int, page: int = 1, limit: int = 10) -> PostPage:
    """Published posts by the authors ``user_id`` follows, newest-published first."""
    validate_paging(page, limit)
    author_ids = following_ids(db, user_id)
    if not author_ids:
        return PostPage(items=[], page=page, limit=limit, total=0)

    conditions = [Post.published.is_(True), Post.author_id.in_(author_ids)]
    return paginate_posts(db, conditions, page, limit, [Post.published_at.desc(), Post.id.desc()])


def _post_count_subquery(db: Session):
    return (
        db.query(PostTag.tag_id.label("tag_id"), func.count(PostTag.post_id).label("post_count"))
        .group_by(PostTag.tag_id)
        .subquery()
    )


def tags_with_counts(db: Session, conditions: list, limit: int) -> List[Tuple[Tag, int]]:
    counts = _post_count_subquery(db)
    post_count = func.coalesce(counts.c.post_count, 0)
    rows = (
        db.query(Tag, post_count)
        .outerjoin(counts, counts.c.tag_id == Tag.id)
        .filter(*conditions)
        .order_by(post_count.desc(), Tag.name.asc())
        .limit(limit)
        .all()
    )
    return [(tag, count) for tag, count in rows]


def trending_tags(db: Session, limit: int = 20) -> List[Tuple[Tag, int]]:
    """All tags ordered by how many posts link to them."""
    return tags_with_counts(db, [], limit)


def _search_users(db: Session, term: str) -> List[UserHit]:
    users = (
        db.query(User)
        .filter(or_(contains(User.name, term), contains(User.bio, term)))
        .order_by(User.id.asc())
        .limit(SEARCH_RESULT_LIMIT)
        .all()
    )
    if not users:
        return []

    ids = [u.id for u in users]
    posts_counts = dict(
        db.query(Post.author_id, func.count(Post.id))
        .filter(Post.author_id.in_(ids), Post.published.is_(True))
        .group_by(Post.author_id)
        .all()
    )
    followers_counts = dict(
        db.query(Follow.following_id, func.count(Follow.id))
        .filter(Follow.following_id.in_(ids))
        .group_by(Follow.following_id)
        .all()
    )
    return [
        UserHit(user=u, posts_count=posts_counts.get(u.id, 0), followers_count=followers_counts.get(u.id, 0))
        for u in users
    ]


def search(db: Session, query: str, kind: SearchKind = SearchKind.all) -> SearchResults:
    """
    Search posts, users and tags by case-insensitive substring.

    Queries shorter than two characters after trimming return empty results
    for every category rather than an error.
    """
    results = SearchResults()
    term = (query or "").strip()
    if len(term) < MIN_QUERY_LENGTH:
        return results

    kind = SearchKind(kind)

    if kind in (SearchKind.all, SearchKind.posts):
        results.posts = (
            with_relations(db.query(Post))
            .filter(
                Post.published.is_(True),
                or_(contains(Post.title, term), contains(Post.content, term), contains(Post.excerpt, term)),
            )
            .order_by(Post.published_at.desc(), Post.id.desc())
            .limit(SEARCH_RESULT_LIMIT)
            .all()
        )
        results.post_counts = engagement_counts(db, [p.id for p in results.posts])

    if kind in (SearchKind.all, SearchKind.users):
        results.users = _search_users(db, term)

    if kind in (SearchKind.all, SearchKind.tags):
        results.tags = tags_with_counts(
            db, [or_(contains(Tag.name, term), contains(Tag.slug, term))], SEARCH_RESULT_LIMIT
        )

    return results
