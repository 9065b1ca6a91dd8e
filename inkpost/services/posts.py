# inkpost/services/posts.py
"""Post authoring: slugs, read time, tag linking, visibility and listing."""

import logging
import math
import re
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from inkpost.config import MAX_PAGE_SIZE, WORDS_PER_MINUTE
from inkpost.errors import Forbidden, NotFound, Unauthorized, ValidationError
from inkpost.models import Comment, Like, Post, PostTag, Tag, utcnow

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")
_HTML_TAG = re.compile(r"<[^>]+>")
# ASCII digits only, short enough to fit a 64-bit key
_NUMERIC_ID = re.compile(r"[0-9]{1,18}")

UPDATABLE_FIELDS = ("title", "content", "excerpt", "cover_image", "published", "tags")
SLUG_ATTEMPTS = 5


@dataclass
class PostPage:
    """One page of posts plus the engagement counts needed to render them."""
    items: List[Post]
    page: int
    limit: int
    total: int
    counts: Dict[int, Dict[str, int]] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)


def slugify(title: str) -> str:
    slug = _NON_ALNUM.sub("-", title.lower()).strip("-")
    return slug or "post"


def normalize_tag_slug(name: str) -> str:
    return _WHITESPACE.sub("-", name.strip().lower())


def count_words(content: str) -> int:
    text = _HTML_TAG.sub(" ", content)
    return len(text.split())


def estimate_read_time(content: str) -> int:
    """Minutes to read at WORDS_PER_MINUTE, never less than one."""
    return max(1, math.ceil(count_words(content) / WORDS_PER_MINUTE))


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains(column, term: str):
    """Case-insensitive substring match on ``column``."""
    return column.ilike(f"%{escape_like(term)}%", escape="\\")


def validate_paging(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be at least 1")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")


def slug_taken(db: Session, slug: str) -> bool:
    return db.query(Post.id).filter(Post.slug == slug).first() is not None


def _unique_slug(db: Session, title: str) -> str:
    base = f"{slugify(title)}-{int(time.time() * 1000)}"
    slug = base
    # the millisecond suffix alone collides under rapid creation
    while slug_taken(db, slug):
        slug = f"{base}-{secrets.token_hex(3)}"
    return slug


def _insert_post(db: Session, fields: Dict[str, Any]) -> Post:
    """
    Insert a post under a free slug.

    The slug is checked before the insert, but a concurrent writer can still
    claim it first; the unique constraint then fails inside a savepoint and
    the insert is retried with a random suffix.
    """
    slug = _unique_slug(db, fields["title"])
    for attempt in range(SLUG_ATTEMPTS):
        post = Post(slug=slug, **fields)
        try:
            with db.begin_nested():
                db.add(post)
                db.flush()
            return post
        except IntegrityError:
            if attempt == SLUG_ATTEMPTS - 1:
                raise
            logger.warning("Slug %s was taken at insert, retrying", slug)
            slug = f"{slug}-{secrets.token_hex(3)}"


def _require_text(value: Optional[str], label: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{label} is required")
    return value


def find_tag(db: Session, slug: str) -> Optional[Tag]:
    return db.query(Tag).filter(Tag.slug == slug).first()


def upsert_tag(db: Session, name: str) -> Tag:
    """
    Get or create the tag whose slug is derived from ``name``.

    Two writers may both miss the lookup; the loser's insert fails on the
    unique slug inside a savepoint and it reads the winner's row instead.
    """
    slug = normalize_tag_slug(name)
    tag = find_tag(db, slug)
    if tag is not None:
        return tag

    tag = Tag(name=name.strip(), slug=slug)
    try:
        with db.begin_nested():
            db.add(tag)
            db.flush()
    except IntegrityError:
        tag = db.query(Tag).filter(Tag.slug == slug).one()
    return tag


def _link_tags(db: Session, post: Post, names: Iterable[str]) -> None:
    seen = set()
    for name in names:
        if not name or not name.strip():
            continue
        tag = upsert_tag(db, name)
        if tag.id in seen:
            continue
        seen.add(tag.id)
        post.tag_links.append(PostTag(tag=tag))


def with_relations(query: Query) -> Query:
    return query.options(
        joinedload(Post.author),
        selectinload(Post.tag_links).joinedload(PostTag.tag),
    )


def engagement_counts(db: Session, post_ids: Sequence[int]) -> Dict[int, Dict[str, int]]:
    """Comment and like totals for each post id, in two grouped queries."""
    counts = {post_id: {"comments": 0, "likes": 0} for post_id in post_ids}
    if not post_ids:
        return counts

    comment_rows = (
        db.query(Comment.post_id, func.count(Comment.id))
        .filter(Comment.post_id.in_(post_ids))
        .group_by(Comment.post_id)
        .all()
    )
    for post_id, total in comment_rows:
        counts[post_id]["comments"] = total

    like_rows = (
        db.query(Like.post_id, func.count(Like.id))
        .filter(Like.post_id.in_(post_ids))
        .group_by(Like.post_id)
        .all()
    )
    for post_id, total in like_rows:
        counts[post_id]["likes"] = total

    return counts


def paginate_posts(db: Session, conditions: list, page: int, limit: int, order_by: list) -> PostPage:
    """Apply ``skip = (page - 1) * limit`` paging to posts matching ``conditions``."""
    validate_paging(page, limit)
    base = db.query(Post).filter(*conditions)
    total = base.count()
    items = (
        with_relations(base)
        .order_by(*order_by)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    counts = engagement_counts(db, [p.id for p in items])
    return PostPage(items=items, page=page, limit=limit, total=total, counts=counts)


def _load_owned(db: Session, post_id: int, requester_id: int) -> Post:
    # existence first, so a non-owner never learns more than "not found"
    post = db.get(Post, post_id)
    if post is None:
        raise NotFound("Post not found")
    if post.author_id != requester_id:
        raise Forbidden()
    return post


def create_post(
    db: Session,
    author_id: int,
    title: str,
    content: str,
    excerpt: Optional[str] = None,
    cover_image: Optional[str] = None,
    published: bool = False,
    tags: Optional[Iterable[str]] = None,
) -> Post:
    """Create a post, deriving slug, read time and publish timestamp."""
    _require_text(title, "Title")
    _require_text(content, "Content")

    fields = dict(
        title=title,
        content=content,
        excerpt=excerpt,
        cover_image=cover_image or None,
        published=published,
        published_at=utcnow() if published else None,
        read_time=estimate_read_time(content),
        author_id=author_id,
    )
    post = _insert_post(db, fields)
    _link_tags(db, post, tags or [])
    db.flush()
    logger.info("Post %s created by user %s (published=%s)", post.slug, author_id, published)
    return post


def update_post(db: Session, post_id: int, requester_id: int, patch: Dict[str, Any]) -> Post:
    """
    Apply a partial update.

    Keys absent from ``patch`` (or set to None) are left unchanged. An empty
    ``cover_image`` string clears the image. ``tags`` replaces the whole tag
    set; an empty list removes every tag.
    """
    post = _load_owned(db, post_id, requester_id)
    changes = {k: v for k, v in patch.items() if k in UPDATABLE_FIELDS and v is not None}

    if "title" in changes:
        post.title = _require_text(changes["title"], "Title")
    if "content" in changes:
        post.content = _require_text(changes["content"], "Content")
        post.read_time = estimate_read_time(post.content)
    if "excerpt" in changes:
        post.excerpt = changes["excerpt"]
    if "cover_image" in changes:
        post.cover_image = changes["cover_image"] or None
    if "published" in changes:
        if changes["published"] and not post.published:
            post.published_at = utcnow()
        post.published = changes["published"]
    if "tags" in changes:
        post.tag_links.clear()
        db.flush()
        _link_tags(db, post, changes["tags"])

    db.flush()
    logger.info("Post %s updated by user %s", post.slug, requester_id)
    return post


def delete_post(db: Session, post_id: int, requester_id: int) -> None:
    post = _load_owned(db, post_id, requester_id)
    db.delete(post)
    db.flush()
    logger.info("Post %s deleted by user %s", post_id, requester_id)


def get_post(db: Session, id_or_slug: str, requester_id: Optional[int] = None) -> Post:
    """
    Look up a post by numeric id or slug.

    Drafts are visible to their author only; anyone else gets NotFound so a
    draft's existence is not revealed.
    """
    id_or_slug = str(id_or_slug)
    match = Post.slug == id_or_slug
    if _NUMERIC_ID.fullmatch(id_or_slug):
        match = or_(match, Post.id == int(id_or_slug))

    post = with_relations(db.query(Post)).filter(match).first()
    if post is None:
        raise NotFound("Post not found")
    if not post.published and post.author_id != requester_id:
        raise NotFound("Post not found")
    return post


def list_posts(
    db: Session,
    page: int = 1,
    limit: int = 10,
    tag: Optional[str] = None,
    author_id: Optional[int] = None,
    search: Optional[str] = None,
    drafts_only: bool = False,
    requester_id: Optional[int] = None,
) -> PostPage:
    """
    List posts newest-created first.

    With ``drafts_only`` the listing is the requester's own posts in any
    state, and ``author_id`` is ignored. Otherwise only published posts are
    listed.
    """
    conditions = []
    if drafts_only:
        if requester_id is None:
            raise Unauthorized()
        conditions.append(Post.author_id == requester_id)
    else:
        conditions.append(Post.published.is_(True))
        if author_id is not None:
            conditions.append(Post.author_id == author_id)

    if tag:
        conditions.append(Post.tag_links.any(PostTag.tag.has(Tag.slug == tag)))

    if search:
        conditions.append(
            or_(contains(Post.title, search), contains(Post.content, search), contains(Post.excerpt, search))
        )

    return paginate_posts(db, conditions, page, limit, [Post.created_at.desc(), Post.id.desc()])


def list_user_posts(db: Session, user_id: int, page: int = 1, limit: int = 10) -> PostPage:
    """Published posts of one author, newest-published first."""
    conditions = [Post.author_id == user_id, Post.published.is_(True)]
    return paginate_posts(db, conditions, page, limit, [Post.published_at.desc(), Post.id.desc()])
