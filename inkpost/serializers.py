"""Turn ORM rows into the camelCase JSON bodies the API returns."""

from datetime import datetime
from typing import Dict, Optional

from inkpost.models import Comment, Post, Tag, User


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def user_summary(user: User) -> Dict:
    return {"id": user.id, "name": user.name, "image": user.image}


def user_to_dict(user: User) -> Dict:
    """Full account view. The password hash is never included."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "bio": user.bio,
        "image": user.image,
        "createdAt": _iso(user.created_at),
    }


def tag_to_dict(tag: Tag, post_count: Optional[int] = None) -> Dict:
    data = {"id": tag.id, "name": tag.name, "slug": tag.slug}
    if post_count is not None:
        data["postCount"] = post_count
    return data


def post_to_dict(post: Post, counts: Optional[Dict[str, int]] = None) -> Dict:
    counts = counts or {}
    return {
        "id": post.id,
        "slug": post.slug,
        "title": post.title,
        "content": post.content,
        "excerpt": post.excerpt,
        "coverImage": post.cover_image,
        "published": post.published,
        "publishedAt": _iso(post.published_at),
        "readTime": post.read_time,
        "authorId": post.author_id,
        "author": user_summary(post.author),
        "tags": [tag_to_dict(tag) for tag in post.tags],
        "commentsCount": counts.get("comments", 0),
        "likesCount": counts.get("likes", 0),
        "createdAt": _iso(post.created_at),
        "updatedAt": _iso(post.updated_at),
    }


def comment_to_dict(comment: Comment, depth: int = 0) -> Dict:
    """
    Serialize a comment and ``depth`` levels of its replies.

    Replies below the requested depth are left out entirely; the caller picks
    how deep the thread is rendered.
    """
    data = {
        "id": comment.id,
        "content": comment.content,
        "postId": comment.post_id,
        "parentId": comment.parent_id,
        "authorId": comment.author_id,
        "author": user_summary(comment.author),
        "createdAt": _iso(comment.created_at),
        "updatedAt": _iso(comment.updated_at),
    }
    if depth > 0:
        data["replies"] = [comment_to_dict(reply, depth - 1) for reply in comment.replies]
    return data


def pagination(page) -> Dict:
    """Paging block for a ``PostPage``."""
    return {"page": page.page, "limit": page.limit, "total": page.total, "totalPages": page.total_pages}


def post_page_to_dict(page) -> Dict:
    """``{posts, pagination}`` body for a ``PostPage``."""
    return {
        "posts": [post_to_dict(post, page.counts.get(post.id)) for post in page.items],
        "pagination": pagination(page),
    }
