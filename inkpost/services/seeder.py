from __future__ import annotations
import random
from datetime import timedelta
from typing import Sequence
from faker import Faker
from sqlalchemy.orm import Session

from inkpost.models import Comment, Follow, Like, Post, PostTag, Tag, User
from inkpost.security import hash_password
from inkpost.services.posts import estimate_read_time, normalize_tag_slug, slugify

SEED = 1337
DEMO_PASSWORD = "password123"

fake = Faker()


def seed_random_generators(seed: int = SEED) -> None:
    """Make every generator used below deterministic."""
    random.seed(seed)
    Faker.seed(seed)
    fake.seed_instance(seed)
    fake.unique.clear()


def make_users(db: Session, n_users: int) -> list[User]:
    # hashing is deliberately slow; every demo account shares one hash
    password_hash = hash_password(DEMO_PASSWORD)
    users = [
        User(
            email=fake.unique.email(),
            name=fake.name(),
            bio=fake.sentence(nb_words=12) if random.random() < 0.7 else None,
            password_hash=password_hash,
        )
        for _ in range(n_users)
    ]
    db.add_all(users); db.flush()
    return users


def make_tags(db: Session, n_tags: int) -> list[Tag]:
    # deterministic pool with some obvious topics
    base = [
        "Python", "Machine Learning", "Data Science", "Web Development", "Startups",
        "Productivity", "Design", "Writing", "Travel", "Health",
    ]
    while len(base) < n_tags:
        word = fake.unique.word().title()
        if word not in base:
            base.append(word)
    tags = [Tag(name=name, slug=normalize_tag_slug(name)) for name in base[:n_tags]]
    db.add_all(tags); db.flush()
    return tags


def make_posts(db: Session, users: Sequence[User], tags: Sequence[Tag], n_posts: int,
               frac_published: float = 0.85) -> list[Post]:
    posts: list[Post] = []
    for i in range(n_posts):
        author = random.choice(users)
        created = fake.date_time_between(start_date="-60d", end_date="now")
        title = fake.sentence(nb_words=random.randint(3, 8)).rstrip(".")
        content = "".join(f"<p>{p}</p>" for p in fake.paragraphs(nb=random.randint(3, 12)))
        published = random.random() < frac_published
        p = Post(
            author_id=author.id,
            title=title,
            # seeded rows share a clock, so the index keeps slugs unique
            slug=f"{slugify(title)}-{int(created.timestamp() * 1000)}-{i}",
            content=content,
            excerpt=fake.sentence(nb_words=20),
            published=published,
            published_at=created + timedelta(minutes=random.randint(0, 120)) if published else None,
            read_time=estimate_read_time(content),
            created_at=created,
            updated_at=created,
        )
        db.add(p); posts.append(p)
    db.flush()

    # attach 1-4 tags each, biased so popular tags appear more
    tag_ids = [t.id for t in tags]
    weights = [5 if t.name in ("Python", "Writing", "Startups") else 1 for t in tags]
    for p in posts:
        k = random.randint(1, 4)
        chosen = random.choices(tag_ids, weights=weights, k=k)
        chosen = list(dict.fromkeys(chosen))  # dedupe
        for tag_id in chosen:
            db.add(PostTag(post_id=p.id, tag_id=tag_id))
    db.flush()
    return posts


def make_comment_thread(db: Session, post: Post, users: Sequence[User], max_roots=3, max_replies=3):
    """
    Generate top-level comments for one post, each with up to two levels of replies.
    """
    def make_replies(parent: Comment, depth: int):
        if depth > 2:
            return
        for _ in range(random.randint(0, max(0, max_replies - depth))):
            when = parent.created_at + timedelta(minutes=random.randint(1, 90))
            c = Comment(
                post_id=post.id, author_id=random.choice(users).id, parent_id=parent.id,
                content=fake.sentence(), created_at=when, updated_at=when,
            )
            db.add(c); db.flush()
            make_replies(c, depth + 1)

    for _ in range(random.randint(0, max_roots)):
        when = post.created_at + timedelta(minutes=random.randint(1, 600))
        c = Comment(
            post_id=post.id, author_id=random.choice(users).id, parent_id=None,
            content=fake.paragraph(nb_sentences=2), created_at=when, updated_at=when,
        )
        db.add(c); db.flush()
        make_replies(c, 1)


def make_comments(db: Session, posts: Sequence[Post], users: Sequence[User], frac_with_threads=0.6):
    for p in posts:
        if p.published and random.random() < frac_with_threads:
            make_comment_thread(db, p, users)


def make_likes(db: Session, posts: Sequence[Post], users: Sequence[User], max_likes: int = 25):
    for p in posts:
        if not p.published:
            continue
        k = random.randint(0, min(max_likes, len(users)))
        for u in random.sample(list(users), k):
            db.add(Like(post_id=p.id, user_id=u.id))
    db.flush()


def make_follows(db: Session, users: Sequence[User], max_following: int = 15):
    for u in users:
        others = [o for o in users if o.id != u.id]
        k = random.randint(0, min(max_following, len(others)))
        for target in random.sample(others, k):
            db.add(Follow(follower_id=u.id, following_id=target.id))
    db.flush()
