# tests/test_posts.py
"""Tests for post authoring, visibility and listing."""

from types import SimpleNamespace

import pytest

from inkpost.errors import Forbidden, NotFound, Unauthorized, ValidationError
from inkpost.models import Comment, Like, Post, PostTag, Tag
from inkpost.serializers import post_page_to_dict
from inkpost.services.posts import (
    count_words,
    create_post,
    delete_post,
    estimate_read_time,
    get_post,
    list_posts,
    list_user_posts,
    normalize_tag_slug,
    slugify,
    update_post,
    upsert_tag,
)
from inkpost.services.users import register_user


def words(n):
    return " ".join(f"word{i}" for i in range(n))


@pytest.fixture
def author(db):
    return register_user(db, email="author@example.com", password="secret123", name="Ada Author")


@pytest.fixture
def reader(db):
    return register_user(db, email="reader@example.com", password="secret123", name="Rex Reader")


class TestSlugs:
    """Slug derivation and uniqueness."""

    def test_slugify(self):
        assert slugify("Hello, World!") == "hello-world"
        assert slugify("  Python 3.12 -- what's new  ") == "python-3-12-what-s-new"
        assert slugify("!!!") == "post"

    def test_slug_has_timestamp_suffix(self, db, author):
        post = create_post(db, author.id, "Hello World", "Body text")
        prefix, _, stamp = post.slug.rpartition("-")
        assert prefix == "hello-world"
        assert stamp.isdigit()

    def test_rapid_creation_with_same_title_gives_distinct_slugs(self, db, author, monkeypatch):
        """Posts created in the same millisecond still get unique slugs."""
        monkeypatch.setattr("inkpost.services.posts.time", SimpleNamespace(time=lambda: 1700000000.0))

        slugs = [create_post(db, author.id, "Same Title", "Body").slug for _ in range(6)]

        assert len(set(slugs)) == 6
        assert slugs[0] == "same-title-1700000000000"
        assert all(s.startswith("same-title-1700000000000") for s in slugs)

    def test_slug_is_not_changed_by_title_update(self, db, author):
        post = create_post(db, author.id, "Original", "Body")
        slug = post.slug
        update_post(db, post.id, author.id, {"title": "Renamed"})
        assert post.title == "Renamed"
        assert post.slug == slug


class TestReadTime:
    """Read time is words / 200, rounded up, never below one."""

    def test_boundaries(self):
        assert estimate_read_time(words(200)) == 1
        assert estimate_read_time(words(201)) == 2
        assert estimate_read_time(words(400)) == 2
        assert estimate_read_time(words(401)) == 3

    def test_empty_content_reads_in_one_minute(self):
        assert estimate_read_time("<p></p>") == 1

    def test_markup_is_not_counted(self):
        assert count_words("<p><strong>one</strong> two<br/>three</p>") == 3

    def test_recomputed_on_content_change(self, db, author):
        post = create_post(db, author.id, "Long read", words(50))
        assert post.read_time == 1
        update_post(db, post.id, author.id, {"content": words(450)})
        assert post.read_time == 3


class TestCreatePost:
    """Creating posts."""

    def test_draft_has_no_publish_timestamp(self, db, author):
        post = create_post(db, author.id, "Draft", "Body")
        assert post.published is False
        assert post.published_at is None

    def test_published_post_gets_timestamp(self, db, author):
        post = create_post(db, author.id, "Live", "Body", published=True)
        assert post.published is True
        assert post.published_at is not None

    def test_blank_title_or_content_rejected(self, db, author):
        with pytest.raises(ValidationError):
            create_post(db, author.id, "   ", "Body")
        with pytest.raises(ValidationError):
            create_post(db, author.id, "Title", "")

    def test_tags_are_normalized_deduped_and_reused(self, db, author):
        first = create_post(db, author.id, "One", "Body", tags=["Machine Learning", "machine  learning", " ", "Python"])
        assert sorted(t.slug for t in first.tags) == ["machine-learning", "python"]

        second = create_post(db, author.id, "Two", "Body", tags=["PYTHON"])
        assert [t.id for t in second.tags] == [t.id for t in first.tags if t.slug == "python"]
        assert db.query(Tag).count() == 2

    def test_normalize_tag_slug(self):
        assert normalize_tag_slug("  Web   Development ") == "web-development"

    def test_empty_cover_image_is_stored_as_null(self, db, author):
        post = create_post(db, author.id, "Title", "Body", cover_image="")
        assert post.cover_image is None


class TestUpdatePost:
    """Partial updates, publishing and tag replacement."""

    def test_missing_post_is_not_found_even_for_non_owner(self, db, reader):
        with pytest.raises(NotFound):
            update_post(db, 9999, reader.id, {"title": "x"})

    def test_non_owner_is_forbidden(self, db, author, reader):
        post = create_post(db, author.id, "Mine", "Body")
        with pytest.raises(Forbidden):
            update_post(db, post.id, reader.id, {"title": "Theirs"})

    def test_publish_timestamp_is_idempotent(self, db, author):
        post = create_post(db, author.id, "Draft", "Body")

        update_post(db, post.id, author.id, {"published": True})
        first_published_at = post.published_at
        assert first_published_at is not None

        update_post(db, post.id, author.id, {"published": True, "title": "Still live"})
        assert post.published_at == first_published_at

    def test_unpublishing_keeps_timestamp(self, db, author):
        post = create_post(db, author.id, "Live", "Body", published=True)
        stamp = post.published_at
        update_post(db, post.id, author.id, {"published": False})
        assert post.published is False
        assert post.published_at == stamp

    def test_absent_fields_are_unchanged(self, db, author):
        post = create_post(db, author.id, "Title", "Body", excerpt="Short", tags=["keep"])
        update_post(db, post.id, author.id, {"title": "New title", "excerpt": None})
        assert post.excerpt == "Short"
        assert [t.slug for t in post.tags] == ["keep"]

    def test_empty_cover_image_clears(self, db, author):
        post = create_post(db, author.id, "Title", "Body", cover_image="https://img.example.com/a.png")
        update_post(db, post.id, author.id, {"cover_image": ""})
        assert post.cover_image is None

    def test_tags_replace_the_whole_set(self, db, author):
        post = create_post(db, author.id, "Title", "Body", tags=["a", "b"])
        update_post(db, post.id, author.id, {"tags": ["b", "c"]})
        assert sorted(t.slug for t in post.tags) == ["b", "c"]
        assert db.query(PostTag).filter(PostTag.post_id == post.id).count() == 2

    def test_empty_tag_list_clears_tags(self, db, author):
        post = create_post(db, author.id, "Title", "Body", tags=["a", "b"])
        update_post(db, post.id, author.id, {"tags": []})
        assert post.tags == []
        # tags themselves survive for other posts
        assert db.query(Tag).count() == 2


class TestDeletePost:
    """Deleting posts."""

    def test_delete_cascades_to_comments_and_likes(self, db, author, reader):
        post = create_post(db, author.id, "Doomed", "Body", published=True, tags=["x"])
        root = Comment(post_id=post.id, author_id=reader.id, content="root")
        db.add(root)
        db.flush()
        db.add(Comment(post_id=post.id, author_id=author.id, parent_id=root.id, content="reply"))
        db.add(Like(post_id=post.id, user_id=reader.id))
        db.flush()

        delete_post(db, post.id, author.id)

        assert db.get(Post, post.id) is None
        assert db.query(Comment).count() == 0
        assert db.query(Like).count() == 0
        assert db.query(PostTag).count() == 0
        assert db.query(Tag).count() == 1

    def test_ownership_checked_after_existence(self, db, author, reader):
        with pytest.raises(NotFound):
            delete_post(db, 12345, reader.id)

        post = create_post(db, author.id, "Mine", "Body")
        with pytest.raises(Forbidden):
            delete_post(db, post.id, reader.id)


class TestVisibility:
    """Drafts are visible to their author only."""

    def test_author_sees_draft_by_id_and_slug(self, db, author):
        post = create_post(db, author.id, "Secret", "Body")
        assert get_post(db, str(post.id), requester_id=author.id).id == post.id
        assert get_post(db, post.slug, requester_id=author.id).id == post.id

    def test_others_get_not_found(self, db, author, reader):
        post = create_post(db, author.id, "Secret", "Body")
        with pytest.raises(NotFound):
            get_post(db, post.slug, requester_id=reader.id)
        with pytest.raises(NotFound):
            get_post(db, post.slug)

    def test_unknown_post(self, db):
        with pytest.raises(NotFound):
            get_post(db, "no-such-post")

    def test_non_ascii_digits_are_treated_as_a_slug(self, db):
        with pytest.raises(NotFound):
            get_post(db, "²")
        with pytest.raises(NotFound):
            get_post(db, "١٢")

    def test_oversized_number_is_treated_as_a_slug(self, db):
        with pytest.raises(NotFound):
            get_post(db, "9" * 20)

    def test_numeric_looking_slug(self, db, author):
        post = create_post(db, author.id, "2024", "Body", published=True)
        assert get_post(db, post.slug).id == post.id


class TestConcurrentInserts:
    """Unique slugs claimed by another writer between lookup and insert."""

    def test_tag_created_by_another_writer_is_reused(self, db, monkeypatch):
        existing = upsert_tag(db, "Go")
        monkeypatch.setattr("inkpost.services.posts.find_tag", lambda db, slug: None)

        tag = upsert_tag(db, "go")

        assert tag.id == existing.id
        assert db.query(Tag).count() == 1

    def test_post_links_tag_that_lost_the_race(self, db, author, monkeypatch):
        first = create_post(db, author.id, "First", "Body", tags=["Go"])
        monkeypatch.setattr("inkpost.services.posts.find_tag", lambda db, slug: None)

        second = create_post(db, author.id, "Second", "Body", tags=["go", "Rust"])

        assert sorted(t.slug for t in second.tags) == ["go", "rust"]
        assert [t.id for t in second.tags if t.slug == "go"] == [first.tags[0].id]
        assert db.query(Tag).count() == 2
        # earlier work in the same transaction survives the failed insert
        assert db.get(Post, first.id) is not None

    def test_slug_claimed_at_insert_gets_suffix(self, db, author, monkeypatch):
        monkeypatch.setattr("inkpost.services.posts.time", SimpleNamespace(time=lambda: 1700000000.0))
        first = create_post(db, author.id, "Same Title", "Body")
        monkeypatch.setattr("inkpost.services.posts.slug_taken", lambda db, slug: False)

        second = create_post(db, author.id, "Same Title", "Body", tags=["kept"])

        assert first.slug == "same-title-1700000000000"
        assert second.slug.startswith("same-title-1700000000000-")
        assert [t.slug for t in second.tags] == ["kept"]
        assert db.query(Post).count() == 2

    def test_api_write_with_racing_tag(self, client, create_user, monkeypatch):
        user = create_user()
        client.post("/posts", json={"title": "One", "content": "Body", "tags": ["Go"]}, headers=user.headers)
        monkeypatch.setattr("inkpost.services.posts.find_tag", lambda db, slug: None)

        response = client.post("/posts", json={"title": "Two", "content": "Body", "tags": ["Go"]}, headers=user.headers)

        assert response.status_code == 201
        assert [t["slug"] for t in response.json()["post"]["tags"]] == ["go"]
        assert [t["postCount"] for t in client.get("/tags").json()["tags"]] == [2]


class TestListPosts:
    """Listing, filtering and pagination."""

    def test_only_published_newest_first(self, db, author):
        older = create_post(db, author.id, "Older", "Body", published=True)
        create_post(db, author.id, "Hidden", "Body")
        newer = create_post(db, author.id, "Newer", "Body", published=True)

        page = list_posts(db)
        assert [p.id for p in page.items] == [newer.id, older.id]
        assert page.total == 2

    def test_pagination(self, db, author):
        for i in range(25):
            create_post(db, author.id, f"Post {i}", "Body", published=True)

        page = list_posts(db, page=3, limit=10)
        assert page.total == 25
        assert page.total_pages == 3
        assert len(page.items) == 5
        assert post_page_to_dict(page)["pagination"] == {"page": 3, "limit": 10, "total": 25, "totalPages": 3}

    def test_invalid_paging(self, db):
        with pytest.raises(ValidationError):
            list_posts(db, page=0)
        with pytest.raises(ValidationError):
            list_posts(db, limit=101)

    def test_filters(self, db, author, reader):
        python = create_post(db, author.id, "Python tips", "Body", published=True, tags=["Python"])
        create_post(db, reader.id, "Rust notes", "All about Borrowing", published=True, tags=["Rust"])

        assert [p.id for p in list_posts(db, tag="python").items] == [python.id]
        assert [p.id for p in list_posts(db, author_id=author.id).items] == [python.id]
        assert [p.title for p in list_posts(db, search="borrow").items] == ["Rust notes"]
        assert list_posts(db, search="100%").items == []

    def test_drafts_listing_is_the_requesters_own_posts(self, db, author, reader):
        draft = create_post(db, author.id, "Draft", "Body")
        live = create_post(db, author.id, "Live", "Body", published=True)
        create_post(db, reader.id, "Reader draft", "Body")

        page = list_posts(db, drafts_only=True, requester_id=author.id, author_id=reader.id)
        assert {p.id for p in page.items} == {draft.id, live.id}

    def test_drafts_listing_requires_requester(self, db):
        with pytest.raises(Unauthorized):
            list_posts(db, drafts_only=True)

    def test_engagement_counts(self, db, author, reader):
        post = create_post(db, author.id, "Popular", "Body", published=True)
        db.add(Like(post_id=post.id, user_id=reader.id))
        db.add(Comment(post_id=post.id, author_id=reader.id, content="Nice"))
        db.flush()

        page = list_posts(db)
        assert page.counts[post.id] == {"comments": 1, "likes": 1}

    def test_user_posts_are_published_only(self, db, author):
        live = create_post(db, author.id, "Live", "Body", published=True)
        create_post(db, author.id, "Draft", "Body")
        assert [p.id for p in list_user_posts(db, author.id).items] == [live.id]


class TestPostsApi:
    """HTTP surface for posts."""

    def test_create_requires_auth(self, client):
        response = client.post("/posts", json={"title": "T", "content": "C"})
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_create_validation_message(self, client, create_user):
        user = create_user()
        response = client.post("/posts", json={"title": " ", "content": "C"}, headers=user.headers)
        assert response.status_code == 400
        assert response.json() == {"error": "Title is required"}

    def test_create_and_fetch(self, client, create_user):
        user = create_user()
        response = client.post(
            "/posts",
            json={"title": "Hello API", "content": words(250), "published": True, "tags": ["Web Dev"],
                  "coverImage": "https://img.example.com/c.png"},
            headers=user.headers,
        )
        assert response.status_code == 201
        post = response.json()["post"]
        assert post["readTime"] == 2
        assert post["author"]["id"] == user.id
        assert post["tags"][0]["slug"] == "web-dev"
        assert post["coverImage"] == "https://img.example.com/c.png"

        fetched = client.get(f"/posts/{post['slug']}").json()["post"]
        assert fetched["id"] == post["id"]
        assert fetched["isLiked"] is False
        assert fetched["likesCount"] == 0

    def test_update_clears_cover_image(self, client, create_user):
        user = create_user()
        post = client.post(
            "/posts",
            json={"title": "Cover", "content": "Body", "coverImage": "https://img.example.com/c.png"},
            headers=user.headers,
        ).json()["post"]

        response = client.put(f"/posts/{post['id']}", json={"coverImage": ""}, headers=user.headers)
        assert response.status_code == 200
        assert response.json()["post"]["coverImage"] is None

    def test_update_and_delete_status_codes(self, client, create_user):
        owner, other = create_user(), create_user()
        post = client.post("/posts", json={"title": "T", "content": "C"}, headers=owner.headers).json()["post"]

        assert client.put("/posts/9999", json={"title": "x"}, headers=other.headers).status_code == 404
        assert client.put(f"/posts/{post['id']}", json={"title": "x"}, headers=other.headers).status_code == 403
        assert client.delete(f"/posts/{post['id']}", headers=other.headers).status_code == 403

        response = client.delete(f"/posts/{post['id']}", headers=owner.headers)
        assert response.status_code == 200
        assert response.json() == {"message": "Post deleted successfully"}
        assert client.get(f"/posts/{post['id']}", headers=owner.headers).status_code == 404

    def test_draft_listing_over_http(self, client, create_user):
        user = create_user()
        client.post("/posts", json={"title": "Draft", "content": "C"}, headers=user.headers)

        assert client.get("/posts", params={"draft": "true"}).status_code == 401
        body = client.get("/posts", params={"draft": "true"}, headers=user.headers).json()
        assert [p["title"] for p in body["posts"]] == ["Draft"]
        assert body["pagination"] == {"page": 1, "limit": 10, "total": 1, "totalPages": 1}

        assert client.get("/posts").json()["posts"] == []

    def test_draft_visibility_scenario(self, client, create_user):
        """A draft is hidden until published; republishing keeps the timestamp."""
        a, b = create_user(), create_user()
        post = client.post("/posts", json={"title": "Scenario", "content": "Body"}, headers=a.headers).json()["post"]
        url = f"/posts/{post['slug']}"

        assert client.get(url, headers=b.headers).status_code == 404
        assert client.get(url, headers=a.headers).status_code == 200

        client.put(f"/posts/{post['id']}", json={"published": True}, headers=a.headers)
        response = client.get(url, headers=b.headers)
        assert response.status_code == 200
        published_at = response.json()["post"]["publishedAt"]
        assert published_at is not None

        client.put(f"/posts/{post['id']}", json={"published": True}, headers=a.headers)
        assert client.get(url, headers=b.headers).json()["post"]["publishedAt"] == published_at

    def test_lookup_of_odd_identifiers_is_not_found(self, client):
        assert client.get("/posts/%C2%B2").status_code == 404
        assert client.get("/posts/99999999999999999999").json() == {"error": "Post not found"}

    def test_out_of_range_ids_are_rejected(self, client, create_user):
        user = create_user()
        huge = "99999999999999999999"
        assert client.delete(f"/posts/{huge}", headers=user.headers).status_code == 400
        assert client.get(f"/posts/{huge}/comments").status_code == 400
        assert client.post(f"/users/{huge}/follow", headers=user.headers).status_code == 400
        assert client.get("/posts", params={"authorId": huge}).status_code == 400
