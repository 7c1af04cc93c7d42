from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, UTC
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker
from aninotion.core.errors import InvalidTransition, ValidationFailed
from aninotion.models.post import Post, PostStatus
from aninotion.services.post_lifecycle import (
    count_words,
    estimate_reading_time,
    find_published,
    generate_excerpt,
    generate_unique_slug,
    increment_views,
    is_valid_status_transition,
    normalize_tags,
    prepare_for_save,
    restore,
    slugify,
    soft_delete,
    strip_markup,
    transition_status,
    truncate_at_word_boundary,
    visible_posts,
)


def words(n):
    return " ".join(f"word{i}" for i in range(n))


def make_post(**overrides):
    fields = {
        "title": "Test Post",
        "anime_name": "Test Anime",
        "category_id": "category-1",
        "content": "This is test content for the post.",
    }
    fields.update(overrides)
    return Post(**fields)


def naive(dt):
    """SQLite hands datetimes back without tzinfo"""
    return dt.replace(tzinfo=None)


class TestDerivationHelpers:
    def test_strip_markup(self):
        text = strip_markup("<p>This is a long content that should be excerpted...</p>")
        assert "<" not in text
        assert text == "This is a long content that should be excerpted..."

    def test_short_text_is_kept_verbatim(self):
        assert truncate_at_word_boundary("short text", 150) == "short text"

    def test_truncates_at_word_boundary(self):
        assert truncate_at_word_boundary("alpha beta gamma delta", 13) == "alpha beta..."

    def test_hard_cut_without_spaces(self):
        assert truncate_at_word_boundary("a" * 20, 10) == "a" * 10 + "..."

    def test_excerpt_default_length(self):
        excerpt = generate_excerpt("<p>" + words(100) + "</p>")
        assert excerpt.endswith("...")
        assert len(excerpt) <= 150 + len("...")
        assert "<" not in excerpt

    def test_count_words_ignores_markup(self):
        assert count_words("<p>one two</p>\n<b>three</b>") == 3
        assert count_words("") == 0

    @pytest.mark.parametrize("n,minutes", [(0, 1), (10, 1), (400, 2), (500, 3), (600, 3), (1000, 5)])
    def test_reading_time(self, n, minutes):
        assert estimate_reading_time(words(n)) == minutes

    def test_normalize_tags(self):
        assert normalize_tags(["Action", " ADVENTURE ", "shounen"]) == ["action", "adventure", "shounen"]

    def test_normalize_tags_drops_empty_and_keeps_duplicates(self):
        assert normalize_tags(["  ", "Mecha", "mecha ", ""]) == ["mecha", "mecha"]
        assert normalize_tags(None) == []

    def test_slugify(self):
        assert slugify("  Attack on Titan: Final Season! ") == "attack-on-titan-final-season"


class TestPrepareForSave:
    def test_derives_missing_fields(self):
        post = prepare_for_save(make_post(content="<p>This is a long content that should be excerpted...</p>"))
        assert post.excerpt == "This is a long content that should be excerpted..."
        assert "<" not in post.excerpt
        assert post.reading_time_minutes == 1
        assert post.status == PostStatus.PUBLISHED
        assert post.published_at is not None
        assert post.is_deleted is False

    def test_keeps_explicit_values(self):
        published_at = datetime(2024, 1, 1, tzinfo=UTC)
        post = prepare_for_save(make_post(
            content=words(600),
            excerpt="Hand written",
            reading_time_minutes=7,
            status=PostStatus.PUBLISHED,
            published_at=published_at,
        ))
        assert post.excerpt == "Hand written"
        assert post.reading_time_minutes == 7
        assert post.published_at == published_at

    def test_draft_has_no_publish_date(self):
        post = prepare_for_save(make_post(status=PostStatus.DRAFT))
        assert post.published_at is None

    def test_is_idempotent(self):
        post = make_post(content="<h1>Title</h1>" + words(450), tags=[" Action", "ROMANCE "])
        prepare_for_save(post)
        first = (post.excerpt, post.reading_time_minutes, post.published_at, list(post.tags), post.status)

        prepare_for_save(post, now=datetime.now(UTC) + timedelta(days=1))
        assert (post.excerpt, post.reading_time_minutes, post.published_at, list(post.tags), post.status) == first

    def test_normalizes_tags(self):
        post = prepare_for_save(make_post(tags=["Action", " ADVENTURE ", "shounen"]))
        assert list(post.tags) == ["action", "adventure", "shounen"]

    def test_reports_every_missing_field(self):
        post = Post(content="")
        with pytest.raises(ValidationFailed) as exc_info:
            prepare_for_save(post)
        assert set(exc_info.value.fields) == {"title", "anime_name", "category_id", "content"}
        assert exc_info.value.status_code == 422

    def test_rejects_markup_only_content(self):
        with pytest.raises(ValidationFailed) as exc_info:
            prepare_for_save(make_post(content="<br><p> </p>"))
        assert list(exc_info.value.fields) == ["content"]

    def test_rejects_invalid_status(self):
        post = make_post()
        post.status = "archived"
        with pytest.raises(ValidationFailed) as exc_info:
            prepare_for_save(post)
        assert list(exc_info.value.fields) == ["status"]


class TestStatusTransitions:
    @pytest.mark.parametrize("current,new,allowed", [
        ("draft", "published", True),
        ("draft", "scheduled", True),
        ("scheduled", "published", True),
        ("scheduled", "draft", True),
        ("published", "draft", True),
        ("published", "scheduled", False),
    ])
    def test_editor_transitions(self, current, new, allowed):
        assert is_valid_status_transition(current, new, "editor") is allowed

    def test_admin_may_do_any_transition(self):
        assert is_valid_status_transition("published", "scheduled", "admin") is True

    @pytest.mark.parametrize("role", ["viewer", "paid", None])
    def test_readers_may_not_change_status(self, role):
        assert is_valid_status_transition("draft", "published", role) is False

    def test_transition_status(self):
        editor = SimpleNamespace(id="editor-1", role="editor")
        post = make_post(status=PostStatus.PUBLISHED)
        with pytest.raises(InvalidTransition):
            transition_status(post, PostStatus.SCHEDULED, editor)
        transition_status(post, PostStatus.DRAFT, editor)
        assert post.status == PostStatus.DRAFT
        assert post.updated_by == "editor-1"


class TestPersistence:
    def test_defaults_on_create(self, session):
        post = make_post()
        session.add(post)
        session.commit()
        session.refresh(post)

        assert post.status == PostStatus.PUBLISHED
        assert post.views == 0
        assert post.likes_count == 0
        assert post.is_deleted is False
        assert post.excerpt == "This is test content for the post."
        assert post.reading_time_minutes == 1

    def test_publish_date_is_set_once(self, session):
        before = datetime.now(UTC)
        published = make_post(status=PostStatus.PUBLISHED)
        draft = make_post(title="Draft", status=PostStatus.DRAFT)
        session.add_all([published, draft])
        session.commit()

        assert draft.published_at is None
        assert naive(published.published_at) >= naive(before)

        stamp = published.published_at
        published.title = "Renamed"
        session.commit()
        assert published.published_at == stamp

    def test_publishing_a_draft_stamps_it(self, session):
        post = make_post(status=PostStatus.DRAFT)
        session.add(post)
        session.commit()

        post.status = PostStatus.PUBLISHED
        session.commit()
        assert post.published_at is not None

    def test_tags_are_stored_normalized(self, session):
        post = make_post(tags=["Action", " ADVENTURE ", "shounen"])
        session.add(post)
        session.commit()
        post_id = post.id
        session.expunge_all()

        assert list(session.get(Post, post_id).tags) == ["action", "adventure", "shounen"]

    def test_validation_failure_writes_nothing(self, session):
        session.add(make_post(anime_name=None))
        with pytest.raises(ValidationFailed) as exc_info:
            session.commit()
        assert list(exc_info.value.fields) == ["anime_name"]
        session.rollback()
        assert session.query(Post).count() == 0

    def test_content_change_keeps_explicit_derived_fields(self, session):
        post = make_post(excerpt="Custom")
        session.add(post)
        session.commit()

        post.content = words(600)
        session.commit()
        assert post.excerpt == "Custom"


class TestIncrementViews:
    def test_sequential_increments(self, session):
        post = make_post()
        session.add(post)
        session.commit()

        increment_views(session, post)
        session.commit()
        increment_views(session, post)
        session.commit()
        assert post.views == 2

    def test_concurrent_increments_are_not_lost(self, session):
        post = make_post()
        session.add(post)
        session.commit()
        post_id = post.id
        make_session = sessionmaker(bind=session.get_bind())

        def view(_):
            db = make_session()
            try:
                increment_views(db, db.get(Post, post_id))
                db.commit()
            finally:
                db.close()

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(view, range(20)))

        session.expire_all()
        assert session.get(Post, post_id).views == 20


class TestFindPublished:
    @pytest.fixture
    def posts(self, session):
        rows = {
            "published": make_post(title="Published", tags=["action"]),
            "draft": make_post(title="Draft", status=PostStatus.DRAFT, tags=["action"]),
            "scheduled": make_post(title="Scheduled", status=PostStatus.SCHEDULED, tags=["action"]),
            "deleted": make_post(title="Deleted", is_deleted=True, tags=["action"]),
            "other": make_post(title="Other", category_id="category-2", tags=["romance"]),
        }
        session.add_all(rows.values())
        session.commit()
        return rows

    def titles(self, session, query):
        return sorted(post.title for post in session.execute(query).scalars())

    def test_only_published_and_not_deleted(self, session, posts):
        assert self.titles(session, find_published()) == ["Other", "Published"]

    def test_extra_filter_cannot_reveal_hidden_rows(self, session, posts):
        assert self.titles(session, find_published({"tags": "action"})) == ["Published"]
        assert self.titles(session, find_published({"title": "Draft"})) == []

    def test_membership_and_equality(self, session, posts):
        query = find_published({"category_id": ["category-2", "category-3"]})
        assert self.titles(session, query) == ["Other"]
        query = find_published({"tags": ["Romance", "mecha"], "category_id": "category-2"})
        assert self.titles(session, query) == ["Other"]

    def test_unknown_field(self):
        with pytest.raises(ValueError):
            find_published({"password_hash": "x"})

    def test_staff_see_unpublished_posts(self, session, posts):
        editor = SimpleNamespace(role="editor")
        assert self.titles(session, visible_posts(editor)) == ["Draft", "Other", "Published", "Scheduled"]
        assert self.titles(session, visible_posts(editor, status=PostStatus.DRAFT)) == ["Draft"]
        assert self.titles(session, visible_posts(SimpleNamespace(role="paid"))) == ["Other", "Published"]
        assert self.titles(session, visible_posts(None)) == ["Other", "Published"]

    def test_disabled_staff_see_published_only(self, session, posts):
        for role in ("editor", "admin"):
            principal = SimpleNamespace(role=role, status="disabled")
            assert self.titles(session, visible_posts(principal)) == ["Other", "Published"]
            assert self.titles(session, visible_posts(principal, status=PostStatus.DRAFT)) == ["Other", "Published"]

    def test_soft_delete_and_restore(self, session, posts):
        actor = SimpleNamespace(id="admin-1")
        soft_delete(posts["published"], actor)
        session.commit()
        assert self.titles(session, find_published()) == ["Other"]

        restore(posts["published"], actor)
        session.commit()
        assert self.titles(session, find_published()) == ["Other", "Published"]


class TestUniqueSlug:
    def test_appends_counter(self, session):
        session.add(make_post(title="Naruto Review", slug="naruto-review"))
        session.add(make_post(title="Naruto Review", slug="naruto-review-1"))
        session.commit()
        assert generate_unique_slug(session, "Naruto Review") == "naruto-review-2"

    def test_excludes_own_post(self, session):
        post = make_post(title="Naruto Review", slug="naruto-review")
        session.add(post)
        session.commit()
        assert generate_unique_slug(session, "Naruto Review", exclude_id=post.id) == "naruto-review"
