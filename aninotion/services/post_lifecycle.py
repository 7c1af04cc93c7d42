"""Post lifecycle: derived fields, status transitions, visibility queries.

``prepare_for_save`` runs before every flush of a new or changed ``Post``
(see ``aninotion.models.post``). It only fills fields that are unset, so
running it again on a prepared post changes nothing.
"""
import logging
import math
import re
import secrets
from datetime import datetime, UTC
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import Select, select, update
from sqlalchemy.orm import Session

from aninotion.core import config
from aninotion.core.access import is_staff
from aninotion.core.errors import InvalidTransition, ValidationFailed
from aninotion.models.post import Post, PostStatus
from aninotion.models.post_tag import PostTag
from aninotion.models.user import Role

logger = logging.getLogger(__name__)

MARKUP_RE = re.compile(r"<[^>]*>")
ELLIPSIS = "..."
MAX_TAG_LENGTH = 50
REQUIRED_FIELDS = ("title", "anime_name", "category_id", "content")

# Editors follow this table; admins may move between any two states
EDITOR_TRANSITIONS = {
    PostStatus.DRAFT: {PostStatus.PUBLISHED, PostStatus.SCHEDULED},
    PostStatus.SCHEDULED: {PostStatus.DRAFT, PostStatus.PUBLISHED},
    PostStatus.PUBLISHED: {PostStatus.DRAFT},
}

# Columns callers may constrain in find_published
FILTERABLE_FIELDS = {
    "id", "title", "slug", "anime_name", "category_id", "created_by",
    "season_number", "episode_number", "tags",
}


def strip_markup(text: Optional[str]) -> str:
    if not text:
        return ""
    return MARKUP_RE.sub("", text).strip()


def truncate_at_word_boundary(text: str, length: int) -> str:
    """Cut ``text`` to ``length`` at the last space, adding an ellipsis.

    Text that already fits is returned verbatim.
    """
    if len(text) <= length:
        return text
    truncated = text[:length]
    last_space = truncated.rfind(" ")
    if last_space > 0:
        truncated = truncated[:last_space]
    return truncated.rstrip() + ELLIPSIS


def generate_excerpt(content: Optional[str], length: Optional[int] = None) -> str:
    return truncate_at_word_boundary(strip_markup(content), length or config.EXCERPT_LENGTH)


def count_words(content: Optional[str]) -> int:
    return len(strip_markup(content).split())


def estimate_reading_time(content: Optional[str], words_per_minute: Optional[int] = None) -> int:
    """Minutes to read ``content``, rounded half up, at least 1"""
    wpm = words_per_minute or config.WORDS_PER_MINUTE
    return max(1, math.floor(count_words(content) / wpm + 0.5))


def normalize_tags(tags: Optional[Iterable[str]]) -> list[str]:
    """Trim and lowercase each tag, dropping the ones left empty.

    Order and duplicates are kept as given.
    """
    if not tags:
        return []
    normalized = []
    for tag in tags:
        if tag is None:
            continue
        value = str(tag).strip().lower()
        if value:
            normalized.append(value)
    return normalized


def slugify(title: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", title.lower().strip())
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def validate_post(post: Post) -> None:
    """Raise ``ValidationFailed`` listing every missing or invalid field"""
    errors = {}
    for field in REQUIRED_FIELDS:
        value = getattr(post, field)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors[field] = "field required"
    # the excerpt and reading time are derived from the text left after stripping
    if "content" not in errors and not strip_markup(post.content):
        errors["content"] = "content has no text once markup is removed"

    if post.status is not None:
        try:
            PostStatus(post.status)
        except ValueError:
            errors["status"] = f"'{post.status}' is not one of {[s.value for s in PostStatus]}"

    for field in ("season_number", "episode_number"):
        value = getattr(post, field)
        if value is not None and value < 1:
            errors[field] = "must be a positive number"

    if any(len(tag) > MAX_TAG_LENGTH for tag in normalize_tags(post.tags)):
        errors["tags"] = f"tags must be at most {MAX_TAG_LENGTH} characters"

    if errors:
        raise ValidationFailed(errors)


def prepare_for_save(post: Post, now: Optional[datetime] = None) -> Post:
    """Validate ``post`` and fill in whatever derived fields are unset"""
    validate_post(post)

    if post.status is None:
        post.status = PostStatus.PUBLISHED
    else:
        post.status = PostStatus(post.status)
    if post.is_deleted is None:
        post.is_deleted = False

    if not post.excerpt and post.content:
        post.excerpt = generate_excerpt(post.content)

    if post.reading_time_minutes is None:
        post.reading_time_minutes = estimate_reading_time(post.content)

    if post.status == PostStatus.PUBLISHED and post.published_at is None:
        post.published_at = now or datetime.now(UTC)

    current_tags = list(post.tags)
    normalized = normalize_tags(current_tags)
    if normalized != current_tags:
        post.tags = normalized

    return post


def is_valid_status_transition(current: Any, new: Any, role: Any) -> bool:
    current, new = PostStatus(current), PostStatus(new)
    role = getattr(role, "value", role)
    if role == Role.ADMIN.value:
        return True
    if role == Role.EDITOR.value:
        return current == new or new in EDITOR_TRANSITIONS[current]
    return False


def transition_status(post: Post, new_status: PostStatus, actor: Any) -> Post:
    """Move ``post`` to ``new_status`` on behalf of ``actor``.

    Raises ``InvalidTransition`` when the actor's role may not make that move.
    """
    current = PostStatus(post.status)
    if not is_valid_status_transition(current, new_status, actor.role):
        raise InvalidTransition(
            f"Cannot move a {current.value} post to {PostStatus(new_status).value}"
        )
    post.status = PostStatus(new_status)
    post.updated_by = actor.id
    logger.info("Post %s moved from %s to %s by %s", post.id, current.value, post.status.value, actor.id)
    return post


def increment_views(session: Session, post: Post) -> None:
    """Add one view with a relative UPDATE so concurrent readers never lose a count.

    The caller owns the transaction.
    """
    session.execute(
        update(Post)
        .where(Post.id == post.id)
        .values(views=Post.views + 1)
        .execution_options(synchronize_session=False)
    )
    session.expire(post, ["views"])


def _apply_filter(query: Select, extra_filter: Optional[Mapping[str, Any]]) -> Select:
    for field, value in (extra_filter or {}).items():
        if field not in FILTERABLE_FIELDS:
            raise ValueError(f"Cannot filter posts by '{field}'")
        if field == "tags":
            names = normalize_tags([value] if isinstance(value, str) else value)
            query = query.where(Post.tag_links.any(PostTag.name.in_(names)))
        elif isinstance(value, (list, tuple, set, frozenset)):
            query = query.where(getattr(Post, field).in_(list(value)))
        else:
            query = query.where(getattr(Post, field) == value)
    return query


def find_published(extra_filter: Optional[Mapping[str, Any]] = None) -> Select:
    """Select published, non-deleted posts also matching ``extra_filter``.

    Scalars match by equality, collections by membership, and ``tags``
    matches posts carrying any of the given tags. No ordering is applied.
    """
    query = select(Post).where(
        Post.status == PostStatus.PUBLISHED,
        Post.is_deleted.is_(False),
    )
    return _apply_filter(query, extra_filter)


def visible_posts(principal: Any, extra_filter: Optional[Mapping[str, Any]] = None,
                  status: Optional[PostStatus] = None) -> Select:
    """Posts ``principal`` may list.

    Readers (anonymous, viewer, paid, or any disabled account) only see
    published posts; active editors and admins see every non-deleted post
    and may narrow by ``status``.
    """
    if not is_staff(principal):
        return find_published(extra_filter)

    query = select(Post).where(Post.is_deleted.is_(False))
    if status is not None:
        query = query.where(Post.status == status)
    return _apply_filter(query, extra_filter)


def generate_unique_slug(session: Session, title: str, exclude_id: Optional[str] = None) -> str:
    base = slugify(title) or "post"

    def taken(slug: str) -> bool:
        query = select(Post.id).where(Post.slug == slug)
        if exclude_id:
            query = query.where(Post.id != exclude_id)
        return session.execute(query).first() is not None

    slug = base
    for counter in range(1, 10):
        if not taken(slug):
            return slug
        slug = f"{base}-{counter}"
    if not taken(slug):
        return slug
    return f"{base}-{secrets.token_hex(4)}"


def soft_delete(post: Post, actor: Any) -> Post:
    post.is_deleted = True
    post.updated_by = actor.id
    logger.info("Post %s soft-deleted by %s", post.id, actor.id)
    return post


def restore(post: Post, actor: Any) -> Post:
    post.is_deleted = False
    post.updated_by = actor.id
    logger.info("Post %s restored by %s", post.id, actor.id)
    return post
