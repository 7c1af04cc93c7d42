import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session
from aninotion.core.access import (
    admin_required,
    can_view_hidden,
    editor_required,
    has_min_rank,
    is_staff,
)
from aninotion.core.errors import Forbidden
from aninotion.core.security import get_optional_current_user
from aninotion.db.database import get_session
from aninotion.models.category import Category
from aninotion.models.post import Post, PostStatus
from aninotion.models.user import User
from aninotion.schemas.post import PostCreate, PostUpdate, PostResponse
from aninotion.services.post_lifecycle import (
    generate_unique_slug,
    increment_views,
    restore,
    soft_delete,
    transition_status,
    visible_posts,
)
from typing import List, Optional

logger = logging.getLogger(__name__)

router = APIRouter()


def serialize_post(post: Post) -> dict:
    return {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "anime_name": post.anime_name,
        "category_id": post.category_id,
        "content": post.content,
        "excerpt": post.excerpt,
        "reading_time_minutes": post.reading_time_minutes,
        "status": post.status,
        "published_at": post.published_at,
        "is_deleted": post.is_deleted,
        "views": post.views,
        "likes_count": post.likes_count,
        "season_number": post.season_number,
        "episode_number": post.episode_number,
        "tags": list(post.tags),
        "created_by": post.created_by,
        "updated_by": post.updated_by,
        "created_at": post.created_at,
        "updated_at": post.updated_at,
    }


def get_post_or_404(session: Session, post_id: str, include_deleted: bool = False) -> Post:
    post = session.get(Post, post_id)
    if not post or (post.is_deleted and not include_deleted):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found"
        )
    return post


def get_category_or_404(session: Session, category_id: str) -> Category:
    category = session.get(Category, category_id)
    if not category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found"
        )
    return category


def check_category_access(category: Category | None, user: User | None) -> None:
    """Refuse posts in hidden or role-restricted categories"""
    if category is None:
        return
    if category.is_hidden and not can_view_hidden(user):
        raise Forbidden("Hidden categories are available to paid members only")
    if not has_min_rank(user, category.min_role):
        raise Forbidden(f"Access denied. Required role: {category.min_role.value} or higher")


def readable_category_ids(session: Session, user: User | None, hidden: bool) -> list[str]:
    categories = session.execute(
        select(Category).where(Category.is_hidden.is_(hidden))
    ).scalars().all()
    return [c.id for c in categories if has_min_rank(user, c.min_role)]


@router.get("", response_model=List[PostResponse], summary="List posts")
def list_posts(
    tag: Optional[str] = None,
    category_id: Optional[str] = None,
    anime_name: Optional[str] = None,
    status_filter: Optional[PostStatus] = Query(default=None, alias="status"),
    hidden: bool = False,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_optional_current_user)
):
    """List posts visible to the caller.

    Readers get published posts only. Editors and admins see drafts and
    scheduled posts too and may filter by ``status``. Posts in hidden
    categories are listed only with ``hidden=true``, for paid members and up.
    """
    if hidden and not can_view_hidden(current_user):
        raise Forbidden("Hidden categories are available to paid members only")

    extra_filter = {}
    if tag:
        extra_filter["tags"] = tag
    if anime_name:
        extra_filter["anime_name"] = anime_name
    if category_id:
        category = get_category_or_404(session, category_id)
        if category.is_hidden != hidden:
            return []
        check_category_access(category, current_user)
        extra_filter["category_id"] = category_id
    else:
        extra_filter["category_id"] = readable_category_ids(session, current_user, hidden)

    query = visible_posts(current_user, extra_filter, status=status_filter if is_staff(current_user) else None)
    query = query.order_by(Post.published_at.desc(), Post.created_at.desc()).offset(skip).limit(limit)
    posts = session.execute(query).scalars().all()
    return [serialize_post(post) for post in posts]


@router.get("/{post_id}", response_model=PostResponse, summary="Get a specific post")
def get_post(
    post_id: str,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_optional_current_user)
):
    """Get a post and count the view"""
    post = get_post_or_404(session, post_id)

    # Readers only see published posts; drafts look like missing posts to them
    if post.status != PostStatus.PUBLISHED and not is_staff(current_user):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found"
        )
    check_category_access(session.get(Category, post.category_id), current_user)

    if post.status == PostStatus.PUBLISHED:
        increment_views(session, post)
        session.commit()
        session.refresh(post)

    return serialize_post(post)


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED, summary="Create a new post")
def create_post(
    post_in: PostCreate,
    current_user: User = Depends(editor_required),
    session: Session = Depends(get_session)
):
    """Create a new post"""
    get_category_or_404(session, post_in.category_id)

    post = Post(
        **post_in.model_dump(),
        slug=generate_unique_slug(session, post_in.title),
        created_by=current_user.id,
        updated_by=current_user.id
    )
    session.add(post)
    session.commit()
    session.refresh(post)
    logger.info("Post %s created by %s with status %s", post.id, current_user.id, post.status.value)
    return serialize_post(post)


@router.put("/{post_id}", response_model=PostResponse, summary="Update a post")
def update_post(
    post_id: str,
    post_update: PostUpdate,
    current_user: User = Depends(editor_required),
    session: Session = Depends(get_session)
):
    """Update a post's fields.

    Changing the content re-derives the excerpt and reading time unless new
    values are sent alongside it.
    """
    post = get_post_or_404(session, post_id)
    changes = post_update.model_dump(exclude_unset=True)

    if changes.get("category_id"):
        get_category_or_404(session, changes["category_id"])
    if "content" in changes and changes["content"] != post.content:
        changes.setdefault("excerpt", None)
        changes.setdefault("reading_time_minutes", None)
    if changes.get("title") and changes["title"] != post.title:
        post.slug = generate_unique_slug(session, changes["title"], exclude_id=post.id)

    for field, value in changes.items():
        if field == "tags":
            post.tags = value or []
        else:
            setattr(post, field, value)
    post.updated_by = current_user.id

    session.commit()
    session.refresh(post)
    return serialize_post(post)


def _transition(session: Session, post_id: str, new_status: PostStatus, current_user: User) -> dict:
    post = get_post_or_404(session, post_id)
    transition_status(post, new_status, current_user)
    session.commit()
    session.refresh(post)
    return serialize_post(post)


@router.post("/{post_id}:publishPost", response_model=PostResponse, summary="Publish a post")
def publish_post(
    post_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(editor_required)
):
    """Publish a draft or scheduled post"""
    return _transition(session, post_id, PostStatus.PUBLISHED, current_user)


@router.post("/{post_id}:schedulePost", response_model=PostResponse, summary="Schedule a post")
def schedule_post(
    post_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(editor_required)
):
    """Queue a draft for publication"""
    return _transition(session, post_id, PostStatus.SCHEDULED, current_user)


@router.post("/{post_id}:draftPost", response_model=PostResponse, summary="Move a post back to draft")
def draft_post(
    post_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(editor_required)
):
    """Take a post back to draft"""
    return _transition(session, post_id, PostStatus.DRAFT, current_user)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Soft-delete a post")
def delete_post(
    post_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(editor_required)
):
    """Hide a post from every listing; the row is kept"""
    post = get_post_or_404(session, post_id)
    soft_delete(post, current_user)
    session.commit()
    return None


@router.post("/{post_id}:restorePost", response_model=PostResponse, summary="Restore a deleted post")
def restore_post(
    post_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(admin_required)
):
    """Bring back a soft-deleted post"""
    post = get_post_or_404(session, post_id, include_deleted=True)
    restore(post, current_user)
    session.commit()
    session.refresh(post)
    return serialize_post(post)
