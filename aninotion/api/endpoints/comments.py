import logging
from datetime import datetime, UTC
from typing import List, Literal
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from aninotion.api.endpoints.posts import check_category_access, get_post_or_404
from aninotion.core.access import is_staff, user_required
from aninotion.core.errors import Forbidden, ValidationFailed
from aninotion.core.security import get_optional_current_user
from aninotion.db.database import get_session
from aninotion.models.category import Category
from aninotion.models.comment import Comment
from aninotion.models.post import Post, PostStatus
from aninotion.models.user import Role, User
from aninotion.schemas.comment import CommentCreate, CommentResponse, CommentUpdate

logger = logging.getLogger(__name__)

router = APIRouter()
user_router = APIRouter()


def serialize_comment(comment: Comment, reply_count: int = 0) -> dict:
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "author_id": comment.author_id,
        "parent_id": comment.parent_id,
        "content": comment.content,
        "is_edited": comment.is_edited,
        "edited_at": comment.edited_at,
        "likes_count": comment.likes_count,
        "reply_count": reply_count,
        "created_at": comment.created_at,
        "updated_at": comment.updated_at,
    }


def reply_counts(session: Session, comment_ids: list[str]) -> dict[str, int]:
    if not comment_ids:
        return {}
    rows = session.execute(
        select(Comment.parent_id, func.count(Comment.id))
        .where(Comment.parent_id.in_(comment_ids), Comment.is_deleted.is_(False))
        .group_by(Comment.parent_id)
    ).all()
    return {parent_id: count for parent_id, count in rows}


def get_commentable_post(session: Session, post_id: str, user: User | None) -> Post:
    """The post, if ``user`` may read it and it takes comments"""
    post = get_post_or_404(session, post_id)
    if post.status != PostStatus.PUBLISHED:
        # readers cannot tell an unpublished post from a missing one
        if not is_staff(user):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Post not found"
            )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Comments are only available on published posts"
        )
    check_category_access(session.get(Category, post.category_id), user)
    return post


def get_comment_or_404(session: Session, post_id: str, comment_id: str, include_deleted: bool = False) -> Comment:
    comment = session.get(Comment, comment_id)
    if not comment or comment.post_id != post_id or (comment.is_deleted and not include_deleted):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Comment not found"
        )
    return comment


def check_comment_owner(comment: Comment, user: User, action: str) -> None:
    if comment.author_id != user.id and user.role != Role.ADMIN:
        raise Forbidden(f"You can only {action} your own comments")


def clean_content(content: str) -> str:
    content = content.strip()
    if not content:
        raise ValidationFailed({"content": "field required"})
    return content


@router.get("", response_model=List[CommentResponse], summary="List comments on a post")
def list_comments(
    post_id: str,
    sort_order: Literal["asc", "desc"] = "desc",
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_optional_current_user)
):
    """List top-level comments, newest first unless ``sort_order=asc``"""
    get_commentable_post(session, post_id, current_user)

    order = Comment.created_at.asc() if sort_order == "asc" else Comment.created_at.desc()
    comments = session.execute(
        select(Comment)
        .where(
            Comment.post_id == post_id,
            Comment.parent_id.is_(None),
            Comment.is_deleted.is_(False)
        )
        .order_by(order)
        .offset(skip)
        .limit(limit)
    ).scalars().all()
    counts = reply_counts(session, [c.id for c in comments])
    return [serialize_comment(c, counts.get(c.id, 0)) for c in comments]


@router.get("/{comment_id}/replies", response_model=List[CommentResponse], summary="List replies to a comment")
def list_replies(
    post_id: str,
    comment_id: str,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=10, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_optional_current_user)
):
    """List replies to a comment, oldest first"""
    get_commentable_post(session, post_id, current_user)
    get_comment_or_404(session, post_id, comment_id)

    replies = session.execute(
        select(Comment)
        .where(Comment.parent_id == comment_id, Comment.is_deleted.is_(False))
        .order_by(Comment.created_at.asc())
        .offset(skip)
        .limit(limit)
    ).scalars().all()
    counts = reply_counts(session, [r.id for r in replies])
    return [serialize_comment(r, counts.get(r.id, 0)) for r in replies]


@router.post("", response_model=CommentResponse, status_code=status.HTTP_201_CREATED, summary="Comment on a post")
def create_comment(
    post_id: str,
    comment_in: CommentCreate,
    current_user: User = Depends(user_required),
    session: Session = Depends(get_session)
):
    """Create a comment, or a reply when ``parent_id`` is given"""
    get_commentable_post(session, post_id, current_user)

    if comment_in.parent_id:
        parent = session.get(Comment, comment_in.parent_id)
        if not parent or parent.is_deleted:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Parent comment not found"
            )
        if parent.post_id != post_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Parent comment does not belong to this post"
            )

    comment = Comment(
        post_id=post_id,
        author_id=current_user.id,
        parent_id=comment_in.parent_id,
        content=clean_content(comment_in.content)
    )
    session.add(comment)
    session.commit()
    session.refresh(comment)
    logger.info("Comment %s created on post %s by %s", comment.id, post_id, current_user.id)
    return serialize_comment(comment)


@router.put("/{comment_id}", response_model=CommentResponse, summary="Edit a comment")
def update_comment(
    post_id: str,
    comment_id: str,
    comment_update: CommentUpdate,
    current_user: User = Depends(user_required),
    session: Session = Depends(get_session)
):
    """Edit a comment; only its author or an admin may"""
    get_commentable_post(session, post_id, current_user)
    comment = get_comment_or_404(session, post_id, comment_id, include_deleted=True)
    check_comment_owner(comment, current_user, "edit")
    if comment.is_deleted:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot update a deleted comment"
        )

    content = clean_content(comment_update.content)
    if content != comment.content:
        comment.content = content
        comment.is_edited = True
        comment.edited_at = datetime.now(UTC)

    session.commit()
    session.refresh(comment)
    return serialize_comment(comment, reply_counts(session, [comment.id]).get(comment.id, 0))


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a comment")
def delete_comment(
    post_id: str,
    comment_id: str,
    current_user: User = Depends(user_required),
    session: Session = Depends(get_session)
):
    """Soft-delete a comment; its replies stay but the thread hides them"""
    get_commentable_post(session, post_id, current_user)
    comment = get_comment_or_404(session, post_id, comment_id, include_deleted=True)
    check_comment_owner(comment, current_user, "delete")
    if comment.is_deleted:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This comment has already been deleted"
        )

    comment.is_deleted = True
    comment.deleted_at = datetime.now(UTC)
    comment.deleted_by = current_user.id
    session.commit()
    logger.info("Comment %s deleted by %s", comment.id, current_user.id)


@user_router.get("", response_model=List[CommentResponse], summary="List a user's comments")
def list_user_comments(
    user_id: str,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(user_required),
    session: Session = Depends(get_session)
):
    """A user's own comments, newest first; admins may list anyone's"""
    if user_id != current_user.id and current_user.role != Role.ADMIN:
        raise Forbidden("You can only view your own comments")

    comments = session.execute(
        select(Comment)
        .where(Comment.author_id == user_id, Comment.is_deleted.is_(False))
        .order_by(Comment.created_at.desc())
        .offset(skip)
        .limit(limit)
    ).scalars().all()
    counts = reply_counts(session, [c.id for c in comments])
    return [serialize_comment(c, counts.get(c.id, 0)) for c in comments]
