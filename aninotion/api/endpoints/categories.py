import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session
from aninotion.core.access import admin_required, can_view_hidden, has_min_rank
from aninotion.core.errors import Forbidden
from aninotion.core.security import get_optional_current_user
from aninotion.db.database import get_session
from aninotion.models.category import Category
from aninotion.models.user import User
from aninotion.schemas.category import CategoryCreate, CategoryResponse
from aninotion.services.post_lifecycle import slugify

logger = logging.getLogger(__name__)

router = APIRouter()


def visible_categories(session: Session, principal: User | None, hidden: bool = False) -> list[Category]:
    """Categories ``principal`` may see, either the public or the hidden set"""
    if hidden and not can_view_hidden(principal):
        raise Forbidden("Hidden categories are available to paid members only")
    categories = session.execute(
        select(Category)
        .where(Category.is_hidden.is_(hidden))
        .order_by(Category.created_at.desc())
    ).scalars().all()
    return [c for c in categories if has_min_rank(principal, c.min_role)]


@router.get("", response_model=List[CategoryResponse], summary="List categories")
def list_categories(
    hidden: bool = False,
    current_user: User | None = Depends(get_optional_current_user),
    session: Session = Depends(get_session)
):
    """List the categories the caller may see"""
    categories = visible_categories(session, current_user, hidden)
    logger.debug("Listing %d categories (hidden=%s)", len(categories), hidden)
    return categories


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED, summary="Create a category")
def create_category(
    category: CategoryCreate,
    current_user: User = Depends(admin_required),
    session: Session = Depends(get_session)
):
    """Create a category"""
    slug = slugify(category.name)
    existing = session.execute(
        select(Category).where((Category.name == category.name) | (Category.slug == slug))
    ).scalar_one_or_none()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category already exists"
        )

    db_category = Category(
        name=category.name,
        slug=slug,
        is_default=False,
        is_hidden=category.is_hidden,
        min_role=category.min_role
    )
    session.add(db_category)
    session.commit()
    session.refresh(db_category)
    logger.info("Category %s (%s) created by %s", db_category.id, db_category.slug, current_user.id)
    return db_category


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a category")
def delete_category(
    category_id: str,
    current_user: User = Depends(admin_required),
    session: Session = Depends(get_session)
):
    """Delete a category; default categories are kept"""
    category = session.get(Category, category_id)
    if not category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found"
        )
    if category.is_default:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete default categories"
        )

    session.delete(category)
    session.commit()
    logger.info("Category %s deleted by %s", category_id, current_user.id)
    return None
