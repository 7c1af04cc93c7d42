from datetime import datetime, timedelta, UTC
import logging
from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from aninotion.core import config
from aninotion.core.access import admin_required, user_required
from aninotion.core.errors import Unauthenticated
from aninotion.core.security import (
    get_password_hash,
    verify_password,
    create_access_token,
)
from aninotion.db.database import get_session
from aninotion.models.user import Role, User, UserStatus
from aninotion.schemas.user import (
    RoleOption,
    RoleUpdate,
    StatusUpdate,
    Token,
    UserCreate,
    UserLogin,
    UserResponse,
    UserStats,
    UserUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_ROLES = [
    {"value": Role.VIEWER.value, "label": "Viewer"},
    {"value": Role.PAID.value, "label": "Paid"},
    {"value": Role.EDITOR.value, "label": "Editor"},
    {"value": Role.ADMIN.value, "label": "Admin"},
]


def parse_role_options(raw: str) -> list[dict]:
    """Parse ``value:Label,value:Label``; falls back to the default roles"""
    options = []
    for item in raw.split(","):
        value, _, label = item.strip().partition(":")
        value = value.strip()
        if not value:
            continue
        options.append({"value": value, "label": label.strip() or value})
    return options or DEFAULT_ROLES


def get_user_or_404(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_in: UserCreate,
    session: Annotated[Session, Depends(get_session)]
) -> User:
    """Create a new viewer account"""
    email = user_in.email.lower()
    result = session.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=400,
            detail="Email already registered"
        )

    user = User(
        email=email,
        name=user_in.name,
        password_hash=get_password_hash(user_in.password),
        role=Role.VIEWER,
        status=UserStatus.ACTIVE
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


@router.post("/login", response_model=Token)
def login(
    user_in: UserLogin,
    session: Annotated[Session, Depends(get_session)]
) -> dict:
    """Exchange email and password for a bearer token"""
    result = session.execute(select(User).where(User.email == user_in.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(user_in.password, user.password_hash):
        raise Unauthenticated("Incorrect email or password")
    if user.status == UserStatus.DELETED:
        raise Unauthenticated("Incorrect email or password")
    if user.status == UserStatus.DISABLED:
        raise Unauthenticated("User account is disabled")

    user.last_login_at = datetime.now(UTC)
    session.commit()

    access_token = create_access_token(
        data={"sub": user.id},
        expires_delta=timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserResponse)
def read_users_me(
    current_user: Annotated[User, Depends(user_required)]
) -> User:
    """Get the current user"""
    return current_user


@router.put("/me", response_model=UserResponse)
def update_user_me(
    user_update: UserUpdate,
    current_user: Annotated[User, Depends(user_required)],
    session: Annotated[Session, Depends(get_session)]
) -> User:
    """Update the current user"""
    if user_update.name is not None:
        current_user.name = user_update.name
    session.commit()
    session.refresh(current_user)
    return current_user


@router.get("/roles", response_model=List[RoleOption])
def list_roles(
    current_user: Annotated[User, Depends(admin_required)]
) -> list[dict]:
    """Roles an admin can assign"""
    if config.USER_ROLES:
        return parse_role_options(config.USER_ROLES)
    return DEFAULT_ROLES


@router.get("/stats", response_model=UserStats)
def user_stats(
    current_user: Annotated[User, Depends(admin_required)],
    session: Annotated[Session, Depends(get_session)]
) -> dict:
    """Account counts by role"""
    rows = session.execute(
        select(User.role, func.count(User.id)).group_by(User.role)
    ).all()
    total = session.scalar(select(func.count(User.id)))
    active = session.scalar(
        select(func.count(User.id)).where(User.status == UserStatus.ACTIVE)
    )
    return {
        "total_users": total,
        "active_users": active,
        "role_distribution": [{"role": role, "count": count} for role, count in rows],
    }


@router.get("", response_model=List[UserResponse])
def list_users(
    current_user: Annotated[User, Depends(admin_required)],
    session: Annotated[Session, Depends(get_session)]
) -> list[User]:
    """List all accounts, newest first"""
    return session.execute(select(User).order_by(User.created_at.desc())).scalars().all()


@router.put("/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: str,
    role_update: RoleUpdate,
    current_user: Annotated[User, Depends(admin_required)],
    session: Annotated[Session, Depends(get_session)]
) -> User:
    """Change another user's role"""
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot change your own role"
        )
    user = get_user_or_404(session, user_id)

    user.role = role_update.role
    user.updated_by = current_user.id
    session.commit()
    session.refresh(user)
    logger.info("User %s role set to %s by %s", user.id, user.role.value, current_user.id)
    return user


@router.put("/{user_id}/status", response_model=UserResponse)
def update_user_status(
    user_id: str,
    status_update: StatusUpdate,
    current_user: Annotated[User, Depends(admin_required)],
    session: Annotated[Session, Depends(get_session)]
) -> User:
    """Disable or re-enable another user's account"""
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot change your own status"
        )
    user = get_user_or_404(session, user_id)

    user.status = status_update.status
    user.updated_by = current_user.id
    session.commit()
    session.refresh(user)
    logger.info("User %s status set to %s by %s", user.id, user.status.value, current_user.id)
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    current_user: Annotated[User, Depends(admin_required)],
    session: Annotated[Session, Depends(get_session)]
):
    """Soft-delete another user's account; the row is kept"""
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )
    user = get_user_or_404(session, user_id)
    if user.status == UserStatus.DELETED:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    user.status = UserStatus.DELETED
    user.deleted_at = datetime.now(UTC)
    user.deleted_by = current_user.id
    user.updated_by = current_user.id
    session.commit()
    logger.info("User %s deleted by %s", user.id, current_user.id)
