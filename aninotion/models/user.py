from datetime import datetime, UTC
import enum
import uuid
from sqlalchemy import String, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column
from aninotion.db.database import Base


class Role(str, enum.Enum):
    """User role, lowest to highest privilege"""
    VIEWER = "viewer"
    PAID = "paid"      # Paying member, may see hidden categories
    EDITOR = "editor"  # Can write and publish posts
    ADMIN = "admin"    # Manages users and categories


class UserStatus(str, enum.Enum):
    """Account status"""
    ACTIVE = "active"
    DISABLED = "disabled"  # Kept for history, never granted anything
    DELETED = "deleted"    # Removed by an admin; the row stays


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=True)
    password_hash: Mapped[str] = mapped_column(String)
    role: Mapped[Role] = mapped_column(
        Enum(Role, values_callable=lambda e: [m.value for m in e]),
        default=Role.VIEWER,
        nullable=False,
        index=True
    )
    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus, values_callable=lambda e: [m.value for m in e]),
        default=UserStatus.ACTIVE,
        nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC)
    )
    updated_by: Mapped[str] = mapped_column(String(36), nullable=True)  # Not using foreign key, only storing ID
    last_login_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    deleted_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    deleted_by: Mapped[str] = mapped_column(String(36), nullable=True)
