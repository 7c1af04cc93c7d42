from datetime import datetime, UTC
import uuid
from sqlalchemy import Boolean, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column
from aninotion.db.database import Base
from aninotion.models.user import Role


class Category(Base):
    """Category model"""
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(100), unique=True)
    slug: Mapped[str] = mapped_column(String(120), unique=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)  # default categories cannot be deleted
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False)   # listed only for paid members and above
    # Lowest role allowed to see the category; NULL means public
    min_role: Mapped[Role] = mapped_column(
        Enum(Role, values_callable=lambda e: [m.value for m in e]),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(UTC))
