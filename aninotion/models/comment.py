from datetime import datetime, UTC
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from aninotion.db.database import Base
import uuid

MAX_COMMENT_LENGTH = 5000


class Comment(Base):
    """Comment on a post; replies point at their parent comment"""
    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    post_id: Mapped[str] = mapped_column(String(36), index=True)  # Not using foreign key, only storing ID
    author_id: Mapped[str] = mapped_column(String(36), index=True)  # Not using foreign key, only storing ID
    parent_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("comments.id"),
        nullable=True,
        index=True
    )  # NULL for top-level comments
    content: Mapped[str] = mapped_column(Text)
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    edited_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    deleted_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    deleted_by: Mapped[str] = mapped_column(String(36), nullable=True)
    likes_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC)
    )
