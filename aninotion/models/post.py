from sqlalchemy import Column, String, Enum, DateTime, Integer, Boolean, Text, event
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Session, relationship
from aninotion.db.database import Base
from aninotion.models.post_tag import PostTag
from datetime import datetime, UTC
from enum import Enum as PyEnum
import uuid


class PostStatus(str, PyEnum):
    """Post status"""
    DRAFT = "draft"          # Only visible to editors and admins
    SCHEDULED = "scheduled"  # Queued for publication, not yet public
    PUBLISHED = "published"  # Visible to readers


class Post(Base):
    """Post model"""
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String, nullable=False)
    slug = Column(String, index=True)
    anime_name = Column(String, nullable=False)
    category_id = Column(String(36), nullable=False, index=True)  # Not using foreign key, only storing ID
    content = Column(Text, nullable=False)
    excerpt = Column(String)
    reading_time_minutes = Column(Integer)  # NULL until derived
    status = Column(
        Enum(PostStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PostStatus.PUBLISHED
    )
    published_at = Column(DateTime(timezone=True))
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    views = Column(Integer, nullable=False, default=0)
    likes_count = Column(Integer, nullable=False, default=0)
    season_number = Column(Integer)
    episode_number = Column(Integer)
    created_by = Column(String(36))
    updated_by = Column(String(36))
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))

    tag_links = relationship(
        PostTag,
        order_by=PostTag.position,
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    tags = association_proxy("tag_links", "name", creator=lambda name: PostTag(name=name))


@event.listens_for(Session, "before_flush")
def prepare_posts_before_flush(session, flush_context, instances):
    """Validate and derive fields on every new or changed post"""
    from aninotion.services.post_lifecycle import prepare_for_save

    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, Post):
            prepare_for_save(obj)
