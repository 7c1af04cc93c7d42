from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional
from aninotion.models.comment import MAX_COMMENT_LENGTH


class CommentBase(BaseModel):
    content: str = Field(..., min_length=1, max_length=MAX_COMMENT_LENGTH)


class CommentCreate(CommentBase):
    """Top-level comment, or a reply when ``parent_id`` is set"""
    parent_id: Optional[str] = None


class CommentUpdate(CommentBase):
    pass


class CommentResponse(CommentBase):
    id: str
    post_id: str
    author_id: str
    parent_id: Optional[str] = None
    is_edited: bool
    edited_at: Optional[datetime] = None
    likes_count: int = 0
    reply_count: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
