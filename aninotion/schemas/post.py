from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from aninotion.models.post import PostStatus


class PostBase(BaseModel):
    """Fields an editor writes"""
    title: str = Field(..., min_length=1, max_length=200)
    anime_name: str = Field(..., min_length=1, max_length=200)
    category_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    excerpt: Optional[str] = Field(default=None, description="Derived from content when omitted")
    reading_time_minutes: Optional[int] = Field(default=None, ge=1, description="Derived from content when omitted")
    season_number: Optional[int] = Field(default=None, ge=1)
    episode_number: Optional[int] = Field(default=None, ge=1)
    tags: List[str] = Field(default_factory=list)


class PostCreate(PostBase):
    """Create request; published unless another status is given"""
    status: PostStatus = PostStatus.PUBLISHED


class PostUpdate(BaseModel):
    """Update request; omitted fields are left as they are"""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    anime_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category_id: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = Field(default=None, min_length=1)
    excerpt: Optional[str] = None
    reading_time_minutes: Optional[int] = Field(default=None, ge=1)
    season_number: Optional[int] = Field(default=None, ge=1)
    episode_number: Optional[int] = Field(default=None, ge=1)
    tags: Optional[List[str]] = None


class PostResponse(BaseModel):
    id: str
    title: str
    slug: Optional[str] = None
    anime_name: str
    category_id: str
    content: str
    excerpt: Optional[str] = None
    reading_time_minutes: Optional[int] = None
    status: PostStatus
    published_at: Optional[datetime] = None
    is_deleted: bool
    views: int
    likes_count: int
    season_number: Optional[int] = None
    episode_number: Optional[int] = None
    tags: List[str] = []
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
