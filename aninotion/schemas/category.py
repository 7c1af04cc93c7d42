from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional
from aninotion.models.user import Role


class CategoryCreate(BaseModel):
    """Create category request"""
    name: str = Field(..., min_length=1, max_length=100, description="Category name")
    is_hidden: bool = Field(False, description="Only listed for paid members and above")
    min_role: Optional[Role] = Field(None, description="Lowest role that may see the category")


class CategoryResponse(BaseModel):
    id: str
    name: str
    slug: str
    is_default: bool
    is_hidden: bool
    min_role: Optional[Role] = None
    created_at: datetime

    class Config:
        from_attributes = True
