from fastapi import APIRouter
from aninotion.api.endpoints import (
    users,
    posts,
    categories,
    comments
)

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(comments.user_router, prefix="/users/{user_id}/comments", tags=["comments"])
api_router.include_router(posts.router, prefix="/posts", tags=["posts"])
api_router.include_router(comments.router, prefix="/posts/{post_id}/comments", tags=["comments"])
api_router.include_router(categories.router, prefix="/categories", tags=["categories"])
