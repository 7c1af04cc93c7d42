from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from aninotion.models.user import Role, UserStatus


class UserBase(BaseModel):
    email: EmailStr
    name: str | None = Field(default=None, max_length=100)


class UserCreate(UserBase):
    password: str = Field(..., min_length=8)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)


class UserResponse(UserBase):
    id: str
    role: Role
    status: UserStatus
    created_at: datetime
    last_login_at: datetime | None = None

    class Config:
        from_attributes = True


class RoleUpdate(BaseModel):
    role: Role


class StatusUpdate(BaseModel):
    status: UserStatus


class RoleOption(BaseModel):
    value: str
    label: str


class RoleCount(BaseModel):
    role: Role
    count: int


class UserStats(BaseModel):
    total_users: int
    active_users: int
    role_distribution: list[RoleCount]


class Token(BaseModel):
    access_token: str
    token_type: str
