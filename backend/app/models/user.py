from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, field_validator


class Role(str, Enum):
    user = "user"
    moderator = "moderator"
    admin = "admin"


def _password_strength(v: str) -> str:
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters long.")
    if not any(c.isdigit() for c in v):
        raise ValueError("Password must contain at least one digit.")
    return v


class UserInDB(BaseModel):
    """Full user document as stored in MongoDB."""
    email: EmailStr
    hashed_password: str
    username: str
    roles: list[Role] = [Role.user]
    created_at: datetime
    updated_at: datetime


class UserCreate(BaseModel):
    """Request body for registration."""
    email: EmailStr
    password: str
    username: Optional[str] = None

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _password_strength(v)

    @field_validator("username")
    @classmethod
    def username_length(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if len(v) > 50:
            raise ValueError("Username must be at most 50 characters.")
        return v or None


class UserLogin(BaseModel):
    """Request body for login."""
    email: EmailStr
    password: str


class RoleChange(BaseModel):
    """Admin request body for granting or revoking an elevated role."""
    role: Role

    @field_validator("role")
    @classmethod
    def elevated_only(cls, v: Role) -> Role:
        if v == Role.user:
            raise ValueError("The base user role cannot be changed.")
        return v


class UserResponse(BaseModel):
    """Public user data returned to the client."""
    id: str
    email: str
    username: str
    role: Role
    is_moderator: bool
    created_at: datetime
