from datetime import datetime
from enum import Enum

from pydantic import BaseModel, field_validator

COMMENT_MAX_LENGTH = 500


class ReactionType(str, Enum):
    like = "like"
    fire = "fire"


class CommentCreate(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def content_length(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be empty.")
        if len(v) > COMMENT_MAX_LENGTH:
            raise ValueError(f"Comment must be at most {COMMENT_MAX_LENGTH} characters.")
        return v


class CommentResponse(BaseModel):
    id: str
    tip_id: str
    user_id: str
    username: str = "User"
    content: str
    created_at: datetime
