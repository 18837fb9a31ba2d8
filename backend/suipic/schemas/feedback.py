from pydantic import Field, field_validator
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from suipic.models.enums import FlagType
from suipic.schemas.common import CamelModel
from suipic.schemas.users import UserBrief


class RatingRequest(CamelModel):
    rating: int = Field(ge=1, le=5)


class RatingResponse(CamelModel):
    id: UUID
    image_id: UUID
    user_id: UUID
    rating: int
    created_at: datetime
    updated_at: datetime


class FlagRequest(CamelModel):
    flag_type: FlagType


class FlagResponse(CamelModel):
    id: UUID
    image_id: UUID
    user_id: UUID
    flag_type: FlagType
    created_at: datetime
    updated_at: datetime


class CommentCreate(CamelModel):
    content: str = Field(min_length=1, max_length=5000)
    parent_id: Optional[UUID] = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Comment cannot be empty")
        return value


class CommentResponse(CamelModel):
    id: UUID
    image_id: UUID
    user_id: UUID
    parent_id: Optional[UUID] = None
    content: str
    created_at: datetime
    updated_at: datetime
    user: Optional[UserBrief] = None
    replies: List["CommentResponse"] = []


def comment_response(entry) -> CommentResponse:
    """Build a response from a threaded `CommentEntry`."""
    comment = entry.comment
    return CommentResponse(
        id=comment.id,
        image_id=comment.image_id,
        user_id=comment.user_id,
        parent_id=comment.parent_id,
        content=comment.content,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        user=UserBrief.model_validate(entry.author) if entry.author is not None else None,
        replies=[comment_response(reply) for reply in entry.replies],
    )
