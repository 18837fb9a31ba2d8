from pydantic import Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from uuid import UUID

from suipic.models.enums import FlagType
from suipic.schemas.common import CamelModel
from suipic.schemas.feedback import CommentResponse
from suipic.schemas.users import UserBrief


class ImageResponse(CamelModel):
    id: UUID
    album_id: UUID
    photographer_id: UUID
    storage_key: str
    original_filename: str
    caption: Optional[str] = None
    exif_data: Optional[Dict[str, Any]] = None
    width: int
    height: int
    created_at: datetime
    updated_at: datetime


class ImageUpdate(CamelModel):
    caption: Optional[str] = Field(default=None, max_length=5000)


class ImageDetailResponse(ImageResponse):
    """Image with a detail-view signed URL and its aggregated feedback."""

    photographer: Optional[UserBrief] = None
    image_url: str
    average_rating: Optional[float] = None
    rating_count: int = 0
    pick_count: int = 0
    reject_count: int = 0
    my_rating: Optional[int] = None
    my_flag: Optional[FlagType] = None
    comments: List[CommentResponse] = []
