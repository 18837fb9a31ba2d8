from pydantic import Field
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from suipic.models.enums import DisplayMode, FlagType
from suipic.schemas.common import CamelModel
from suipic.schemas.images import ImageResponse
from suipic.schemas.users import UserBrief


class AlbumCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    display_mode: DisplayMode = DisplayMode.GRID


class AlbumUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    display_mode: Optional[DisplayMode] = None


class AlbumResponse(CamelModel):
    id: UUID
    owner_id: UUID
    name: str
    description: Optional[str] = None
    display_mode: DisplayMode
    created_at: datetime
    updated_at: datetime


class AlbumListItem(AlbumResponse):
    owner: Optional[UserBrief] = None
    image_count: int = 0


class AlbumDetailResponse(AlbumResponse):
    owner: Optional[UserBrief] = None
    collaborators: List[UserBrief] = []
    clients: List[UserBrief] = []
    images: List[ImageResponse] = []


class CollaboratorAdd(CamelModel):
    photographer_id: UUID


class ClientAdd(CamelModel):
    client_id: UUID


class RaterResponse(CamelModel):
    user_id: UUID
    user_name: str
    rating: int


class FlaggerResponse(CamelModel):
    user_id: UUID
    user_name: str
    flag: FlagType


class ImageSummaryResponse(CamelModel):
    image_id: UUID
    original_filename: str
    photographer_name: str
    average_rating: Optional[float] = None
    rating_count: int
    pick_count: int
    reject_count: int
    ratings: List[RaterResponse] = []
    flags: List[FlaggerResponse] = []


class AlbumSummaryResponse(CamelModel):
    """Per-image feedback for the album's photographers."""

    album_id: UUID
    album_name: str
    images: List[ImageSummaryResponse] = []
