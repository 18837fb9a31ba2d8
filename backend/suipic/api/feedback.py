"""
Per-image feedback endpoints: the caller's rating and flag, and comments.
"""
from fastapi import APIRouter, Depends, status
from typing import List, Optional
from uuid import UUID

from suipic.api.auth import get_current_user
from suipic.core.errors import NotFound, ValidationFailed
from suipic.models import Comment, User
from suipic.schemas.common import ApiResponse
from suipic.schemas.feedback import (
    CommentCreate,
    CommentResponse,
    FlagRequest,
    FlagResponse,
    RatingRequest,
    RatingResponse,
    comment_response,
)
from suipic.services.access_control import AccessControl, ImageAction, get_access_control
from suipic.services.entity_store import EntityStore, get_entity_store
from suipic.services.feedback import CommentEntry, FeedbackAggregator, get_feedback_aggregator

router = APIRouter()


# Ratings
@router.post("/{image_id}/rating", response_model=ApiResponse[RatingResponse])
async def set_rating(
    image_id: UUID,
    request: RatingRequest,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    """Create or replace the caller's 1-5 rating."""
    image = await access.require_image(current_user, image_id, ImageAction.RATE)
    rating = await store.upsert_rating(image.id, current_user.id, request.rating)
    await store.commit()
    return ApiResponse(data=RatingResponse.model_validate(rating))


@router.get("/{image_id}/rating", response_model=ApiResponse[Optional[RatingResponse]])
async def get_rating(
    image_id: UUID,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    image = await access.require_image(current_user, image_id, ImageAction.VIEW)
    rating = await store.get_rating(image.id, current_user.id)
    return ApiResponse(data=RatingResponse.model_validate(rating) if rating else None)


@router.delete("/{image_id}/rating", response_model=ApiResponse[None])
async def delete_rating(
    image_id: UUID,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    image = await access.require_image(current_user, image_id, ImageAction.RATE)
    if not await store.delete_rating(image.id, current_user.id):
        raise NotFound("Rating not found")
    await store.commit()
    return ApiResponse(message="Rating removed")


# Flags
@router.post("/{image_id}/flag", response_model=ApiResponse[FlagResponse])
async def set_flag(
    image_id: UUID,
    request: FlagRequest,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    """Set the caller's pick/reject flag; "none" clears it but keeps the row."""
    image = await access.require_image(current_user, image_id, ImageAction.FLAG)
    flag = await store.upsert_flag(image.id, current_user.id, request.flag_type)
    await store.commit()
    return ApiResponse(data=FlagResponse.model_validate(flag))


@router.get("/{image_id}/flag", response_model=ApiResponse[Optional[FlagResponse]])
async def get_flag(
    image_id: UUID,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    image = await access.require_image(current_user, image_id, ImageAction.VIEW)
    flag = await store.get_flag(image.id, current_user.id)
    return ApiResponse(data=FlagResponse.model_validate(flag) if flag else None)


@router.delete("/{image_id}/flag", response_model=ApiResponse[None])
async def delete_flag(
    image_id: UUID,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    image = await access.require_image(current_user, image_id, ImageAction.FLAG)
    if not await store.delete_flag(image.id, current_user.id):
        raise NotFound("Flag not found")
    await store.commit()
    return ApiResponse(message="Flag removed")


# Comments
@router.get("/{image_id}/comments", response_model=ApiResponse[List[CommentResponse]])
async def list_comments(
    image_id: UUID,
    current_user: User = Depends(get_current_user),
    access: AccessControl = Depends(get_access_control),
    aggregator: FeedbackAggregator = Depends(get_feedback_aggregator),
):
    """Threads newest first, each with its replies in posting order."""
    image = await access.require_image(current_user, image_id, ImageAction.VIEW)
    threads = await aggregator.comment_threads(image.id)
    return ApiResponse(data=[comment_response(entry) for entry in threads])


@router.post(
    "/{image_id}/comments",
    response_model=ApiResponse[CommentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    image_id: UUID,
    request: CommentCreate,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    image = await access.require_image(current_user, image_id, ImageAction.COMMENT)

    if request.parent_id is not None:
        parent = await store.get_comment(request.parent_id)
        if parent is None or parent.image_id != image.id:
            raise ValidationFailed("Parent comment not found")

    comment = await store.create_comment(Comment(
        image_id=image.id,
        user_id=current_user.id,
        parent_id=request.parent_id,
        content=request.content,
    ))
    await store.commit()
    return ApiResponse(data=comment_response(CommentEntry(comment=comment, author=current_user)))


@router.delete("/{image_id}/comments/{comment_id}", response_model=ApiResponse[None])
async def delete_comment(
    image_id: UUID,
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    """Authors delete their own comments; replies go with them."""
    comment = await access.require_comment_deletion(current_user, image_id, comment_id)
    await store.delete_comment(comment)
    await store.commit()
    return ApiResponse(message="Comment deleted")
