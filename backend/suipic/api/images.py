"""
Image endpoints: upload into an album, detail view, caption edits,
deletion and the signed file redirect.
"""
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import RedirectResponse
from typing import Optional
from uuid import UUID
import logging

from starlette.concurrency import run_in_threadpool

from suipic.api.auth import get_current_user
from suipic.core.config import settings
from suipic.models import Image, User
from suipic.schemas.common import ApiResponse
from suipic.schemas.feedback import comment_response
from suipic.schemas.images import ImageDetailResponse, ImageResponse, ImageUpdate
from suipic.schemas.users import UserBrief
from suipic.services.access_control import AccessControl, AlbumAction, ImageAction, get_access_control
from suipic.services.entity_store import EntityStore, get_entity_store
from suipic.services.feedback import FeedbackAggregator, get_feedback_aggregator
from suipic.services.media_pipeline import MediaIngestionPipeline, get_media_pipeline
from suipic.services.storage_factory import cleanup_message, delete_stored_objects, get_storage
from suipic.services.storage_interface import StorageInterface

logger = logging.getLogger(__name__)

router = APIRouter()
album_images_router = APIRouter()


@album_images_router.post(
    "/{album_id}/images",
    response_model=ApiResponse[ImageResponse],
    status_code=status.HTTP_201_CREATED,
)
async def upload_image(
    album_id: UUID,
    file: UploadFile = File(...),
    caption: Optional[str] = Form(None),
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
    pipeline: MediaIngestionPipeline = Depends(get_media_pipeline),
    storage: StorageInterface = Depends(get_storage),
):
    """
    Upload an image into an album.

    The file is normalized to WebP and stored before the Image record is
    written, so a failed upload never leaves a record without a file.
    """
    album = await access.require_album(current_user, album_id, AlbumAction.UPLOAD_IMAGES)

    filename = file.filename or "upload"
    # Reject by declared type and spooled size before loading the body
    pipeline.precheck(filename, file.content_type, file.size)
    data = await file.read()
    media = await pipeline.ingest(data, filename, file.content_type)

    try:
        image = await store.create_image(Image(
            album_id=album.id,
            photographer_id=current_user.id,
            storage_key=media.storage_key,
            original_filename=filename,
            caption=caption or None,
            exif_data=media.metadata,
            width=media.width,
            height=media.height,
        ))
        await store.commit()
    except Exception:
        logger.error(f"Image record for {media.storage_key} not saved, removing stored file")
        await delete_stored_objects(storage, [media.storage_key])
        raise

    return ApiResponse(data=ImageResponse.model_validate(image), message="Image uploaded")


# Get image details
@router.get("/{image_id}", response_model=ApiResponse[ImageDetailResponse])
async def get_image(
    image_id: UUID,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
    aggregator: FeedbackAggregator = Depends(get_feedback_aggregator),
    storage: StorageInterface = Depends(get_storage),
):
    """Image with a detail-view URL, aggregated feedback and comment threads."""
    image = await access.require_image(current_user, image_id, ImageAction.VIEW)

    image_url = await run_in_threadpool(
        storage.signed_url, image.storage_key, settings.SIGNED_URL_DETAIL_TTL_SECONDS
    )
    feedback = await aggregator.image_feedback(image.id)
    threads = await aggregator.comment_threads(image.id)
    photographer = await store.get_user(image.photographer_id)
    my_rating = await store.get_rating(image.id, current_user.id)
    my_flag = await store.get_flag(image.id, current_user.id)

    return ApiResponse(data=ImageDetailResponse(
        **ImageResponse.model_validate(image).model_dump(),
        photographer=UserBrief.model_validate(photographer) if photographer else None,
        image_url=image_url,
        average_rating=feedback.average_rating,
        rating_count=feedback.rating_count,
        pick_count=feedback.pick_count,
        reject_count=feedback.reject_count,
        my_rating=my_rating.rating if my_rating else None,
        my_flag=my_flag.flag_type if my_flag else None,
        comments=[comment_response(entry) for entry in threads],
    ))


# Update caption
@router.patch("/{image_id}", response_model=ApiResponse[ImageResponse])
async def update_image(
    image_id: UUID,
    image_data: ImageUpdate,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    image = await access.require_image(current_user, image_id, ImageAction.UPDATE_CAPTION)
    if "caption" in image_data.model_fields_set:
        image.caption = image_data.caption
    await store.commit()
    return ApiResponse(data=ImageResponse.model_validate(image))


# Delete image
@router.delete("/{image_id}", response_model=ApiResponse[None])
async def delete_image(
    image_id: UUID,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
    storage: StorageInterface = Depends(get_storage),
):
    """Delete the record first, then the stored file (best-effort)."""
    image = await access.require_image(current_user, image_id, ImageAction.DELETE)
    storage_key = await store.delete_image(image)
    await store.commit()

    failed = await delete_stored_objects(storage, [storage_key])
    return ApiResponse(message=cleanup_message("Image deleted", failed))


# Serve image file
@router.get("/{image_id}/file", status_code=status.HTTP_302_FOUND, response_class=RedirectResponse)
async def get_image_file(
    image_id: UUID,
    current_user: User = Depends(get_current_user),
    access: AccessControl = Depends(get_access_control),
    storage: StorageInterface = Depends(get_storage),
):
    """Redirect to a short-lived signed URL; a fresh URL is signed per request."""
    image = await access.require_image(current_user, image_id, ImageAction.VIEW)
    signed_url = await run_in_threadpool(
        storage.signed_url, image.storage_key, settings.SIGNED_URL_REDIRECT_TTL_SECONDS
    )
    return RedirectResponse(
        url=signed_url,
        status_code=status.HTTP_302_FOUND,
        headers={
            "Cache-Control": "private, max-age=60",
            "X-Content-Type-Options": "nosniff",
        },
    )
