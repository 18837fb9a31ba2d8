"""
Albums API endpoints: CRUD, membership edges and the feedback summary.
"""
from fastapi import APIRouter, Depends, Query, status
from typing import List
from uuid import UUID
import logging

from suipic.api.auth import get_current_user
from suipic.core.config import settings
from suipic.core.errors import Forbidden, NotFound, ValidationFailed
from suipic.models import Album, User, UserRole
from suipic.schemas.albums import (
    AlbumCreate,
    AlbumDetailResponse,
    AlbumListItem,
    AlbumResponse,
    AlbumSummaryResponse,
    AlbumUpdate,
    ClientAdd,
    CollaboratorAdd,
)
from suipic.schemas.common import ApiResponse
from suipic.schemas.images import ImageResponse
from suipic.schemas.users import UserBrief
from suipic.services.access_control import AccessControl, AlbumAction, get_access_control
from suipic.services.entity_store import EntityStore, get_entity_store
from suipic.services.feedback import FeedbackAggregator, get_feedback_aggregator
from suipic.services.storage_factory import cleanup_message, delete_stored_objects, get_storage
from suipic.services.storage_interface import StorageInterface

logger = logging.getLogger(__name__)

router = APIRouter()


def _brief(user):
    return UserBrief.model_validate(user) if user is not None else None


# List albums
@router.get("", response_model=ApiResponse[List[AlbumListItem]])
async def list_albums(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
):
    """Albums the caller can see (all for admins), newest first."""
    member_id = None if current_user.role is UserRole.ADMIN else current_user.id
    albums = await store.list_albums(member_id=member_id, limit=limit, offset=(page - 1) * limit)

    album_ids = [album.id for album in albums]
    counts = await store.count_images(album_ids)
    owners = await store.get_users([album.owner_id for album in albums])

    return ApiResponse(data=[
        AlbumListItem(
            **AlbumResponse.model_validate(album).model_dump(),
            owner=_brief(owners.get(album.owner_id)),
            image_count=counts.get(album.id, 0),
        )
        for album in albums
    ])


# Create album
@router.post("", response_model=ApiResponse[AlbumResponse], status_code=status.HTTP_201_CREATED)
async def create_album(
    album_data: AlbumCreate,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
):
    """Create a new album owned by the caller."""
    if current_user.role is UserRole.CLIENT:
        raise Forbidden("Clients cannot create albums")

    album = await store.create_album(Album(
        owner_id=current_user.id,
        name=album_data.name,
        description=album_data.description,
        display_mode=album_data.display_mode,
    ))
    await store.commit()
    return ApiResponse(data=AlbumResponse.model_validate(album))


# Get album details
@router.get("/{album_id}", response_model=ApiResponse[AlbumDetailResponse])
async def get_album(
    album_id: UUID,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    """Album with owner, members and images (newest first)."""
    album = await access.require_album(current_user, album_id, AlbumAction.VIEW)

    owner = await store.get_user(album.owner_id)
    collaborators = await store.list_collaborators(album.id)
    clients = await store.list_clients(album.id)
    images = await store.list_images(album.id)

    return ApiResponse(data=AlbumDetailResponse(
        **AlbumResponse.model_validate(album).model_dump(),
        owner=_brief(owner),
        collaborators=[_brief(user) for user in collaborators],
        clients=[_brief(user) for user in clients],
        images=[ImageResponse.model_validate(image) for image in images],
    ))


# Update album
@router.patch("/{album_id}", response_model=ApiResponse[AlbumResponse])
async def update_album(
    album_id: UUID,
    album_data: AlbumUpdate,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    album = await access.require_album(current_user, album_id, AlbumAction.UPDATE)

    changes = album_data.model_dump(exclude_unset=True)
    if changes.get("name") is not None:
        album.name = changes["name"]
    if "description" in changes:
        album.description = changes["description"]
    if changes.get("display_mode") is not None:
        album.display_mode = changes["display_mode"]
    await store.commit()
    return ApiResponse(data=AlbumResponse.model_validate(album))


# Delete album
@router.delete("/{album_id}", response_model=ApiResponse[None])
async def delete_album(
    album_id: UUID,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
    storage: StorageInterface = Depends(get_storage),
):
    """Delete an album with its images and their feedback."""
    album = await access.require_album(current_user, album_id, AlbumAction.DELETE)
    storage_keys = await store.delete_album(album)
    await store.commit()
    logger.info(f"Album {album_id} deleted by {current_user.id} ({len(storage_keys)} images)")

    failed = await delete_stored_objects(storage, storage_keys)
    return ApiResponse(message=cleanup_message("Album deleted", failed))


@router.post(
    "/{album_id}/collaborators",
    response_model=ApiResponse[UserBrief],
    status_code=status.HTTP_201_CREATED,
)
async def add_collaborator(
    album_id: UUID,
    request: CollaboratorAdd,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    album = await access.require_album(current_user, album_id, AlbumAction.MANAGE_COLLABORATORS)

    photographer = await store.get_user(request.photographer_id)
    if photographer is None or photographer.role is not UserRole.PHOTOGRAPHER:
        raise ValidationFailed("Photographer not found")
    if photographer.id == album.owner_id:
        raise ValidationFailed("The album owner cannot be a collaborator")

    await store.add_collaborator(album.id, photographer.id)
    await store.commit()
    return ApiResponse(data=_brief(photographer), message="Collaborator added")


@router.delete("/{album_id}/collaborators/{photographer_id}", response_model=ApiResponse[None])
async def remove_collaborator(
    album_id: UUID,
    photographer_id: UUID,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    album = await access.require_album(current_user, album_id, AlbumAction.MANAGE_COLLABORATORS)
    if not await store.remove_collaborator(album.id, photographer_id):
        raise NotFound("Collaborator not found")
    await store.commit()
    return ApiResponse(message="Collaborator removed")


@router.post(
    "/{album_id}/clients",
    response_model=ApiResponse[UserBrief],
    status_code=status.HTTP_201_CREATED,
)
async def add_client(
    album_id: UUID,
    request: ClientAdd,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    album = await access.require_album(current_user, album_id, AlbumAction.MANAGE_CLIENTS)

    client = await store.get_user(request.client_id)
    if client is None or client.role is not UserRole.CLIENT:
        raise ValidationFailed("Client not found")

    await store.add_client(album.id, client.id)
    await store.commit()
    return ApiResponse(data=_brief(client), message="Client added")


@router.delete("/{album_id}/clients/{client_id}", response_model=ApiResponse[None])
async def remove_client(
    album_id: UUID,
    client_id: UUID,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    album = await access.require_album(current_user, album_id, AlbumAction.MANAGE_CLIENTS)
    if not await store.remove_client(album.id, client_id):
        raise NotFound("Client not found")
    await store.commit()
    return ApiResponse(message="Client removed")


# Aggregated feedback
@router.get("/{album_id}/summary", response_model=ApiResponse[AlbumSummaryResponse])
async def get_album_summary(
    album_id: UUID,
    current_user: User = Depends(get_current_user),
    access: AccessControl = Depends(get_access_control),
    aggregator: FeedbackAggregator = Depends(get_feedback_aggregator),
):
    """Ratings and flags for every image in the album, with who gave them."""
    album = await access.require_album(current_user, album_id, AlbumAction.VIEW_SUMMARY)
    summary = await aggregator.album_summary(album)
    return ApiResponse(data=AlbumSummaryResponse.model_validate(summary))
