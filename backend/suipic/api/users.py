"""
User management endpoints.

Admins manage everyone; photographers provision and view the client
accounts they created. Provisioned accounts carry a pending identity key
until their owner first signs in through /auth/sync.
"""
from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from uuid import UUID, uuid4
import logging

from suipic.api.auth import get_current_user
from suipic.core.config import settings
from suipic.core.errors import Forbidden
from suipic.models import User, UserRole
from suipic.models.user import PENDING_IDENTITY_PREFIX
from suipic.schemas.common import ApiResponse
from suipic.schemas.users import UserCreate, UserResponse, UserUpdate
from suipic.services.access_control import AccessControl, UserAction, get_access_control
from suipic.services.entity_store import EntityStore, get_entity_store
from suipic.services.storage_factory import cleanup_message, delete_stored_objects, get_storage
from suipic.services.storage_interface import StorageInterface

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=ApiResponse[List[UserResponse]])
async def list_users(
    role: Optional[UserRole] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
):
    """Admins see all users; photographers see the clients they created."""
    offset = (page - 1) * limit
    if current_user.role is UserRole.ADMIN:
        users = await store.list_users(role=role, limit=limit, offset=offset)
    elif current_user.role is UserRole.PHOTOGRAPHER:
        users = await store.list_users(
            role=UserRole.CLIENT, created_by_id=current_user.id, limit=limit, offset=offset
        )
    else:
        raise Forbidden("Clients cannot list users")
    return ApiResponse(data=[UserResponse.model_validate(user) for user in users])


@router.post("", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    """Provision an account; the role must be one the caller may create."""
    access.require_role_creation(current_user, user_data.role)

    user = await store.create_user(User(
        identity_key=user_data.identity_key or f"{PENDING_IDENTITY_PREFIX}{uuid4()}",
        email=user_data.email,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        role=user_data.role,
        created_by_id=current_user.id,
    ))
    await store.commit()
    logger.info(f"User {current_user.id} created {user.role.value} account {user.id}")
    return ApiResponse(data=UserResponse.model_validate(user), message="User created")


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    access: AccessControl = Depends(get_access_control),
):
    user = await access.require_user(current_user, user_id, UserAction.VIEW)
    return ApiResponse(data=UserResponse.model_validate(user))


@router.patch("/{user_id}", response_model=ApiResponse[UserResponse])
async def update_user(
    user_id: UUID,
    user_data: UserUpdate,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
):
    """Users update their own names; only admins change roles."""
    user = await access.require_user(current_user, user_id, UserAction.UPDATE)
    if user_data.role is not None and user_data.role is not user.role:
        await access.require_user(current_user, user_id, UserAction.UPDATE_ROLE)

    if user_data.first_name is not None:
        user.first_name = user_data.first_name
    if user_data.last_name is not None:
        user.last_name = user_data.last_name
    if user_data.role is not None:
        user.role = user_data.role
    await store.commit()
    return ApiResponse(data=UserResponse.model_validate(user))


@router.delete("/{user_id}", response_model=ApiResponse[None])
async def delete_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    access: AccessControl = Depends(get_access_control),
    storage: StorageInterface = Depends(get_storage),
):
    """Delete an account with its albums, images and feedback (admin only)."""
    user = await access.require_user(current_user, user_id, UserAction.DELETE)
    storage_keys = await store.delete_user(user)
    await store.commit()
    logger.info(f"User {current_user.id} deleted account {user_id}")

    failed = await delete_stored_objects(storage, storage_keys)
    return ApiResponse(message=cleanup_message("User deleted", failed))
