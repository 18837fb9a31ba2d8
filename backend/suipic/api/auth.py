"""
Authentication API endpoints.

Tokens are issued by the external identity provider; this module verifies
them and maps the token subject onto a local User record.
"""
from fastapi import APIRouter, Depends, Response, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import logging

from suipic.core.errors import Conflict, Forbidden, Unauthenticated
from suipic.core.security import VerifiedIdentity, get_identity_verifier
from suipic.models import User, UserRole
from suipic.schemas.common import ApiResponse
from suipic.schemas.users import SyncRequest, UserResponse
from suipic.services.access_control import can_self_register
from suipic.services.entity_store import EntityStore, get_entity_store

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)


async def get_verified_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> VerifiedIdentity:
    """Verify the bearer token; fails closed with 401."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Missing bearer token")
    return await get_identity_verifier().verify(credentials.credentials)


async def get_current_user(
    identity: VerifiedIdentity = Depends(get_verified_identity),
    store: EntityStore = Depends(get_entity_store),
) -> User:
    """Resolve the verified identity to its synced User record."""
    user = await store.find_user_by_identity_key(identity.subject)
    if user is None:
        raise Unauthenticated("User not synced")
    return user


def _owns_email(identity: VerifiedIdentity, email: str) -> bool:
    """Whether the provider vouches for `email` belonging to this identity."""
    if not identity.email or identity.email.lower() != email.lower():
        return False
    return identity.claims.get("email_verified") is not False


@router.post("/sync", response_model=ApiResponse[UserResponse])
async def sync_user(
    request: SyncRequest,
    response: Response,
    identity: VerifiedIdentity = Depends(get_verified_identity),
    store: EntityStore = Depends(get_entity_store),
):
    """
    Create or update the User for the caller's identity.

    Known identities get their email and names refreshed. An unknown
    identity claims an account provisioned for its email, provided the
    token itself carries that email; otherwise it may self-register as a
    client only.
    """
    if request.identity_key != identity.subject:
        raise Forbidden("Identity key does not match token")

    user = await store.find_user_by_identity_key(request.identity_key)
    if user is not None:
        if request.email.lower() != user.email.lower():
            other = await store.find_user_by_email(request.email)
            if other is not None and other.id != user.id:
                raise Conflict("Email already exists")
        user.email = request.email
        user.first_name = request.first_name
        user.last_name = request.last_name
        await store.commit()
        return ApiResponse(data=UserResponse.model_validate(user), message="User synchronized")

    existing = await store.find_user_by_email(request.email)
    if existing is not None:
        if not existing.is_pending or not _owns_email(identity, request.email):
            raise Conflict("Email already exists")
        existing.identity_key = request.identity_key
        existing.first_name = request.first_name or existing.first_name
        existing.last_name = request.last_name or existing.last_name
        await store.commit()
        logger.info(f"Pending account {existing.id} claimed by identity {request.identity_key}")
        return ApiResponse(data=UserResponse.model_validate(existing), message="Account claimed")

    role = request.role or UserRole.CLIENT
    if not can_self_register(role):
        raise Forbidden("Cannot self-register as admin or photographer")

    user = await store.create_user(User(
        identity_key=request.identity_key,
        email=request.email,
        first_name=request.first_name,
        last_name=request.last_name,
        role=role,
    ))
    await store.commit()
    logger.info(f"Self-registered client {user.id}")

    response.status_code = status.HTTP_201_CREATED
    return ApiResponse(data=UserResponse.model_validate(user), message="User created")


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user info."""
    return ApiResponse(data=UserResponse.model_validate(current_user))
