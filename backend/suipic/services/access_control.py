"""
Access control: who may do what to albums, images, comments and accounts.

Decisions are made from a handful of relationship facts (owner,
collaborator, client, uploader, self, creator) resolved fresh from the
entity store on every call. Admins short-circuit to allow, except that no
one may delete their own account.

Every lookup raises NotFound before any permission is evaluated, so a
missing target is always a 404 and never a 403.
"""
from typing import FrozenSet, Iterable, Set
import enum
import uuid

from fastapi import Depends

from suipic.core.errors import Forbidden, NotFound
from suipic.models import Album, Comment, Image, User, UserRole
from suipic.services.entity_store import AlbumRelation, EntityStore, get_entity_store


class Relation(str, enum.Enum):
    OWNER = "owner"
    COLLABORATOR = "collaborator"
    CLIENT = "client"
    UPLOADER = "uploader"
    SELF = "self"
    CREATOR = "creator"


class AlbumAction(str, enum.Enum):
    VIEW = "view"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE_COLLABORATORS = "manage_collaborators"
    MANAGE_CLIENTS = "manage_clients"
    UPLOAD_IMAGES = "upload_images"
    VIEW_SUMMARY = "view_summary"


class ImageAction(str, enum.Enum):
    VIEW = "view"
    UPDATE_CAPTION = "update_caption"
    DELETE = "delete"
    RATE = "rate"
    FLAG = "flag"
    COMMENT = "comment"


class UserAction(str, enum.Enum):
    VIEW = "view"
    UPDATE = "update"
    UPDATE_ROLE = "update_role"
    DELETE = "delete"


_MEMBERS = frozenset({Relation.OWNER, Relation.COLLABORATOR, Relation.CLIENT})
_MANAGERS = frozenset({Relation.OWNER, Relation.COLLABORATOR})

# Relations (besides admin) that grant each action
ALBUM_PERMISSIONS = {
    AlbumAction.VIEW: _MEMBERS,
    AlbumAction.UPDATE: frozenset({Relation.OWNER}),
    AlbumAction.DELETE: frozenset({Relation.OWNER}),
    AlbumAction.MANAGE_COLLABORATORS: frozenset({Relation.OWNER}),
    AlbumAction.MANAGE_CLIENTS: _MANAGERS,
    AlbumAction.UPLOAD_IMAGES: _MANAGERS,
    AlbumAction.VIEW_SUMMARY: _MANAGERS,
}

IMAGE_PERMISSIONS = {
    ImageAction.VIEW: _MEMBERS,
    ImageAction.UPDATE_CAPTION: frozenset({Relation.UPLOADER, Relation.OWNER}),
    ImageAction.DELETE: frozenset({Relation.UPLOADER, Relation.OWNER}),
    ImageAction.RATE: _MEMBERS,
    ImageAction.FLAG: _MEMBERS,
    ImageAction.COMMENT: _MEMBERS,
}

# CREATOR only counts when the actor is a photographer
USER_PERMISSIONS = {
    UserAction.VIEW: frozenset({Relation.SELF, Relation.CREATOR}),
    UserAction.UPDATE: frozenset({Relation.SELF}),
    UserAction.UPDATE_ROLE: frozenset(),
    UserAction.DELETE: frozenset(),
}

CREATABLE_ROLES = {
    UserRole.ADMIN: frozenset(UserRole),
    UserRole.PHOTOGRAPHER: frozenset({UserRole.CLIENT}),
    UserRole.CLIENT: frozenset(),
}

SELF_REGISTRATION_ROLES = frozenset({UserRole.CLIENT})


def _check_exhaustive(table: dict, members: Iterable[enum.Enum]) -> None:
    missing = [member for member in members if member not in table]
    if missing:
        raise RuntimeError(f"Permission table has no entry for {missing}")


_check_exhaustive(ALBUM_PERMISSIONS, AlbumAction)
_check_exhaustive(IMAGE_PERMISSIONS, ImageAction)
_check_exhaustive(USER_PERMISSIONS, UserAction)
_check_exhaustive(CREATABLE_ROLES, UserRole)


def album_relations(relation: AlbumRelation, is_uploader: bool = False) -> FrozenSet[Relation]:
    relations: Set[Relation] = set()
    if relation.is_owner:
        relations.add(Relation.OWNER)
    if relation.is_collaborator:
        relations.add(Relation.COLLABORATOR)
    if relation.is_client:
        relations.add(Relation.CLIENT)
    if is_uploader:
        relations.add(Relation.UPLOADER)
    return frozenset(relations)


def user_relations(actor_id: uuid.UUID, target_id: uuid.UUID, target_created_by_id=None) -> FrozenSet[Relation]:
    relations: Set[Relation] = set()
    if actor_id == target_id:
        relations.add(Relation.SELF)
    if target_created_by_id is not None and target_created_by_id == actor_id:
        relations.add(Relation.CREATOR)
    return frozenset(relations)


def can_access_album(role: UserRole, relations: FrozenSet[Relation], action: AlbumAction) -> bool:
    if role is UserRole.ADMIN:
        return True
    return bool(relations & ALBUM_PERMISSIONS[action])


def can_access_image(role: UserRole, relations: FrozenSet[Relation], action: ImageAction) -> bool:
    if role is UserRole.ADMIN:
        return True
    return bool(relations & IMAGE_PERMISSIONS[action])


def can_access_user(role: UserRole, relations: FrozenSet[Relation], action: UserAction) -> bool:
    if action is UserAction.DELETE and Relation.SELF in relations:
        return False
    if role is UserRole.ADMIN:
        return True
    if role is not UserRole.PHOTOGRAPHER:
        relations = relations - {Relation.CREATOR}
    return bool(relations & USER_PERMISSIONS[action])


def can_create_role(creator_role: UserRole, role: UserRole) -> bool:
    return role in CREATABLE_ROLES[creator_role]


def can_self_register(role: UserRole) -> bool:
    return role in SELF_REGISTRATION_ROLES


class AccessControl:
    """
    Per-request access checks over an EntityStore.

    Each `require_*` method resolves the target, raises NotFound when it is
    absent, then raises Forbidden when the actor may not perform the action.
    On success the resolved entity is returned.
    """

    def __init__(self, store: EntityStore):
        self.store = store

    async def require_album(self, actor: User, album_id: uuid.UUID, action: AlbumAction) -> Album:
        album = await self.store.get_album(album_id)
        if album is None:
            raise NotFound("Album not found")
        if actor.role is not UserRole.ADMIN:
            relation = await self.store.album_relation(album, actor.id)
            if not can_access_album(actor.role, album_relations(relation), action):
                raise Forbidden("You do not have access to this album")
        return album

    async def require_image(self, actor: User, image_id: uuid.UUID, action: ImageAction) -> Image:
        image = await self.store.get_image(image_id)
        if image is None:
            raise NotFound("Image not found")
        if actor.role is not UserRole.ADMIN:
            album = await self.store.get_album(image.album_id)
            relation = await self.store.album_relation(album, actor.id)
            relations = album_relations(relation, is_uploader=image.photographer_id == actor.id)
            if not can_access_image(actor.role, relations, action):
                raise Forbidden("You do not have access to this image")
        return image

    async def require_comment_deletion(self, actor: User, image_id: uuid.UUID, comment_id: uuid.UUID) -> Comment:
        """Only the author may delete a comment, and only through its own image."""
        image = await self.require_image(actor, image_id, ImageAction.VIEW)
        comment = await self.store.get_comment(comment_id)
        if comment is None or comment.image_id != image.id:
            raise NotFound("Comment not found")
        if comment.user_id != actor.id:
            raise Forbidden("You can only delete your own comments")
        return comment

    async def require_user(self, actor: User, user_id: uuid.UUID, action: UserAction) -> User:
        target = await self.store.get_user(user_id)
        if target is None:
            raise NotFound("User not found")
        relations = user_relations(actor.id, target.id, target.created_by_id)
        if not can_access_user(actor.role, relations, action):
            if action is UserAction.DELETE and Relation.SELF in relations:
                raise Forbidden("You cannot delete your own account")
            raise Forbidden("You do not have access to this user")
        return target

    def require_role_creation(self, actor: User, role: UserRole) -> None:
        if not can_create_role(actor.role, role):
            raise Forbidden(f"A {actor.role.value} cannot create {role.value} accounts")


def get_access_control(store: EntityStore = Depends(get_entity_store)) -> AccessControl:
    return AccessControl(store)
