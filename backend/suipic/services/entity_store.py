"""
Entity store: the narrow persistence queries the services are built on.

Every method is one (or a couple of) statements against the request's
AsyncSession. Read projections are composed from these narrow queries rather
than from eager-loaded object graphs, and uniqueness violations surface as
`Conflict`.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import uuid

from fastapi import Depends
from sqlalchemy import select, delete, func, or_, exists
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from suipic.core.database import get_db
from suipic.core.errors import Conflict
from suipic.models import (
    User, UserRole, Album, AlbumCollaborator, AlbumClient, Image, Rating, Flag, FlagType, Comment,
)
from suipic.models.user import utcnow


@dataclass(frozen=True)
class AlbumRelation:
    """The three membership facts access decisions are made from."""

    is_owner: bool = False
    is_collaborator: bool = False
    is_client: bool = False


_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class EntityStore:
    """Transactional persistence for users, albums, images and feedback."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def find_user_by_identity_key(self, identity_key: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.identity_key == identity_key))
        return result.scalar_one_or_none()

    async def find_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(func.lower(User.email) == email.lower()))
        return result.scalar_one_or_none()

    async def list_users(
        self,
        role: Optional[UserRole] = None,
        created_by_id: Optional[uuid.UUID] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Sequence[User]:
        query = select(User)
        if role is not None:
            query = query.where(User.role == role)
        if created_by_id is not None:
            query = query.where(User.created_by_id == created_by_id)
        result = await self.db.execute(
            query.order_by(User.created_at.desc()).limit(limit).offset(offset)
        )
        return result.scalars().all()

    async def get_users(self, user_ids: Sequence[uuid.UUID]) -> Dict[uuid.UUID, User]:
        if not user_ids:
            return {}
        result = await self.db.execute(select(User).where(User.id.in_(set(user_ids))))
        return {user.id: user for user in result.scalars().all()}

    async def create_user(self, user: User) -> User:
        if await self.find_user_by_email(user.email):
            raise Conflict("Email already exists")
        self.db.add(user)
        await self._flush_or_conflict("User already exists")
        return user

    async def delete_user(self, user: User) -> List[str]:
        """Delete a user and everything they own; returns orphaned storage keys."""
        result = await self.db.execute(
            select(Image.storage_key)
            .join(Album, Album.id == Image.album_id)
            .where(or_(Image.photographer_id == user.id, Album.owner_id == user.id))
        )
        storage_keys = list(result.scalars().all())
        await self.db.delete(user)
        await self.db.flush()
        return storage_keys

    # ------------------------------------------------------------------
    # Albums and membership edges
    # ------------------------------------------------------------------

    async def get_album(self, album_id: uuid.UUID) -> Optional[Album]:
        return await self.db.get(Album, album_id)

    async def album_relation(self, album: Album, user_id: uuid.UUID) -> AlbumRelation:
        is_collaborator = await self._edge_exists(
            AlbumCollaborator.album_id == album.id,
            AlbumCollaborator.photographer_id == user_id,
        )
        is_client = await self._edge_exists(
            AlbumClient.album_id == album.id,
            AlbumClient.client_id == user_id,
        )
        return AlbumRelation(
            is_owner=album.owner_id == user_id,
            is_collaborator=is_collaborator,
            is_client=is_client,
        )

    async def list_albums(
        self,
        member_id: Optional[uuid.UUID] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Sequence[Album]:
        """Albums newest first; restricted to those member_id belongs to when given."""
        query = select(Album)
        if member_id is not None:
            query = query.where(or_(
                Album.owner_id == member_id,
                exists().where(
                    AlbumCollaborator.album_id == Album.id,
                    AlbumCollaborator.photographer_id == member_id,
                ),
                exists().where(
                    AlbumClient.album_id == Album.id,
                    AlbumClient.client_id == member_id,
                ),
            ))
        result = await self.db.execute(
            query.order_by(Album.created_at.desc()).limit(limit).offset(offset)
        )
        return result.scalars().all()

    async def count_images(self, album_ids: Sequence[uuid.UUID]) -> Dict[uuid.UUID, int]:
        if not album_ids:
            return {}
        result = await self.db.execute(
            select(Image.album_id, func.count(Image.id))
            .where(Image.album_id.in_(album_ids))
            .group_by(Image.album_id)
        )
        counts = {album_id: 0 for album_id in album_ids}
        counts.update({album_id: count for album_id, count in result.all()})
        return counts

    async def create_album(self, album: Album) -> Album:
        self.db.add(album)
        await self.db.flush()
        return album

    async def delete_album(self, album: Album) -> List[str]:
        """Delete an album with its images and feedback; returns orphaned storage keys."""
        result = await self.db.execute(select(Image.storage_key).where(Image.album_id == album.id))
        storage_keys = list(result.scalars().all())
        await self.db.delete(album)
        await self.db.flush()
        return storage_keys

    async def list_collaborators(self, album_id: uuid.UUID) -> Sequence[User]:
        result = await self.db.execute(
            select(User)
            .join(AlbumCollaborator, AlbumCollaborator.photographer_id == User.id)
            .where(AlbumCollaborator.album_id == album_id)
            .order_by(AlbumCollaborator.created_at)
        )
        return result.scalars().all()

    async def list_clients(self, album_id: uuid.UUID) -> Sequence[User]:
        result = await self.db.execute(
            select(User)
            .join(AlbumClient, AlbumClient.client_id == User.id)
            .where(AlbumClient.album_id == album_id)
            .order_by(AlbumClient.created_at)
        )
        return result.scalars().all()

    async def add_collaborator(self, album_id: uuid.UUID, photographer_id: uuid.UUID) -> AlbumCollaborator:
        if await self._edge_exists(AlbumCollaborator.album_id == album_id, AlbumCollaborator.photographer_id == photographer_id):
            raise Conflict("Already a collaborator")
        edge = AlbumCollaborator(album_id=album_id, photographer_id=photographer_id)
        self.db.add(edge)
        await self._flush_or_conflict("Already a collaborator")
        return edge

    async def remove_collaborator(self, album_id: uuid.UUID, photographer_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            delete(AlbumCollaborator).where(
                AlbumCollaborator.album_id == album_id,
                AlbumCollaborator.photographer_id == photographer_id,
            )
        )
        return result.rowcount > 0

    async def add_client(self, album_id: uuid.UUID, client_id: uuid.UUID) -> AlbumClient:
        if await self._edge_exists(AlbumClient.album_id == album_id, AlbumClient.client_id == client_id):
            raise Conflict("Already a client")
        edge = AlbumClient(album_id=album_id, client_id=client_id)
        self.db.add(edge)
        await self._flush_or_conflict("Already a client")
        return edge

    async def remove_client(self, album_id: uuid.UUID, client_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            delete(AlbumClient).where(
                AlbumClient.album_id == album_id,
                AlbumClient.client_id == client_id,
            )
        )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def get_image(self, image_id: uuid.UUID) -> Optional[Image]:
        return await self.db.get(Image, image_id)

    async def list_images(self, album_id: uuid.UUID) -> Sequence[Image]:
        result = await self.db.execute(
            select(Image).where(Image.album_id == album_id).order_by(Image.created_at.desc())
        )
        return result.scalars().all()

    async def create_image(self, image: Image) -> Image:
        self.db.add(image)
        await self.db.flush()
        return image

    async def delete_image(self, image: Image) -> str:
        storage_key = image.storage_key
        await self.db.delete(image)
        await self.db.flush()
        return storage_key

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def upsert_rating(self, image_id: uuid.UUID, user_id: uuid.UUID, value: int) -> Rating:
        """Insert or overwrite the (image, user) rating in one statement."""
        now = utcnow()
        insert = self._dialect_insert()
        stmt = (
            insert(Rating)
            .values(id=uuid.uuid4(), image_id=image_id, user_id=user_id, rating=value,
                    created_at=now, updated_at=now)
            .on_conflict_do_update(
                index_elements=[Rating.image_id, Rating.user_id],
                set_={"rating": value, "updated_at": now},
            )
            .returning(Rating)
        )
        result = await self.db.execute(stmt, execution_options={"populate_existing": True})
        return result.scalar_one()

    async def get_rating(self, image_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Rating]:
        result = await self.db.execute(
            select(Rating).where(Rating.image_id == image_id, Rating.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def delete_rating(self, image_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            delete(Rating).where(Rating.image_id == image_id, Rating.user_id == user_id)
        )
        return result.rowcount > 0

    async def list_ratings(self, image_ids: Sequence[uuid.UUID]) -> Sequence[Rating]:
        if not image_ids:
            return []
        result = await self.db.execute(
            select(Rating).where(Rating.image_id.in_(image_ids)).order_by(Rating.created_at)
        )
        return result.scalars().all()

    async def upsert_flag(self, image_id: uuid.UUID, user_id: uuid.UUID, flag_type: FlagType) -> Flag:
        """Insert or overwrite the (image, user) flag in one statement."""
        now = utcnow()
        insert = self._dialect_insert()
        stmt = (
            insert(Flag)
            .values(id=uuid.uuid4(), image_id=image_id, user_id=user_id, flag_type=flag_type,
                    created_at=now, updated_at=now)
            .on_conflict_do_update(
                index_elements=[Flag.image_id, Flag.user_id],
                set_={"flag_type": flag_type, "updated_at": now},
            )
            .returning(Flag)
        )
        result = await self.db.execute(stmt, execution_options={"populate_existing": True})
        return result.scalar_one()

    async def get_flag(self, image_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Flag]:
        result = await self.db.execute(
            select(Flag).where(Flag.image_id == image_id, Flag.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def delete_flag(self, image_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            delete(Flag).where(Flag.image_id == image_id, Flag.user_id == user_id)
        )
        return result.rowcount > 0

    async def list_flags(self, image_ids: Sequence[uuid.UUID]) -> Sequence[Flag]:
        if not image_ids:
            return []
        result = await self.db.execute(
            select(Flag).where(Flag.image_id.in_(image_ids)).order_by(Flag.created_at)
        )
        return result.scalars().all()

    async def get_comment(self, comment_id: uuid.UUID) -> Optional[Comment]:
        return await self.db.get(Comment, comment_id)

    async def list_comments(self, image_id: uuid.UUID) -> Sequence[Comment]:
        result = await self.db.execute(
            select(Comment).where(Comment.image_id == image_id).order_by(Comment.created_at)
        )
        return result.scalars().all()

    async def create_comment(self, comment: Comment) -> Comment:
        self.db.add(comment)
        await self.db.flush()
        return comment

    async def delete_comment(self, comment: Comment) -> None:
        await self.db.delete(comment)
        await self.db.flush()

    # ------------------------------------------------------------------

    async def commit(self) -> None:
        await self.db.commit()

    async def _edge_exists(self, *criteria) -> bool:
        return bool(await self.db.scalar(select(exists().where(*criteria))))

    def _dialect_insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect not in _UPSERT_INSERTS:
            raise NotImplementedError(f"Atomic upsert not supported on {dialect}")
        return _UPSERT_INSERTS[dialect]

    async def _flush_or_conflict(self, message: str) -> None:
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict(message)


async def get_entity_store(db: AsyncSession = Depends(get_db)) -> EntityStore:
    """FastAPI dependency wrapping the request session."""
    return EntityStore(db)
