"""
Album model and its two membership edges (collaborators, clients).
"""
from sqlalchemy import Column, String, Text, DateTime, Enum, ForeignKey, Uuid, Index
from sqlalchemy.orm import relationship
import uuid

from suipic.core.database import Base
from suipic.models.enums import DisplayMode
from suipic.models.user import utcnow


class Album(Base):
    """Album owned by one photographer or admin."""
    __tablename__ = "albums"
    __table_args__ = (
        Index('idx_albums_owner_created', 'owner_id', 'created_at'),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    display_mode = Column(
        Enum(DisplayMode, name="display_mode", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=DisplayMode.GRID,
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    owner = relationship("User", back_populates="owned_albums")
    collaborators = relationship("AlbumCollaborator", back_populates="album", cascade="all, delete-orphan")
    clients = relationship("AlbumClient", back_populates="album", cascade="all, delete-orphan")
    images = relationship("Image", back_populates="album", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Album {self.name} ({self.id})>"


class AlbumCollaborator(Base):
    """Grants a second photographer co-management rights over an album."""
    __tablename__ = "album_collaborators"

    album_id = Column(Uuid, ForeignKey('albums.id', ondelete='CASCADE'), primary_key=True)
    photographer_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    album = relationship("Album", back_populates="collaborators")
    photographer = relationship("User", back_populates="collaborations")

    def __repr__(self):
        return f"<AlbumCollaborator album={self.album_id} photographer={self.photographer_id}>"


class AlbumClient(Base):
    """Grants a client read and feedback rights over an album."""
    __tablename__ = "album_clients"

    album_id = Column(Uuid, ForeignKey('albums.id', ondelete='CASCADE'), primary_key=True)
    client_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    album = relationship("Album", back_populates="clients")
    client = relationship("User", back_populates="client_grants")

    def __repr__(self):
        return f"<AlbumClient album={self.album_id} client={self.client_id}>"
