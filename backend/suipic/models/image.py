"""
Image model: one normalized asset in object storage plus display metadata.
"""
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Uuid, JSON, Index
from sqlalchemy.orm import relationship
import uuid

from suipic.core.database import Base
from suipic.models.user import utcnow


class Image(Base):
    """Image uploaded into an album by a photographer."""

    __tablename__ = "images"
    __table_args__ = (
        Index('idx_images_album_created', 'album_id', 'created_at'),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    album_id = Column(Uuid, ForeignKey("albums.id", ondelete="CASCADE"), nullable=False)
    photographer_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Storage key is generated server-side; the original filename is display metadata only
    storage_key = Column(String(512), nullable=False, unique=True)
    original_filename = Column(String(255), nullable=False)
    caption = Column(Text, nullable=True)
    exif_data = Column(JSON, nullable=True)
    width = Column(Integer, nullable=False)
    height = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    album = relationship("Album", back_populates="images")
    photographer = relationship("User", back_populates="uploaded_images")
    ratings = relationship("Rating", back_populates="image", cascade="all, delete-orphan")
    flags = relationship("Flag", back_populates="image", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="image", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Image {self.original_filename} ({self.storage_key})>"
