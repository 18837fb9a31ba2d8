"""
Per-image feedback rows: ratings, flags and threaded comments.
"""
from sqlalchemy import Column, Integer, Text, DateTime, Enum, ForeignKey, Uuid, UniqueConstraint, CheckConstraint, Index
from sqlalchemy.orm import relationship
import uuid

from suipic.core.database import Base
from suipic.models.enums import FlagType
from suipic.models.user import utcnow


class Rating(Base):
    """One user's 1-5 score for one image."""

    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint('image_id', 'user_id', name='ratings_image_user_key'),
        CheckConstraint('rating BETWEEN 1 AND 5', name='rating_range'),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    image_id = Column(Uuid, ForeignKey("images.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    image = relationship("Image", back_populates="ratings")
    user = relationship("User", back_populates="ratings")

    def __repr__(self):
        return f"<Rating {self.rating} image={self.image_id} user={self.user_id}>"


class Flag(Base):
    """One user's pick/reject/none marker for one image."""

    __tablename__ = "flags"
    __table_args__ = (
        UniqueConstraint('image_id', 'user_id', name='flags_image_user_key'),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    image_id = Column(Uuid, ForeignKey("images.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    flag_type = Column(
        Enum(FlagType, name="flag_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=FlagType.NONE,
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    image = relationship("Image", back_populates="flags")
    user = relationship("User", back_populates="flags")

    def __repr__(self):
        return f"<Flag {self.flag_type.value} image={self.image_id} user={self.user_id}>"


class Comment(Base):
    """Free-text note on an image, optionally replying to another comment."""

    __tablename__ = "comments"
    __table_args__ = (
        Index('idx_comments_image_created', 'image_id', 'created_at'),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    image_id = Column(Uuid, ForeignKey("images.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parent_id = Column(Uuid, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True)
    content = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    image = relationship("Image", back_populates="comments")
    user = relationship("User", back_populates="comments")
    parent = relationship("Comment", remote_side=[id], back_populates="replies")
    replies = relationship("Comment", back_populates="parent", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Comment {self.id} image={self.image_id} parent={self.parent_id}>"
