"""
User model, synchronized from the external identity provider.
"""
from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, Uuid, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid

from suipic.core.database import Base
from suipic.models.enums import UserRole

PENDING_IDENTITY_PREFIX = "pending-"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """User model keyed by the identity provider subject."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("created_by_id IS NULL OR created_by_id != id", name="creator_not_self"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    identity_key = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    role = Column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.CLIENT,
    )
    created_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    created_by = relationship("User", remote_side=[id], back_populates="created_users")
    created_users = relationship("User", back_populates="created_by")
    owned_albums = relationship("Album", back_populates="owner", cascade="all, delete-orphan")
    collaborations = relationship("AlbumCollaborator", back_populates="photographer", cascade="all, delete-orphan")
    client_grants = relationship("AlbumClient", back_populates="client", cascade="all, delete-orphan")
    uploaded_images = relationship("Image", back_populates="photographer", cascade="all, delete-orphan")
    ratings = relationship("Rating", back_populates="user", cascade="all, delete-orphan")
    flags = relationship("Flag", back_populates="user", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="user", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def is_pending(self) -> bool:
        """Provisioned by another user and not yet claimed at first login."""
        return self.identity_key.startswith(PENDING_IDENTITY_PREFIX)

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"
