"""Models module initialization - import all models here."""
from suipic.models.enums import UserRole, FlagType, DisplayMode
from suipic.models.user import User
from suipic.models.album import Album, AlbumCollaborator, AlbumClient
from suipic.models.image import Image
from suipic.models.feedback import Rating, Flag, Comment

__all__ = [
    "UserRole",
    "FlagType",
    "DisplayMode",
    "User",
    "Album",
    "AlbumCollaborator",
    "AlbumClient",
    "Image",
    "Rating",
    "Flag",
    "Comment",
]
