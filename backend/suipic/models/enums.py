"""
Closed value sets used by the models and the permission tables.
"""
import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    PHOTOGRAPHER = "photographer"
    CLIENT = "client"


class FlagType(str, enum.Enum):
    """Per-user marker on an image. NONE is a stored tombstone, never counted."""

    PICK = "pick"
    REJECT = "reject"
    NONE = "none"


class DisplayMode(str, enum.Enum):
    GRID = "grid"
    FILMSTRIP = "filmstrip"
