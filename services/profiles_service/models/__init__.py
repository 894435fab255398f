"""Profiles Service models package.

Re-exports all models and enums so that SQLAlchemy's mapper registry sees
every model class on import.
"""

from services.profiles_service.models.core import Profile, ProfileMember  # noqa: F401
from services.profiles_service.models.enums import (  # noqa: F401
    MANAGER_ROLES,
    MemberRole,
    ProfileRole,
)

__all__ = [
    "MANAGER_ROLES",
    "MemberRole",
    "ProfileRole",
    "Profile",
    "ProfileMember",
]
