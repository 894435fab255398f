"""Enums for the Profiles Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class ProfileRole(str, enum.Enum):
    BUSKER = "busker"
    EVENTMAKER = "eventmaker"
    VIEWER = "viewer"


class MemberRole(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


MANAGER_ROLES = frozenset({MemberRole.OWNER, MemberRole.ADMIN})
