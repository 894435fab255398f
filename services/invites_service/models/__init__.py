"""Invites Service models package."""

from services.invites_service.models.core import ProfileInvite  # noqa: F401
from services.invites_service.models.enums import InviteStatus  # noqa: F401

__all__ = ["InviteStatus", "ProfileInvite"]
