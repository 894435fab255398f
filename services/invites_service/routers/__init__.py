"""Invites service routers."""

from services.invites_service.routers.invites import router as invites_router

__all__ = ["invites_router"]
