"""Profiles service routers."""

from services.profiles_service.routers.profiles import router as profiles_router

__all__ = ["profiles_router"]
