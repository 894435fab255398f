"""Tips service routers."""

from services.tips_service.routers.checkout import router as checkout_router
from services.tips_service.routers.tips import router as tips_router

__all__ = ["checkout_router", "tips_router"]
