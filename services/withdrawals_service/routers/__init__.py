"""Withdrawals service routers."""

from services.withdrawals_service.routers.withdrawals import (
    router as withdrawals_router,
)

__all__ = ["withdrawals_router"]
