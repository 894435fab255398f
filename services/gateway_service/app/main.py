"""FastAPI application entrypoint for the GoBusker backend.

Every service is mounted in-process; the services share one database.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from libs.common.config import get_settings
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_request_context
from services.invites_service.routers import invites_router
from services.profiles_service.routers import profiles_router
from services.tips_service.routers import checkout_router, tips_router
from services.wallet_service.routers import wallet_router
from services.withdrawals_service.routers import withdrawals_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    settings = get_settings()
    app = FastAPI(
        title="GoBusker API",
        version="0.1.0",
        description="Tips, revenue sharing, wallets and withdrawals for GoBusker.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ids and access logs
    add_request_context(app)

    # Add global exception handlers for consistent error responses
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Simple readiness endpoint."""
        return {"status": "ok"}

    app.include_router(profiles_router)
    app.include_router(invites_router)
    app.include_router(tips_router)
    app.include_router(checkout_router)
    app.include_router(wallet_router)
    app.include_router(withdrawals_router)

    return app


app = create_app()
