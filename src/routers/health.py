"""
Health check routes for the relay.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from core.coordinator import SessionCoordinator


def create_health_router(coordinator: SessionCoordinator, app_name: str, app_version: str) -> APIRouter:
    """Create health router with coordinator dependency."""
    router = APIRouter(tags=["Health"])

    @router.get("/", include_in_schema=False)
    async def root_health_check() -> JSONResponse:
        """Basic health check and information endpoint."""
        return JSONResponse(
            content={
                "service": app_name,
                "version": app_version,
                "status": "healthy",
                "ice_mode": coordinator.router.ice_mode.value,
                **coordinator.stats(),
            }
        )

    @router.get("/health")
    async def health_check() -> JSONResponse:
        return JSONResponse(content={"status": "healthy"})

    return router
