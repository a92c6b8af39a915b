"""
Read-only query routes: relay stats, live sources and broadcast history.

None of these take the relay lock; they read a snapshot of counts or ask the
history recorder.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from core.coordinator import SessionCoordinator
from models import (
    RelayErrorDetail,
    RelayErrorResponse,
    RelayErrorType,
    SourceListResponse,
    StatsResponse,
)
from utils.logging import error, LogRecord, LogEvent


def _history_error(exc: Exception) -> JSONResponse:
    error(LogRecord(
        LogEvent.HISTORY_QUERY_FAILED.value,
        "Failed to query broadcast history",
    ), exc=exc)
    body = RelayErrorResponse(error=RelayErrorDetail(
        type=RelayErrorType.HISTORY_UNAVAILABLE,
        message="Failed to fetch active broadcasts",
    ))
    return JSONResponse(content=body.model_dump(mode="json"), status_code=500)


def create_query_router(coordinator: SessionCoordinator) -> APIRouter:
    """Create query router with coordinator dependency."""
    router = APIRouter(tags=["Query"])

    @router.get("/stats")
    async def get_stats() -> JSONResponse:
        """Connected participant counts by role."""
        stats = StatsResponse(**coordinator.stats())
        return JSONResponse(content=stats.model_dump(by_alias=True))

    @router.get("/active-sources")
    async def get_active_sources() -> JSONResponse:
        """Source IDs with an open broadcast record."""
        try:
            sources = await coordinator.history.list_active()
        except Exception as e:
            return _history_error(e)
        return JSONResponse(content=sources)

    @router.get("/broadcasts/active")
    async def get_active_broadcasts() -> JSONResponse:
        """Open broadcast records with their start times."""
        try:
            records = await coordinator.history.list_active_records()
        except Exception as e:
            return _history_error(e)
        return JSONResponse(content=[r.model_dump(mode="json", by_alias=True) for r in records])

    @router.get("/sources")
    async def get_live_sources() -> JSONResponse:
        """Sources that can be joined right now."""
        body = SourceListResponse(sources=coordinator.directory.list_live())
        return JSONResponse(content=body.model_dump())

    return router
