"""HTTP and WebSocket routes for the relay."""

from .health import create_health_router
from .query import create_query_router
from .signaling import create_signaling_router

__all__ = [
    "create_health_router",
    "create_query_router",
    "create_signaling_router",
]
