"""Pydantic models for signaling messages and the query API."""

from .messages import (
    Role,
    InboundType,
    OutboundType,
    InboundMessage,
    AnnounceSource,
    AnnounceReceiver,
    RetireSource,
    JoinRequest,
    JoinAnswer,
    IceCandidate,
    ListSources,
    INBOUND_MODELS,
)

from .history import BroadcastRecord

from .responses import StatsResponse, SourceListResponse

from .errors import RelayErrorType, RelayErrorDetail, RelayErrorResponse

__all__ = [
    # Signaling
    "Role",
    "InboundType",
    "OutboundType",
    "InboundMessage",
    "AnnounceSource",
    "AnnounceReceiver",
    "RetireSource",
    "JoinRequest",
    "JoinAnswer",
    "IceCandidate",
    "ListSources",
    "INBOUND_MODELS",

    # History
    "BroadcastRecord",

    # Responses
    "StatsResponse",
    "SourceListResponse",

    # Errors
    "RelayErrorType",
    "RelayErrorDetail",
    "RelayErrorResponse",
]
