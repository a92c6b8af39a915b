"""Signaling message models.

Inbound messages are validated only for the routing fields the relay needs.
Negotiation payloads (``offer``, ``answer``, ``candidate``) are typed as
``Any`` and never inspected; extra fields are allowed and preserved.
"""

import enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field


class Role(str, enum.Enum):
    SOURCE = "source"
    RECEIVER = "receiver"


class InboundType(str, enum.Enum):
    ANNOUNCE_SOURCE = "announce-source"
    ANNOUNCE_RECEIVER = "announce-receiver"
    RETIRE_SOURCE = "retire-source"
    JOIN_REQUEST = "join-request"
    JOIN_ANSWER = "join-answer"
    ICE_CANDIDATE = "ice-candidate"
    LIST_SOURCES = "list-sources"


class OutboundType(str, enum.Enum):
    SOURCE_REGISTERED = "source-registered"
    RECEIVER_REGISTERED = "receiver-registered"
    SOURCE_ONLINE = "source-online"
    SOURCE_OFFLINE = "source-offline"
    SOURCE_LIST = "source-list"
    JOIN_OFFER = "join-offer"
    JOIN_ANSWER = "join-answer"


class InboundMessage(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str


class AnnounceSource(InboundMessage):
    source_id: str = Field(alias="sourceId", min_length=1)


class AnnounceReceiver(InboundMessage):
    receiver_id: str = Field(alias="receiverId", min_length=1)


class RetireSource(InboundMessage):
    source_id: str = Field(alias="sourceId", min_length=1)


class JoinRequest(InboundMessage):
    source_id: str = Field(alias="sourceId", min_length=1)
    receiver_id: str = Field(alias="receiverId", min_length=1)
    offer: Any


class JoinAnswer(InboundMessage):
    source_id: str = Field(alias="sourceId", min_length=1)
    receiver_id: str = Field(alias="receiverId", min_length=1)
    answer: Any


class IceCandidate(InboundMessage):
    from_id: str = Field(alias="fromId", min_length=1)
    # Required in directed mode, ignored in flood mode
    target_id: Optional[str] = Field(default=None, alias="targetId", min_length=1)
    candidate: Any


class ListSources(InboundMessage):
    pass


INBOUND_MODELS: Dict[str, Type[InboundMessage]] = {
    InboundType.ANNOUNCE_SOURCE.value: AnnounceSource,
    InboundType.ANNOUNCE_RECEIVER.value: AnnounceReceiver,
    InboundType.RETIRE_SOURCE.value: RetireSource,
    InboundType.JOIN_REQUEST.value: JoinRequest,
    InboundType.JOIN_ANSWER.value: JoinAnswer,
    InboundType.ICE_CANDIDATE.value: IceCandidate,
    InboundType.LIST_SOURCES.value: ListSources,
}


def source_registered(source_id: str) -> Dict[str, Any]:
    return {"type": OutboundType.SOURCE_REGISTERED.value, "sourceId": source_id}


def receiver_registered(receiver_id: str, sources: List[str]) -> Dict[str, Any]:
    return {
        "type": OutboundType.RECEIVER_REGISTERED.value,
        "receiverId": receiver_id,
        "sources": sources,
    }


def source_online(source_id: str) -> Dict[str, Any]:
    return {"type": OutboundType.SOURCE_ONLINE.value, "sourceId": source_id}


def source_offline(source_id: str) -> Dict[str, Any]:
    return {"type": OutboundType.SOURCE_OFFLINE.value, "sourceId": source_id}


def source_list(sources: List[str]) -> Dict[str, Any]:
    return {"type": OutboundType.SOURCE_LIST.value, "sources": sources}


def join_offer(receiver_id: str, offer: Any) -> Dict[str, Any]:
    return {"type": OutboundType.JOIN_OFFER.value, "receiverId": receiver_id, "offer": offer}


def join_answer(source_id: str, answer: Any) -> Dict[str, Any]:
    return {"type": OutboundType.JOIN_ANSWER.value, "sourceId": source_id, "answer": answer}
