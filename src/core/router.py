"""
Message router for the signaling relay.

Given one inbound message and the shared registry/directory, the router
applies the state mutations the message implies and returns the sends it
produces. It never performs I/O itself: the session coordinator calls it
under the relay lock and delivers ``RoutingResult.sends`` after releasing it.

Routing misses (a target that is not registered or no longer live) are an
expected outcome of participant churn and are dropped without an error.
"""

import dataclasses
import enum
import json
from typing import Any, Callable, Dict, List, Union

from pydantic import ValidationError

from core.directory import SourceDirectory
from core.errors import MalformedMessageError, UnknownMessageTypeError
from core.registry import ConnectionRegistry, Participant
from core.transport import Transport
from models import (
    INBOUND_MODELS,
    AnnounceReceiver,
    AnnounceSource,
    IceCandidate,
    InboundMessage,
    InboundType,
    JoinAnswer,
    JoinRequest,
    RetireSource,
    Role,
)
from models import messages as outbound
from utils.logging import debug, info, warning, LogRecord, LogEvent


class IceRoutingMode(str, enum.Enum):
    DIRECTED = "directed"
    # Legacy compatibility path: candidate goes to every other connection
    FLOOD = "flood"


@dataclasses.dataclass
class Outbound:
    transport: Transport
    message: Dict[str, Any]


@dataclasses.dataclass
class RoutingResult:
    sends: List[Outbound] = dataclasses.field(default_factory=list)
    # Source IDs whose broadcast started or stopped, for the history recorder
    started: List[str] = dataclasses.field(default_factory=list)
    stopped: List[str] = dataclasses.field(default_factory=list)

    def send(self, transport: Transport, message: Dict[str, Any]) -> None:
        self.sends.append(Outbound(transport, message))


def decode_message(raw: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    """Decode a transport frame into a JSON object."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (ValueError, RecursionError) as e:
            raise MalformedMessageError(f"Invalid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise MalformedMessageError(f"Expected a JSON object, got {type(raw).__name__}")
    return raw


def parse_message(raw: Dict[str, Any]) -> InboundMessage:
    """Validate the routing fields of a decoded message."""
    message_type = raw.get("type")
    if not isinstance(message_type, str) or not message_type:
        raise MalformedMessageError("Message has no 'type'")

    model = INBOUND_MODELS.get(message_type)
    if model is None:
        raise UnknownMessageTypeError(message_type)

    try:
        return model.model_validate(raw)
    except ValidationError as e:
        missing = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise MalformedMessageError(
            f"Invalid '{message_type}' message: bad or missing {', '.join(missing)}"
        ) from e


Handler = Callable[[Transport, Any, Dict[str, Any]], RoutingResult]


class MessageRouter:
    """Dispatches inbound messages by ``type``."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: SourceDirectory,
        ice_mode: IceRoutingMode = IceRoutingMode.DIRECTED,
    ):
        self.registry = registry
        self.directory = directory
        self.ice_mode = IceRoutingMode(ice_mode)
        self._handlers: Dict[str, Handler] = {
            InboundType.ANNOUNCE_SOURCE.value: self._announce_source,
            InboundType.ANNOUNCE_RECEIVER.value: self._announce_receiver,
            InboundType.RETIRE_SOURCE.value: self._retire_source,
            InboundType.JOIN_REQUEST.value: self._join_request,
            InboundType.JOIN_ANSWER.value: self._join_answer,
            InboundType.ICE_CANDIDATE.value: self._ice_candidate,
            InboundType.LIST_SOURCES.value: self._list_sources,
        }

    def route(self, sender: Transport, raw: Dict[str, Any]) -> RoutingResult:
        """
        Route one decoded message from ``sender``.

        Malformed messages and unknown types are logged and dropped; the
        result is then empty and the sender's connection is left open.
        """
        try:
            message = parse_message(raw)
        except MalformedMessageError as e:
            warning(LogRecord(
                LogEvent.MESSAGE_MALFORMED.value,
                str(e),
                sender.connection_id,
                {"type": raw.get("type") if isinstance(raw, dict) else None},
            ))
            return RoutingResult()
        except UnknownMessageTypeError as e:
            warning(LogRecord(
                LogEvent.MESSAGE_UNKNOWN_TYPE.value,
                str(e),
                sender.connection_id,
                {"type": e.message_type},
            ))
            return RoutingResult()

        debug(LogRecord(
            LogEvent.MESSAGE_RECEIVED.value,
            f"Received '{message.type}'",
            sender.connection_id,
            {"type": message.type},
        ))
        return self._handlers[message.type](sender, message, raw)

    def release(self, transport: Transport) -> RoutingResult:
        """
        Clean up after a closed transport.

        Equivalent to ``retire-source`` when the transport still owned a live
        source. A transport whose entry was already evicted owns nothing, so
        the new owner of its ID is left untouched.
        """
        result = RoutingResult()
        participant = self.registry.unregister_by_transport(transport)
        if participant is not None and participant.role == Role.SOURCE:
            self._stop_source(participant.id, result)
        return result

    # ----- lifecycle -----

    def _announce_source(self, sender: Transport, message: AnnounceSource, raw: Dict[str, Any]) -> RoutingResult:
        result = RoutingResult()
        source_id = message.source_id
        self._release_previous_identity(sender, source_id, result)

        self.registry.register(source_id, Role.SOURCE, sender)
        if self.directory.mark_live(source_id):
            result.started.append(source_id)

        result.send(sender, outbound.source_registered(source_id))
        self._fan_out_to_receivers(outbound.source_online(source_id), result)
        return result

    def _announce_receiver(self, sender: Transport, message: AnnounceReceiver, raw: Dict[str, Any]) -> RoutingResult:
        result = RoutingResult()
        receiver_id = message.receiver_id
        self._release_previous_identity(sender, receiver_id, result)

        # Same ID was broadcasting until now; a receiver cannot stay in the directory
        self._stop_source(receiver_id, result)
        self.registry.register(receiver_id, Role.RECEIVER, sender)

        result.send(sender, outbound.receiver_registered(receiver_id, self.directory.list_live()))
        return result

    def _retire_source(self, sender: Transport, message: RetireSource, raw: Dict[str, Any]) -> RoutingResult:
        result = RoutingResult()
        source_id = message.source_id
        if not self.directory.is_live(source_id):
            self._log_miss(sender, message.type, source_id)
            return result

        self._stop_source(source_id, result)
        self.registry.unregister(source_id)
        return result

    # ----- negotiation -----

    def _join_request(self, sender: Transport, message: JoinRequest, raw: Dict[str, Any]) -> RoutingResult:
        result = RoutingResult()
        source = self._resolve(message.source_id, Role.SOURCE)
        if source is None or not self.directory.is_live(source.id):
            # Raced with a source that just stopped
            self._log_miss(sender, message.type, message.source_id)
            return result

        result.send(source.transport, outbound.join_offer(message.receiver_id, message.offer))
        self._log_routed(sender, message.type, source)
        return result

    def _join_answer(self, sender: Transport, message: JoinAnswer, raw: Dict[str, Any]) -> RoutingResult:
        result = RoutingResult()
        receiver = self._resolve(message.receiver_id, Role.RECEIVER)
        if receiver is None:
            self._log_miss(sender, message.type, message.receiver_id)
            return result

        result.send(receiver.transport, outbound.join_answer(message.source_id, message.answer))
        self._log_routed(sender, message.type, receiver)
        return result

    def _ice_candidate(self, sender: Transport, message: IceCandidate, raw: Dict[str, Any]) -> RoutingResult:
        if self.ice_mode == IceRoutingMode.FLOOD:
            return self._flood_candidate(sender, message, raw)

        result = RoutingResult()
        if message.target_id is None:
            warning(LogRecord(
                LogEvent.MESSAGE_MALFORMED.value,
                "Invalid 'ice-candidate' message: bad or missing targetId",
                sender.connection_id,
                {"type": message.type},
            ))
            return result

        target = self.registry.lookup(message.target_id)
        if target is None or target.transport is sender or target.id == message.from_id:
            self._log_miss(sender, message.type, message.target_id)
            return result

        result.send(target.transport, raw)
        self._log_routed(sender, message.type, target)
        return result

    def _flood_candidate(self, sender: Transport, message: IceCandidate, raw: Dict[str, Any]) -> RoutingResult:
        result = RoutingResult()
        for participant in self.registry.participants():
            if participant.id == message.from_id or participant.transport is sender:
                continue
            result.send(participant.transport, raw)

        debug(LogRecord(
            LogEvent.ICE_CANDIDATE_FLOODED.value,
            f"Flooded candidate from {message.from_id} to {len(result.sends)} connections",
            sender.connection_id,
            {"type": message.type, "participant_id": message.from_id, "targets": len(result.sends)},
        ))
        return result

    def _list_sources(self, sender: Transport, message: InboundMessage, raw: Dict[str, Any]) -> RoutingResult:
        result = RoutingResult()
        result.send(sender, outbound.source_list(self.directory.list_live()))
        return result

    # ----- helpers -----

    def _resolve(self, participant_id: str, role: Role):
        participant = self.registry.lookup(participant_id)
        if participant is None or participant.role != role:
            return None
        return participant

    def _stop_source(self, source_id: str, result: RoutingResult) -> None:
        if self.directory.mark_stopped(source_id):
            result.stopped.append(source_id)
            self._fan_out_to_receivers(outbound.source_offline(source_id), result)

    def _fan_out_to_receivers(self, message: Dict[str, Any], result: RoutingResult) -> None:
        for receiver in self.registry.participants(Role.RECEIVER):
            result.send(receiver.transport, message)

    def _release_previous_identity(self, sender: Transport, new_id: str, result: RoutingResult) -> None:
        """A transport carries one identity; announcing another retires the old one."""
        current = self.registry.lookup_by_transport(sender)
        if current is None or current.id == new_id:
            return

        info(LogRecord(
            LogEvent.IDENTITY_REPLACED.value,
            f"Connection switched identity from {current.id} to {new_id}",
            sender.connection_id,
            {"participant_id": current.id, "role": current.role.value, "new_participant_id": new_id},
        ))
        self.registry.unregister(current.id)
        if current.role == Role.SOURCE:
            self._stop_source(current.id, result)

    def _log_miss(self, sender: Transport, message_type: str, target_id: str) -> None:
        debug(LogRecord(
            LogEvent.ROUTING_MISS.value,
            f"No target '{target_id}' for '{message_type}', dropped",
            sender.connection_id,
            {"type": message_type, "participant_id": target_id},
        ))

    def _log_routed(self, sender: Transport, message_type: str, target: Participant) -> None:
        debug(LogRecord(
            LogEvent.MESSAGE_ROUTED.value,
            f"Routed '{message_type}' to {target.role.value} {target.id}",
            sender.connection_id,
            {"type": message_type, "participant_id": target.id, "role": target.role.value},
        ))
