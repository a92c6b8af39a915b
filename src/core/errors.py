"""Exceptions raised while decoding inbound signaling messages."""


class SignalingError(Exception):
    """Base class for messages the relay refuses to route."""


class MalformedMessageError(SignalingError):
    """Unparsable payload or a missing routing field."""


class UnknownMessageTypeError(SignalingError):
    def __init__(self, message_type: str):
        super().__init__(f"Unknown message type '{message_type}'")
        self.message_type = message_type
