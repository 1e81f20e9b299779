from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """Failure categories for packets and transport."""

    MALFORMED_PAYLOAD = 1001
    MISSING_TYPE = 1002
    UNKNOWN_TYPE = 1003
    INVALID_FIELD = 1004
    CONNECT_FAILED = 2001
    READ_FAILED = 2002
    WRITE_FAILED = 2003


class ProtocolError(Exception):
    """Structured protocol exception carrying code + message."""

    def __init__(self, code: ErrorCode, message: str = "") -> None:
        self.code = code
        self.message = message
        super().__init__(f"{code.name} ({int(code)}): {message}")


class DecodeError(ProtocolError):
    """Payload could not be turned into a packet. The payload is dropped, the connection survives."""

    pass


class TransportError(ProtocolError):
    """Socket level failure. Always ends the session."""

    pass


__all__ = ["ErrorCode", "ProtocolError", "DecodeError", "TransportError"]
