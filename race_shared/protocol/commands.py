from __future__ import annotations

from enum import StrEnum
from typing import Union


class PacketType(StrEnum):
    """
    Packet discriminants exchanged with the anchor relay.
    The set is closed; anything else decodes as an unrecognized packet.
    """

    UPDATE_CLIENT_DATA = "UPDATE_CLIENT_DATA"
    RESET = "RESET"
    ALL_CLIENT_DATA = "ALL_CLIENT_DATA"
    SERVER_MESSAGE = "SERVER_MESSAGE"
    DISABLE_ANCHOR = "DISABLE_ANCHOR"
    REQUEST_SAVE_STATE = "REQUEST_SAVE_STATE"
    PUSH_SAVE_STATE = "PUSH_SAVE_STATE"


def normalize_packet_type(packet_type: Union[str, PacketType]) -> str:
    """Convert enum/string into canonical type text."""
    return packet_type.value if isinstance(packet_type, PacketType) else str(packet_type)


def is_packet_type(value: str) -> bool:
    """Check if `value` is a known packet type."""
    try:
        PacketType(value)
        return True
    except ValueError:
        return False


__all__ = [
    "PacketType",
    "normalize_packet_type",
    "is_packet_type",
]
