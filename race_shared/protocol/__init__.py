"""
Anchor wire protocol: packet types, typed packet models, newline framing
and schema validation.
"""

from .commands import PacketType, is_packet_type, normalize_packet_type
from .constants import CLIENT_VERSION, ENCODING, FRAME_DELIMITER, NO_SAVE_FILE, READ_CHUNK_SIZE
from .errors import DecodeError, ErrorCode, ProtocolError, TransportError
from .framing import FrameDecoder, decode_payload, encode_frame
from .packets import (
    AllClientDataPacket,
    BasePacket,
    ClientData,
    DisableAnchorPacket,
    Packet,
    PushSaveStatePacket,
    RequestSaveStatePacket,
    ResetPacket,
    ServerMessagePacket,
    UnrecognizedPacket,
    UpdateClientDataPacket,
    decode_packet,
    encode_packet,
)
from .validator import load_schema, validate_packet

__all__ = [
    "PacketType",
    "is_packet_type",
    "normalize_packet_type",
    "CLIENT_VERSION",
    "ENCODING",
    "FRAME_DELIMITER",
    "NO_SAVE_FILE",
    "READ_CHUNK_SIZE",
    "DecodeError",
    "ErrorCode",
    "ProtocolError",
    "TransportError",
    "FrameDecoder",
    "decode_payload",
    "encode_frame",
    "BasePacket",
    "ClientData",
    "Packet",
    "UpdateClientDataPacket",
    "ResetPacket",
    "AllClientDataPacket",
    "ServerMessagePacket",
    "DisableAnchorPacket",
    "RequestSaveStatePacket",
    "PushSaveStatePacket",
    "UnrecognizedPacket",
    "decode_packet",
    "encode_packet",
    "load_schema",
    "validate_packet",
]
