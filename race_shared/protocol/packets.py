from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .commands import PacketType, normalize_packet_type
from .errors import DecodeError, ErrorCode
from .validator import validate_packet

ClientData = Dict[str, Any]


class BasePacket(BaseModel):
    """Envelope shared by every packet. Wire names are camelCase."""

    model_config = ConfigDict(extra="allow", alias_generator=to_camel, populate_by_name=True)

    type: Union[PacketType, str] = Field(..., description="Packet discriminant such as UPDATE_CLIENT_DATA")
    client_id: Optional[int] = Field(default=None, description="Participant the packet came from, stamped on receipt")
    room_id: Optional[str] = Field(default=None, description="Race/session identifier")
    quiet: Optional[bool] = Field(default=None, description="Suppress logging of this packet")
    target_client_id: Optional[int] = Field(default=None, description="Participant addressed on a shared transport")

    @property
    def type_text(self) -> str:
        return normalize_packet_type(self.type)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BasePacket":
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise DecodeError(ErrorCode.INVALID_FIELD, f"Packet validation failed: {exc}") from exc


class UpdateClientDataPacket(BasePacket):
    type: PacketType = Field(default=PacketType.UPDATE_CLIENT_DATA, frozen=True)
    data: ClientData


class ResetPacket(BasePacket):
    type: PacketType = Field(default=PacketType.RESET, frozen=True)


class AllClientDataPacket(BasePacket):
    type: PacketType = Field(default=PacketType.ALL_CLIENT_DATA, frozen=True)
    clients: List[Any] = Field(default_factory=list)


class ServerMessagePacket(BasePacket):
    type: PacketType = Field(default=PacketType.SERVER_MESSAGE, frozen=True)
    message: str


class DisableAnchorPacket(BasePacket):
    type: PacketType = Field(default=PacketType.DISABLE_ANCHOR, frozen=True)


class RequestSaveStatePacket(BasePacket):
    type: PacketType = Field(default=PacketType.REQUEST_SAVE_STATE, frozen=True)


class PushSaveStatePacket(BasePacket):
    type: PacketType = Field(default=PacketType.PUSH_SAVE_STATE, frozen=True)


class UnrecognizedPacket(BasePacket):
    """A well-formed packet whose type this client does not know."""

    type: str


Packet = Union[
    UpdateClientDataPacket,
    ResetPacket,
    AllClientDataPacket,
    ServerMessagePacket,
    DisableAnchorPacket,
    RequestSaveStatePacket,
    PushSaveStatePacket,
    UnrecognizedPacket,
]

PACKET_MODELS: Dict[str, type[BasePacket]] = {
    PacketType.UPDATE_CLIENT_DATA.value: UpdateClientDataPacket,
    PacketType.RESET.value: ResetPacket,
    PacketType.ALL_CLIENT_DATA.value: AllClientDataPacket,
    PacketType.SERVER_MESSAGE.value: ServerMessagePacket,
    PacketType.DISABLE_ANCHOR.value: DisableAnchorPacket,
    PacketType.REQUEST_SAVE_STATE.value: RequestSaveStatePacket,
    PacketType.PUSH_SAVE_STATE.value: PushSaveStatePacket,
}


def decode_packet(text: str, client_id: Optional[int] = None, allow_unknown: bool = True) -> Packet:
    """
    Parse one payload into a typed packet.

    `client_id`, when given, replaces whatever clientId the payload carried:
    inbound identity comes from the connection, never from the wire.
    Unknown types decode to UnrecognizedPacket unless `allow_unknown` is False.
    """
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, RecursionError) as exc:
        raise DecodeError(ErrorCode.MALFORMED_PAYLOAD, f"Decode failed: {exc}") from exc
    if not isinstance(raw, dict):
        raise DecodeError(ErrorCode.MALFORMED_PAYLOAD, "Packet must be a JSON object")

    packet_type = raw.get("type")
    if not isinstance(packet_type, str) or not packet_type:
        raise DecodeError(ErrorCode.MISSING_TYPE, "Packet has no type")

    model = PACKET_MODELS.get(packet_type)
    if model is None:
        if not allow_unknown:
            raise DecodeError(ErrorCode.UNKNOWN_TYPE, f"Unrecognized packet type {packet_type!r}")
        model = UnrecognizedPacket

    if client_id is not None:
        raw = {**raw, "clientId": client_id}
    validate_packet(raw)
    return model.from_dict(raw)


def encode_packet(packet: BasePacket) -> str:
    """Serialize a packet to compact JSON. Unset envelope fields are omitted."""
    body = {key: value for key, value in packet.model_dump(by_alias=True).items() if value is not None}
    return json.dumps(body, ensure_ascii=False, separators=(",", ":"), default=str)


__all__ = [
    "ClientData",
    "BasePacket",
    "UpdateClientDataPacket",
    "ResetPacket",
    "AllClientDataPacket",
    "ServerMessagePacket",
    "DisableAnchorPacket",
    "RequestSaveStatePacket",
    "PushSaveStatePacket",
    "UnrecognizedPacket",
    "Packet",
    "PACKET_MODELS",
    "decode_packet",
    "encode_packet",
]
