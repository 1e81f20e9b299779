from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

from .commands import PacketType, normalize_packet_type
from .errors import DecodeError, ErrorCode

SCHEMA_DIR = Path(__file__).parent / "schemas"
ENVELOPE_SCHEMA = "envelope.json"

# Mapping packet type -> schema filename (relative to SCHEMA_DIR)
SCHEMA_REGISTRY: Dict[str, str] = {
    PacketType.UPDATE_CLIENT_DATA.value: "update_client_data.json",
    PacketType.ALL_CLIENT_DATA.value: "all_client_data.json",
    PacketType.SERVER_MESSAGE.value: "server_message.json",
}


def _read_schema(filename: str) -> Optional[dict]:
    path = SCHEMA_DIR / filename
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as fp:
        return json.load(fp)


@lru_cache(maxsize=1)
def load_envelope_schema() -> Optional[dict]:
    return _read_schema(ENVELOPE_SCHEMA)


@lru_cache(maxsize=16)
def load_schema(packet_type: str) -> Optional[dict]:
    """Load the body schema for a packet type if one exists."""
    filename = SCHEMA_REGISTRY.get(normalize_packet_type(packet_type))
    if not filename:
        return None
    return _read_schema(filename)


def _check(instance: Dict[str, Any], schema: Optional[dict]) -> None:
    if not schema:
        return
    try:
        jsonschema.validate(instance=instance, schema=schema)
    except jsonschema.ValidationError as exc:
        raise DecodeError(ErrorCode.INVALID_FIELD, f"Schema validation failed: {exc.message}") from exc


def validate_packet(raw: Dict[str, Any], schema: Optional[dict] = None) -> None:
    """Validate the shared envelope, then the type-specific body."""
    _check(raw, load_envelope_schema())
    if schema is None:
        schema = load_schema(raw.get("type", ""))
    _check(raw, schema)


__all__ = ["load_schema", "load_envelope_schema", "validate_packet"]
