from __future__ import annotations

from typing import Iterator

from .constants import ENCODING, FRAME_DELIMITER
from .errors import DecodeError, ErrorCode
from .packets import Packet, encode_packet


class FrameDecoder:
    """
    Splits an arbitrary byte stream into newline-delimited payloads.

    Bytes after the last delimiter stay buffered until a later feed completes
    them. There is no upper bound on a single payload: a peer that never sends
    a delimiter grows the buffer without limit.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet yielded."""
        return len(self._buffer)

    def feed(self, data: bytes) -> Iterator[bytes]:
        """Buffer `data` and lazily yield every complete payload, delimiter stripped."""
        self._buffer.extend(data)
        while True:
            index = self._buffer.find(FRAME_DELIMITER)
            if index == -1:
                break
            payload = bytes(self._buffer[:index])
            del self._buffer[: index + len(FRAME_DELIMITER)]
            yield payload

    def reset(self) -> None:
        self._buffer.clear()


def decode_payload(payload: bytes, strict: bool = False) -> str:
    """Decode a payload to text; malformed bytes become U+FFFD unless `strict`."""
    try:
        return payload.decode(ENCODING, errors="strict" if strict else "replace")
    except UnicodeDecodeError as exc:
        raise DecodeError(ErrorCode.MALFORMED_PAYLOAD, f"Decode failed: {exc}") from exc


def encode_frame(packet: Packet) -> bytes:
    """Encode packet into bytes (JSON + delimiter)."""
    return encode_packet(packet).encode(ENCODING, errors="replace") + FRAME_DELIMITER


__all__ = ["FrameDecoder", "decode_payload", "encode_frame"]
