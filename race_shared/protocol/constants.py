"""Protocol-wide constants for the anchor wire format."""

ENCODING = "utf-8"
FRAME_DELIMITER = b"\n"
READ_CHUNK_SIZE = 1024  # bytes per socket read
NO_SAVE_FILE = 255  # fileNum sentinel: no save loaded
CLIENT_VERSION = "Anchor Race Build 1"

__all__ = [
    "ENCODING",
    "FRAME_DELIMITER",
    "READ_CHUNK_SIZE",
    "NO_SAVE_FILE",
    "CLIENT_VERSION",
]
