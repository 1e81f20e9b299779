from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Dict, Optional, Union

from race_client.config import RaceConfig
from race_shared.protocol import framing
from race_shared.protocol.commands import PacketType, normalize_packet_type
from race_shared.protocol.constants import READ_CHUNK_SIZE
from race_shared.protocol.errors import DecodeError, ErrorCode, TransportError
from race_shared.protocol.packets import Packet, decode_packet

logger = logging.getLogger(__name__)

PacketHandler = Callable[[Packet], Awaitable[None]]

LOG_PREFIX = "[Host Client]"

_connection_ids = itertools.count(1)


class SessionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class HostClientLogger(logging.LoggerAdapter):
    """Prefixes every line with the endpoint label."""

    def process(self, msg, kwargs):
        return f"{LOG_PREFIX}: {msg}", kwargs


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class ConnectionSession:
    """
    Single TCP connection to the anchor relay.

    Runs one receive task that frames, decodes and dispatches inbound packets
    in arrival order, and exposes `send` for outbound packets. Any transport
    failure closes the session for good; there is no reconnect.
    """

    def __init__(self, config: RaceConfig, connection_id: Optional[int] = None) -> None:
        self.config = config
        self.host: str = config.hostname
        self.port: int = config.port
        self.connection_id: int = connection_id if connection_id is not None else next(_connection_ids)
        self.state = SessionState.IDLE
        self.log = HostClientLogger(logger, {})

        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self._decoder = framing.FrameDecoder()
        self._receive_task: Optional[asyncio.Task] = None
        self._handlers: Dict[str, PacketHandler] = {}
        self._closed = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN

    async def connect(self) -> None:
        if self.state is not SessionState.IDLE:
            return
        self.state = SessionState.CONNECTING
        try:
            reader, writer = await asyncio.open_connection(self.host, self.port)
        except OSError as exc:
            self.log.error("Error connecting to %s:%s: %s", self.host, self.port, exc)
            self.state = SessionState.CLOSED
            self._closed.set()
            raise TransportError(ErrorCode.CONNECT_FAILED, f"Cannot connect to {self.host}:{self.port}: {exc}") from exc
        self.attach(reader, writer)

    def attach(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Adopt an already open stream and start reading from it."""
        self.reader = reader
        self.writer = writer
        self.state = SessionState.OPEN
        self.log.info("Connected")
        self._receive_task = asyncio.create_task(self._receive_loop(), name="anchor-recv-loop")

    def register_handler(self, packet_type: Union[str, PacketType], handler: PacketHandler) -> None:
        self._handlers[normalize_packet_type(packet_type)] = handler

    async def send(self, packet: Packet) -> None:
        if self.state is not SessionState.OPEN:
            self.log.warning("Dropping %s packet, connection is %s", packet.type_text, self.state.value)
            return
        if packet.room_id is None:
            packet = packet.model_copy(update={"room_id": self.config.room})
        if not packet.quiet:
            self.log.info("<- %s packet", packet.type_text)
        try:
            assert self.writer is not None
            self.writer.write(framing.encode_frame(packet))
            await self.writer.drain()
        except OSError as exc:
            self.log.error("Error sending packet: %s", exc)
            self.disconnect()

    def disconnect(self) -> None:
        """Close the connection. Safe to call repeatedly and from error paths."""
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        task = self._receive_task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()
        try:
            if self.writer is not None:
                self.writer.close()
        except (OSError, RuntimeError) as exc:
            self.log.error("Error disconnecting: %s", exc)
        finally:
            self._decoder.reset()
            self._closed.set()
            self.log.info("Disconnected")

    async def close(self) -> None:
        self.disconnect()
        task = self._receive_task
        if task is not None and task is not _current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self.writer is not None:
            try:
                await self.writer.wait_closed()
            except OSError as exc:
                self.log.debug("Transport closed with error: %s", exc)

    async def wait_until_closed(self) -> None:
        await self._closed.wait()

    async def _receive_loop(self) -> None:
        assert self.reader is not None
        try:
            while self.state is SessionState.OPEN:
                try:
                    chunk = await self.reader.read(READ_CHUNK_SIZE)
                except OSError as exc:
                    self.log.error("Error reading from connection: %s", exc)
                    break
                if not chunk:
                    break
                for payload in self._decoder.feed(chunk):
                    await self._handle_payload(payload)
                    if self.state is not SessionState.OPEN:
                        break
        finally:
            self.disconnect()

    async def _handle_payload(self, payload: bytes) -> None:
        try:
            packet = decode_packet(framing.decode_payload(payload), client_id=self.connection_id)
        except DecodeError as exc:
            self.log.warning("Error handling packet: %s", exc)
            return
        if not packet.quiet:
            self.log.info("-> %s packet", packet.type_text)
        await self._dispatch(packet)

    async def _dispatch(self, packet: Packet) -> None:
        handler = self._handlers.get(packet.type_text)
        if handler is None:
            self.log.debug("No handler registered for %s", packet.type_text)
            return
        try:
            await handler(packet)
        except Exception as exc:
            self.log.exception("Handler error for %s: %s", packet.type_text, exc)


__all__ = ["ConnectionSession", "HostClientLogger", "PacketHandler", "SessionState", "LOG_PREFIX"]
