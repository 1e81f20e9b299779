from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from race_client.config import RaceConfig
from race_client.core.network import ConnectionSession
from race_shared.protocol.commands import PacketType
from race_shared.protocol.packets import Packet, ResetPacket, ServerMessagePacket

logger = logging.getLogger(__name__)

HELP_TEXT = """Available commands:
  help: Show this help message
  reset: Reset every participant in the room
  quit: Disconnect and exit"""


class RaceCLI:
    """Operator console on stdin for the host client."""

    def __init__(
        self,
        network: ConnectionSession,
        config: RaceConfig,
        input_func: Callable[[str], str] = input,
    ) -> None:
        self.network = network
        self.config = config
        self._input = input_func
        network.register_handler(PacketType.SERVER_MESSAGE, self._print_server_message)
        network.register_handler(PacketType.RESET, self._print_notice)
        network.register_handler(PacketType.DISABLE_ANCHOR, self._print_notice)

    async def run(self) -> None:
        """Read commands until quit, end of input, or the connection closing."""
        logger.info("CLI ready. Type 'help' for commands.")
        loop = asyncio.get_running_loop()
        while self.network.is_open:
            try:
                line = await loop.run_in_executor(None, self._input, "> ")
            except EOFError:
                break
            parts = line.strip().split()
            if not parts:
                continue
            match parts[0]:
                case "reset":
                    await self.network.send(ResetPacket(room_id=self.config.room))
                case "quit":
                    break
                case _:
                    self._show_help()

    def _show_help(self) -> None:
        print(HELP_TEXT)

    async def _print_server_message(self, packet: Packet) -> None:
        if isinstance(packet, ServerMessagePacket):
            print(f"\n[Server] {packet.message}")
            print("> ", end="", flush=True)

    async def _print_notice(self, packet: Packet) -> None:
        print(f"\n[Anchor] {packet.type_text} received")
        print("> ", end="", flush=True)


__all__ = ["RaceCLI", "HELP_TEXT"]
