from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional

from race_client.config import RaceConfig
from race_client.storage.registry import ParticipantRegistry
from race_shared.protocol.commands import PacketType
from race_shared.protocol.constants import NO_SAVE_FILE
from race_shared.protocol.packets import (
    AllClientDataPacket,
    ClientData,
    ResetPacket,
    ServerMessagePacket,
    UpdateClientDataPacket,
)

if TYPE_CHECKING:
    from .network import ConnectionSession

logger = logging.getLogger(__name__)

SAVE_LOADED_MESSAGE = "Can't connect with save loaded, resetting"
WRONG_SEED_MESSAGE = "Wrong seed loaded, resetting"


def has_save_loaded(data: ClientData) -> bool:
    """A missing or unreadable fileNum counts as no save loaded."""
    file_num = data.get("fileNum")
    if file_num is None or isinstance(file_num, bool):
        return False
    try:
        return int(file_num) != NO_SAVE_FILE
    except (TypeError, ValueError):
        return False


def _participant_id(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class ReconciliationEngine:
    """
    Tracks every participant's latest data and resets the ones that break the race.

    Two rules are enforced from locally visible state only:

    * a participant seen for the first time must not have a save file loaded;
    * a known participant with a save loaded must be on the configured seed.

    A violation is corrected by asking the participant to reset: a
    SERVER_MESSAGE explaining why, then a RESET. The RESET goes out even when
    the message could not be delivered.
    """

    def __init__(self, network: "ConnectionSession", config: RaceConfig) -> None:
        self.network = network
        self.seed: str = config.seed
        self.registry = ParticipantRegistry()
        network.register_handler(PacketType.UPDATE_CLIENT_DATA, self._handle_update)
        network.register_handler(PacketType.ALL_CLIENT_DATA, self._handle_all_client_data)

    async def on_update_client_data(self, participant_id: int, data: ClientData) -> None:
        try:
            if participant_id not in self.registry:
                if has_save_loaded(data):
                    await self._reset_participant(participant_id, SAVE_LOADED_MESSAGE)
            elif has_save_loaded(data) and data.get("seed") != self.seed:
                await self._reset_participant(participant_id, WRONG_SEED_MESSAGE)
        finally:
            self.registry.set(participant_id, data)

    def on_all_client_data(self, entries: Iterable[ClientData]) -> None:
        """Refresh known participants from a broadcast; unknown ids are ignored."""
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            data = dict(entry)
            participant_id = _participant_id(data.pop("clientId", None))
            if participant_id is None:
                continue
            if not self.registry.update_existing(participant_id, data):
                logger.debug("Ignoring broadcast data for unknown participant %s", participant_id)

    async def _reset_participant(self, participant_id: int, message: str) -> None:
        logger.info("Resetting participant %s: %s", participant_id, message)
        try:
            await self.network.send(ServerMessagePacket(message=message, target_client_id=participant_id))
        finally:
            await self.network.send(ResetPacket(target_client_id=participant_id))

    async def _handle_update(self, packet: UpdateClientDataPacket) -> None:
        if packet.client_id is None:
            logger.warning("UPDATE_CLIENT_DATA without a client id, ignoring")
            return
        await self.on_update_client_data(packet.client_id, packet.data)

    async def _handle_all_client_data(self, packet: AllClientDataPacket) -> None:
        self.on_all_client_data(packet.clients)


__all__ = ["ReconciliationEngine", "has_save_loaded", "SAVE_LOADED_MESSAGE", "WRONG_SEED_MESSAGE"]
