from __future__ import annotations

import copy
from typing import Dict, Iterator, List, Optional

from race_shared.protocol.packets import ClientData


class ParticipantRegistry:
    """Last known data snapshot per participant id, kept for one session."""

    def __init__(self) -> None:
        self._store: Dict[int, ClientData] = {}

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._store

    def __len__(self) -> int:
        return len(self._store)

    def __iter__(self) -> Iterator[int]:
        return iter(self._store)

    def get(self, participant_id: int) -> Optional[ClientData]:
        return self._store.get(participant_id)

    def set(self, participant_id: int, data: ClientData) -> None:
        """Record a full snapshot, replacing any previous one."""
        self._store[participant_id] = data

    def update_existing(self, participant_id: int, data: ClientData) -> bool:
        """Replace the snapshot only if the participant is already known."""
        if participant_id not in self._store:
            return False
        self._store[participant_id] = data
        return True

    def ids(self) -> List[int]:
        return list(self._store)

    def snapshot(self) -> Dict[int, ClientData]:
        return copy.deepcopy(self._store)

    def clear(self) -> None:
        self._store.clear()
