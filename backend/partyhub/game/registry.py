"""Process-wide room table.

Rooms are created on demand and live until the process exits; nothing
evicts them. Every access goes through :class:`RoomRegistry` so an expiry
policy can be added here without touching callers.
"""

from __future__ import annotations

import logging
import secrets
from threading import RLock
from typing import Callable, Iterator

from .models import ROOM_TYPES, Room, Variant

logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6


def generate_room_code() -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


class RoomRegistry:
    def __init__(self, code_factory: Callable[[], str] | None = None) -> None:
        self._lock = RLock()
        self._rooms: dict[str, Room] = {}
        self._code_factory = code_factory or generate_room_code

    def create(self, variant: Variant, host_id: str, **fields) -> Room:
        with self._lock:
            code = self._code_factory()
            while code in self._rooms:
                code = self._code_factory()

            room = ROOM_TYPES[variant](code=code, host_id=host_id, **fields)
            self._rooms[code] = room

        logger.info("room created code=%s variant=%s host=%s", code, variant.value, host_id)
        return room

    def get(self, code: str | None) -> Room | None:
        if not code:
            return None
        with self._lock:
            return self._rooms.get(code.strip().upper())

    def list_rooms(self, variant: Variant | None = None) -> list[Room]:
        with self._lock:
            rooms = list(self._rooms.values())
        if variant is None:
            return rooms
        return [r for r in rooms if r.variant == variant]

    def __contains__(self, code: str) -> bool:
        with self._lock:
            return code in self._rooms

    def __iter__(self) -> Iterator[Room]:
        return iter(self.list_rooms())

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)
