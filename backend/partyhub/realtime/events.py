from __future__ import annotations

from ..game.models import Variant

STATE_EVENT = "game_state_update"
ERROR_EVENT = "error"

CREATE_ROOM = "create_room"
JOIN_ROOM = "join_room"
LEAVE_ROOM = "leave_room"


def namespace_for(variant: Variant) -> str:
    return f"/{variant.value}"


def inbound_commands(legal: dict) -> list[str]:
    """Every command name a variant accepts, room commands first."""
    names = {name for commands in legal.values() for name in commands}
    return [JOIN_ROOM, LEAVE_ROOM] + sorted(names - {JOIN_ROOM, LEAVE_ROOM})
