from __future__ import annotations

import logging
import random
from threading import RLock
from typing import Any, Callable, Iterator

from ..config import Config
from .commands import ApplyResult, Command
from .engine import EngineContext, VariantEngine, validate_name
from .errors import RoomNotFound, UnknownVariant
from .models import Room, Variant, now_ms
from .registry import RoomRegistry
from .scoring import ensure_valid_scores
from .timers import TimerService
from .variants.concept import ConceptEngine
from .variants.inkspiracy import InkspiracyEngine
from .variants.knowme import KnowmeEngine
from .variants.rabisco import RabiscoEngine
from .visibility import view

logger = logging.getLogger(__name__)

ENGINES: dict[Variant, type[VariantEngine]] = {
    Variant.INKSPIRACY: InkspiracyEngine,
    Variant.CONCEPT: ConceptEngine,
    Variant.KNOWME: KnowmeEngine,
    Variant.RABISCO: RabiscoEngine,
}


def parse_variant(value: Any) -> Variant:
    if isinstance(value, Variant):
        return value
    try:
        return Variant(str(value or "").strip().lower())
    except ValueError:
        raise UnknownVariant(value) from None


class GameService:
    """Process-scoped entry point for every room of every variant.

    The transport installs ``publish`` to receive results that are produced
    outside a command (timer ticks and expiries).
    """

    def __init__(
        self,
        settings: Any = Config,
        timers: TimerService | None = None,
        rng: random.Random | None = None,
        code_factory: Callable[[], str] | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.settings = settings
        self.timers = timers or TimerService()
        self.registry = RoomRegistry(code_factory)
        self.publish: Callable[[Room, ApplyResult], None] = lambda room, result: None

        ctx = EngineContext(
            timers=self.timers,
            publish=self._publish,
            settings=settings,
            rng=rng or random.Random(),
            clock=clock,
        )
        self.engines: dict[Variant, VariantEngine] = {v: cls(ctx) for v, cls in ENGINES.items()}

        self._lock = RLock()
        # sid -> (room code, player id)
        self._sessions: dict[str, tuple[str, str]] = {}

    def _publish(self, room: Room, result: ApplyResult) -> None:
        self.publish(room, result)

    def engine(self, variant: Variant | str) -> VariantEngine:
        return self.engines[parse_variant(variant)]

    # -- rooms --------------------------------------------------------------

    def create_room(
        self,
        variant: Variant | str,
        host_id: str,
        nickname: str,
        avatar: str = "",
        is_vip: bool = False,
        sid: str | None = None,
    ) -> tuple[Room | None, ApplyResult]:
        engine = self.engine(variant)
        if not host_id or not validate_name(nickname):
            return None, ApplyResult.rejected("invalid_payload", "Dados inválidos.")

        room = self.registry.create(engine.variant, host_id, **engine.room_fields())
        command = Command(
            "create_room",
            player_id=host_id,
            data={"nickname": nickname, "avatar": avatar, "isVip": is_vip},
            sid=sid,
        )
        result = engine.open_room(room, command)
        if result.ok and sid:
            self._bind(sid, room.code, host_id)
        return room, result

    def get_room(self, code: str | None, variant: Variant | str | None = None) -> Room | None:
        room = self.registry.get(code)
        if room is None or (variant is not None and room.variant != parse_variant(variant)):
            return None
        return room

    def dispatch(self, variant: Variant | str, code: str | None, command: Command) -> tuple[Room | None, ApplyResult]:
        room = self.get_room(code, variant)
        if room is None:
            exc = RoomNotFound()
            return None, ApplyResult.rejected(exc.code, exc.notice)

        result = self.engines[room.variant].apply(room, command)
        if result.ok and command.sid:
            if command.name == "join_room":
                self._bind(command.sid, room.code, command.player_id)
            elif command.name == "leave_room":
                self._unbind(command.sid)
        return room, result

    def disconnect(self, sid: str) -> tuple[Room | None, ApplyResult]:
        session = self._unbind(sid)
        if session is None:
            return None, ApplyResult.rejected("not_in_room")
        code, player_id = session
        room = self.registry.get(code)
        if room is None:
            return None, ApplyResult.rejected("room_not_found")
        logger.debug("disconnect room=%s player=%s", code, player_id)
        return room, self.engines[room.variant].disconnect(room, player_id, sid)

    # -- sessions -----------------------------------------------------------

    def _bind(self, sid: str, code: str, player_id: str) -> None:
        with self._lock:
            self._sessions[sid] = (code, player_id)

    def _unbind(self, sid: str) -> tuple[str, str] | None:
        with self._lock:
            return self._sessions.pop(sid, None)

    def session(self, sid: str) -> tuple[str, str] | None:
        with self._lock:
            return self._sessions.get(sid)

    # -- views --------------------------------------------------------------

    def view(self, code: str, player_id: str | None) -> dict[str, Any] | None:
        room = self.registry.get(code)
        if room is None:
            return None
        with room.lock:
            ensure_valid_scores(room.players.values())
            return view(room, player_id)

    def state_payloads(self, room: Room) -> Iterator[tuple[str, dict[str, Any]]]:
        """Yield ``(sid, payload)`` for every connected player of ``room``."""
        with room.lock:
            ensure_valid_scores(room.players.values())
            out = []
            for p in room.ordered_players():
                if p.sid is None:
                    continue
                state = view(room, p.id)
                out.append((p.sid, {"gameState": state, "players": state["players"]}))
        return iter(out)

    def sid_of(self, room: Room, player_id: str) -> str | None:
        with room.lock:
            player = room.players.get(player_id)
            return player.sid if player else None

