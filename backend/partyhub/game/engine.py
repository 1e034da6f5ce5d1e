"""Generic room state-machine driver.

A :class:`VariantEngine` owns the rules of one game variant. Commands and
timer expiries both enter through the engine under the room's lock and run
to completion before anything else touches that room. Handlers validate
first and raise :class:`CommandRejected` before mutating; an unexpected
failure rolls the room back to the snapshot taken before the handler ran.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar

from ..config import Config
from .commands import ApplyResult, Command
from .errors import CommandRejected
from .models import PlayerRecord, Room, Variant, now_ms
from .scoring import ensure_valid_scores
from .timers import TimerService, TimerToken

logger = logging.getLogger(__name__)

Publisher = Callable[[Room, ApplyResult], None]

MAX_CHAT_HISTORY = 200
MAX_STROKES = 2000
MAX_NAME_LENGTH = 16

def validate_name(name: str) -> bool:
    n = (name or "").strip()
    if not n or len(n) > MAX_NAME_LENGTH:
        return False
    if "<" in n or ">" in n:
        return False
    return all(ord(ch) >= 32 for ch in n)


@dataclass
class EngineContext:
    timers: TimerService
    publish: Publisher = lambda room, result: None
    settings: Any = Config
    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], int] = now_ms


class VariantEngine:
    variant: ClassVar[Variant]
    # Commands legal in each phase, besides join_room and leave_room.
    legal: ClassVar[dict[Enum, frozenset[str]]]
    # Phases that start a timer; each needs an entry in ``fallbacks``.
    timed_phases: ClassVar[frozenset[Enum]] = frozenset()

    def __init__(self, ctx: EngineContext) -> None:
        self.ctx = ctx
        missing = [p for p in self.timed_phases if p not in self.fallbacks()]
        if missing:
            raise TypeError(f"{type(self).__name__} has no timeout fallback for {missing}")

    @property
    def settings(self) -> Any:
        return self.ctx.settings

    @property
    def rng(self) -> random.Random:
        return self.ctx.rng

    def room_fields(self) -> dict[str, Any]:
        """Initial values for a new room of this variant."""
        return {}

    def fallbacks(self) -> dict[Enum, Callable[[Room, ApplyResult], None]]:
        return {}

    # -- entry points -------------------------------------------------------

    def open_room(self, room: Room, command: Command) -> ApplyResult:
        with room.lock:
            result = ApplyResult()
            try:
                player = self._admit(room, command, result)
            except CommandRejected as exc:
                return ApplyResult.rejected(exc.code, exc.notice)
            result.tell(player.id, "room_created", {"roomCode": room.code})
            result.changed()
            return result

    def apply(self, room: Room, command: Command) -> ApplyResult:
        with room.lock:
            if command.name == "join_room":
                return self._guarded(room, command, self._on_join)
            if command.name == "leave_room":
                return self._guarded(room, command, self._on_leave)

            handler = getattr(self, f"on_{command.name}", None)
            if handler is None:
                return ApplyResult.rejected("unknown_command")
            if command.name not in self.legal.get(room.phase, frozenset()):
                logger.debug(
                    "rejected room=%s cmd=%s phase=%s wrong_phase",
                    room.code, command.name, room.phase.value,
                )
                return ApplyResult.rejected("wrong_phase")
            if command.player_id not in room.players:
                return ApplyResult.rejected("not_in_room")
            return self._guarded(room, command, handler)

    def disconnect(self, room: Room, player_id: str, sid: str | None = None) -> ApplyResult:
        with room.lock:
            player = room.players.get(player_id)
            if player is None or (sid is not None and player.sid != sid):
                return ApplyResult.rejected("not_in_room")
            player.sid = None
            result = ApplyResult()
            result.changed()
            return result

    # -- plumbing -----------------------------------------------------------

    def _guarded(self, room: Room, command: Command, handler: Callable[[Room, Command, ApplyResult], None]) -> ApplyResult:
        snapshot = room.snapshot()
        result = ApplyResult()
        try:
            ensure_valid_scores(room.players.values())
            handler(room, command, result)
            ensure_valid_scores(room.players.values())
        except CommandRejected as exc:
            room.restore(snapshot)
            self._resync_timer(room)
            logger.debug("rejected room=%s cmd=%s reason=%s", room.code, command.name, exc.code)
            return ApplyResult.rejected(exc.code, exc.notice)
        except Exception:
            room.restore(snapshot)
            self._resync_timer(room)
            logger.exception("command failed room=%s cmd=%s", room.code, command.name)
            return ApplyResult.rejected("internal_error")
        return result

    def _admit(self, room: Room, command: Command, result: ApplyResult) -> PlayerRecord:
        player_id = command.player_id
        nickname = command.get_str("nickname")
        if not player_id or not validate_name(nickname):
            raise CommandRejected("invalid_payload", "Dados inválidos.")

        existing = room.players.get(player_id)
        if existing is not None:
            # Reconnect: keep scores, swap the connection handle.
            existing.sid = command.sid
            existing.nickname = nickname
            existing.avatar = command.get_str("avatar")
            return existing

        if room.phase.value != "LOBBY" and not room.allow_late_join:
            raise CommandRejected("game_started", "Jogo já começou.")

        player = PlayerRecord(
            id=player_id,
            nickname=nickname,
            avatar=command.get_str("avatar"),
            is_vip=bool(command.data.get("isVip")),
            sid=command.sid,
            joined_at_ms=self.ctx.clock(),
        )
        room.players[player_id] = player
        self.on_player_added(room, player, result)
        return player

    def _on_join(self, room: Room, command: Command, result: ApplyResult) -> None:
        player = self._admit(room, command, result)
        result.tell(player.id, "joined_room", {"roomCode": room.code})
        self.on_player_joined(room, player, result)
        result.changed()

    def _on_leave(self, room: Room, command: Command, result: ApplyResult) -> None:
        player_id = command.player_id
        if player_id not in room.players:
            raise CommandRejected("not_in_room")
        del room.players[player_id]
        if room.host_id == player_id and room.players:
            room.host_id = next(iter(room.players))
        self.on_player_left(room, player_id, result)
        result.changed()

    # -- hooks --------------------------------------------------------------

    def on_player_added(self, room: Room, player: PlayerRecord, result: ApplyResult) -> None:
        pass

    def on_player_joined(self, room: Room, player: PlayerRecord, result: ApplyResult) -> None:
        pass

    def on_player_left(self, room: Room, player_id: str, result: ApplyResult) -> None:
        pass

    # -- shared helpers -----------------------------------------------------

    def require_host(self, room: Room, command: Command) -> None:
        if command.player_id != room.host_id:
            raise CommandRejected("only_host")

    def append_chat(self, room: Room, message: dict) -> None:
        room.chat_messages.append(message)
        if len(room.chat_messages) > MAX_CHAT_HISTORY:
            room.chat_messages = room.chat_messages[-MAX_CHAT_HISTORY:]

    def append_stroke(self, room: Room, stroke: dict) -> None:
        room.strokes.append(stroke)
        if len(room.strokes) > MAX_STROKES:
            room.strokes = room.strokes[-MAX_STROKES:]

    def set_phase(self, room: Room, phase: Enum) -> None:
        if room.phase != phase:
            logger.debug("room=%s phase %s -> %s", room.code, room.phase.value, phase.value)
        room.phase = phase

    def leader(self, room: Room, threshold: int) -> PlayerRecord | None:
        """Highest cumulative score at or above ``threshold`` (join order on ties)."""
        best = None
        for p in room.ordered_players():
            if p.total_score >= threshold and (best is None or p.total_score > best.total_score):
                best = p
        return best

    def reset_round_scores(self, room: Room) -> None:
        for p in room.players.values():
            p.score = 0

    # -- timers -------------------------------------------------------------

    def start_timer(self, room: Room, seconds: int) -> TimerToken:
        phase = room.phase
        token = self.ctx.timers.start(
            room.code,
            seconds,
            on_tick=lambda t: self._tick(room, t),
            on_expire=lambda t: self._expire(room, phase, t),
        )
        room.timer_generation = token.generation
        room.timer_left = token.remaining
        return token

    def cancel_timer(self, room: Room) -> None:
        self.ctx.timers.cancel(room.code)
        room.timer_generation = 0
        room.timer_left = 0

    def _resync_timer(self, room: Room) -> None:
        """Bring the live countdown back in line with a restored room."""
        token = self.ctx.timers.current(room.code)
        if not room.timer_generation:
            if token is not None:
                self.ctx.timers.cancel(room.code)
            return
        if token is None or token.generation != room.timer_generation:
            self.start_timer(room, max(1, room.timer_left))

    def on_tick(self, room: Room, result: ApplyResult) -> None:
        pass

    def _tick(self, room: Room, token: TimerToken) -> None:
        with room.lock:
            if room.timer_generation != token.generation:
                return
            room.timer_left = token.remaining
            result = ApplyResult()
            result.emit("timer_update", {"roomCode": room.code, "timer": room.timer_left})
            self.on_tick(room, result)
        self.ctx.publish(room, result)

    def _expire(self, room: Room, phase: Enum, token: TimerToken) -> None:
        with room.lock:
            if room.timer_generation != token.generation or room.phase != phase:
                return
            fallback = self.fallbacks()[phase]
            snapshot = room.snapshot()
            room.timer_generation = 0
            room.timer_left = 0
            result = ApplyResult()
            try:
                ensure_valid_scores(room.players.values())
                fallback(room, result)
                ensure_valid_scores(room.players.values())
            except Exception:
                room.restore(snapshot)
                logger.exception("timeout fallback failed room=%s phase=%s", room.code, phase.value)
                # Retry the forced transition on the next second.
                self.start_timer(room, 1)
                return
            result.changed()
            logger.debug("room=%s timeout in %s handled", room.code, phase.value)
        self.ctx.publish(room, result)
