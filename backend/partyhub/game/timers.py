"""Per-room countdown timers.

A room owns at most one live :class:`TimerToken`. Starting a timer cancels
the previous token for that room, so a stale countdown can never fire its
fallback transition. Ticks happen at one-second granularity.

In production the service is given ``spawn``/``sleep`` (Flask-SocketIO's
``start_background_task`` and ``sleep``) and each timer runs in its own
background task. Without them the timers are driven by :meth:`advance`,
which is what the tests use.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Callable

logger = logging.getLogger(__name__)

TickCallback = Callable[["TimerToken"], None]
ExpireCallback = Callable[["TimerToken"], None]

_generations = itertools.count(1)


@dataclass
class TimerToken:
    room_code: str
    duration: int
    on_tick: TickCallback | None = None
    on_expire: ExpireCallback | None = None
    remaining: int = 0
    generation: int = field(default_factory=lambda: next(_generations))
    cancelled: bool = False
    fired: bool = False

    def __post_init__(self) -> None:
        self.remaining = max(0, int(self.duration))

    @property
    def live(self) -> bool:
        return not self.cancelled and not self.fired

    def cancel(self) -> None:
        self.cancelled = True


class TimerService:
    def __init__(
        self,
        spawn: Callable[..., object] | None = None,
        sleep: Callable[[float], object] | None = None,
        tick_seconds: float = 1.0,
    ) -> None:
        self._spawn = spawn
        self._sleep = sleep
        self._tick_seconds = tick_seconds
        self._lock = RLock()
        self._tokens: dict[str, TimerToken] = {}

    def start(
        self,
        room_code: str,
        seconds: int,
        on_tick: TickCallback | None = None,
        on_expire: ExpireCallback | None = None,
    ) -> TimerToken:
        token = TimerToken(room_code=room_code, duration=seconds, on_tick=on_tick, on_expire=on_expire)
        with self._lock:
            prev = self._tokens.get(room_code)
            if prev is not None:
                prev.cancel()
            self._tokens[room_code] = token

        logger.debug("timer start room=%s seconds=%s gen=%s", room_code, seconds, token.generation)

        if self._spawn is not None:
            self._spawn(self._run, token)
        return token

    def cancel(self, room_code: str) -> None:
        with self._lock:
            token = self._tokens.pop(room_code, None)
        if token is not None:
            token.cancel()
            logger.debug("timer cancel room=%s gen=%s", room_code, token.generation)

    def current(self, room_code: str) -> TimerToken | None:
        with self._lock:
            token = self._tokens.get(room_code)
        if token is None or not token.live:
            return None
        return token

    def is_current(self, token: TimerToken) -> bool:
        with self._lock:
            return token.live and self._tokens.get(token.room_code) is token

    def advance(self, room_code: str, seconds: int = 1) -> None:
        """Drive the room's timer forward by whole seconds."""
        for _ in range(seconds):
            token = self.current(room_code)
            if token is None:
                return
            self._step(token)

    def _run(self, token: TimerToken) -> None:
        while token.live:
            self._sleep(self._tick_seconds)
            if not self.is_current(token):
                return
            self._step(token)

    def _step(self, token: TimerToken) -> None:
        token.remaining = max(0, token.remaining - 1)
        if token.on_tick is not None:
            try:
                token.on_tick(token)
            except Exception:
                logger.exception("timer tick failed room=%s", token.room_code)

        if token.remaining > 0 or not token.live:
            return

        with self._lock:
            if self._tokens.get(token.room_code) is token:
                del self._tokens[token.room_code]
        if not token.live:
            return
        token.fired = True
        logger.debug("timer expired room=%s gen=%s", token.room_code, token.generation)
        if token.on_expire is not None:
            try:
                token.on_expire(token)
            except Exception:
                logger.exception("timer expiry failed room=%s", token.room_code)
