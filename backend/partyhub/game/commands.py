from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Command:
    name: str
    player_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    sid: str | None = None

    def get_str(self, key: str, default: str = "") -> str:
        value = self.data.get(key, default)
        if value is None:
            return default
        return str(value).strip()


@dataclass
class Outbound:
    event: str
    payload: dict[str, Any] = field(default_factory=dict)
    # None addresses the whole room; otherwise a player id.
    to: str | None = None


@dataclass
class ApplyResult:
    ok: bool = True
    error: str | None = None
    notice: str | None = None
    events: list[Outbound] = field(default_factory=list)
    state_changed: bool = False

    def emit(self, event: str, payload: dict[str, Any] | None = None) -> None:
        self.events.append(Outbound(event, payload or {}))

    def tell(self, player_id: str, event: str, payload: dict[str, Any] | None = None) -> None:
        self.events.append(Outbound(event, payload or {}, to=player_id))

    def changed(self) -> None:
        self.state_changed = True

    @classmethod
    def rejected(cls, error: str, notice: str | None = None) -> ApplyResult:
        return cls(ok=False, error=error, notice=notice)
