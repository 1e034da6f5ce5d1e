from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from enum import Enum
from threading import RLock
from typing import Any

from .aggregation import Aggregation


def now_ms() -> int:
    return int(time.time() * 1000)


class Variant(str, Enum):
    INKSPIRACY = "inkspiracy"
    CONCEPT = "concept"
    KNOWME = "knowme"
    RABISCO = "rabisco"


class InkspiracyPhase(str, Enum):
    LOBBY = "LOBBY"
    WORDS = "WORDS"
    DRAWING = "DRAWING"
    VOTING = "VOTING"
    GUESS = "GUESS"
    RESULTS = "RESULTS"
    GAME_WINNER = "GAME_WINNER"


class ConceptPhase(str, Enum):
    LOBBY = "LOBBY"
    CHOOSING_WORD = "CHOOSING_WORD"
    SABOTAGE = "SABOTAGE"
    PLAYING = "PLAYING"
    ROUND_END = "ROUND_END"


class KnowmePhase(str, Enum):
    LOBBY = "LOBBY"
    SETUP_TURN = "SETUP_TURN"
    CLUE_WRITING = "CLUE_WRITING"
    GUESSING = "GUESSING"
    REVEAL = "REVEAL"
    GAME_OVER = "GAME_OVER"


class RabiscoPhase(str, Enum):
    LOBBY = "LOBBY"
    CHOOSING_WORD = "CHOOSING_WORD"
    DRAWING = "DRAWING"
    ROUND_END = "ROUND_END"
    GAME_END = "GAME_END"


@dataclass
class PlayerRecord:
    id: str
    nickname: str
    avatar: str = ""
    is_vip: bool = False
    score: int = 0
    total_score: int = 0
    sid: str | None = None
    joined_at_ms: int = field(default_factory=now_ms)
    # Variant-specific role flags and holdings.
    is_acting: bool = False
    team: int | None = None
    coins: int = 0
    inventory: list[str] = field(default_factory=list)
    votes_received: int = 0

    @property
    def connected(self) -> bool:
        return self.sid is not None


@dataclass
class TurnOrder:
    """Ordered rotation of eligible players.

    The acting slice is ``width`` consecutive players starting at ``index``;
    advancing moves the index by ``width`` so that every player acts once
    per ``len(players)`` acting slots.
    """

    players: list[str] = field(default_factory=list)
    index: int = 0

    def acting(self, width: int = 1) -> list[str]:
        if not self.players:
            return []
        width = min(width, len(self.players))
        return [self.players[(self.index + i) % len(self.players)] for i in range(width)]

    def advance(self, width: int = 1) -> bool:
        """Move to the next acting slice. Returns True when the cycle wrapped."""
        if not self.players:
            return False
        nxt = self.index + width
        wrapped = nxt >= len(self.players)
        self.index = nxt % len(self.players)
        return wrapped

    def remove(self, player_id: str, hold: bool = False) -> bool:
        """Drop a player from the rotation.

        Returns True when removing the acting player wrapped the index back
        to the start. With ``hold``, removing the acting player parks the
        index just before its successor so the next :meth:`advance` lands
        on it.
        """
        if player_id not in self.players:
            return False
        pos = self.players.index(player_id)
        self.players.remove(player_id)
        if not self.players:
            self.index = 0
            return False
        if pos < self.index:
            self.index -= 1
        elif pos == self.index:
            if hold:
                self.index -= 1
            elif self.index >= len(self.players):
                self.index = 0
                return True
        return False


# Attributes excluded from rollback snapshots.
_UNSNAPSHOTTED = ("lock",)
# Append-only histories; their items are never edited in place.
_SHALLOW = ("strokes", "chat_messages")


@dataclass
class Room:
    """Common room header shared by every variant."""

    code: str
    host_id: str
    variant: Variant = Variant.RABISCO
    phase: Enum = None  # type: ignore[assignment]
    round: int = 1
    players: dict[str, PlayerRecord] = field(default_factory=dict)
    chat_messages: list[dict] = field(default_factory=list)
    timer_left: int = 0
    timer_generation: int = 0
    lock: RLock = field(default_factory=RLock, repr=False, compare=False)

    allow_late_join = False

    def ordered_players(self) -> list[PlayerRecord]:
        return list(self.players.values())

    def snapshot(self) -> dict[str, Any]:
        return {
            k: list(v) if k in _SHALLOW else copy.deepcopy(v)
            for k, v in vars(self).items()
            if k not in _UNSNAPSHOTTED
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        for k, v in snapshot.items():
            setattr(self, k, v)


@dataclass
class InkspiracyRoom(Room):
    variant: Variant = Variant.INKSPIRACY
    phase: InkspiracyPhase = InkspiracyPhase.LOBBY
    max_rounds: int = 2
    theme: str = ""
    curator_id: str = ""
    impostor_id: str = ""
    word_innocent: str = ""
    word_impostor: str = ""
    turn: TurnOrder = field(default_factory=TurnOrder)
    strokes: list[dict] = field(default_factory=list)
    votes: Aggregation | None = None
    votes_revealed: bool = False
    winner: str | None = None
    win_reason: str = ""
    game_winner_id: str | None = None

    def __post_init__(self) -> None:
        if not self.curator_id:
            self.curator_id = self.host_id


@dataclass
class ConceptRoom(Room):
    variant: Variant = Variant.CONCEPT
    phase: ConceptPhase = ConceptPhase.LOBBY
    turn: TurnOrder = field(default_factory=TurnOrder)
    current_team: list[str] = field(default_factory=list)
    word_options: list[dict] = field(default_factory=list)
    current_word: dict = field(default_factory=dict)
    word_votes: Aggregation | None = None
    sabotage_votes: Aggregation | None = None
    blocked_category: str | None = None
    board_state: list[dict] = field(default_factory=list)
    placed_order: list[dict] = field(default_factory=list)
    tokens_placed: int = 0
    max_round_time: int = 120
    winner: str | None = None
    win_reason: str = ""


@dataclass
class KnowmeRoom(Room):
    variant: Variant = Variant.KNOWME
    phase: KnowmePhase = KnowmePhase.LOBBY
    mode: str = "SINGLE"
    turn: TurnOrder = field(default_factory=TurnOrder)
    current_master_id: str | None = None
    target_position: int = 50
    card_options: list[dict] = field(default_factory=list)
    selected_card: dict | None = None
    clue: str = ""
    guesses: Aggregation | None = None
    teams: dict[int, dict] = field(
        default_factory=lambda: {
            1: {"name": "Equipe 1", "score": 0, "players": []},
            2: {"name": "Equipe 2", "score": 0, "players": []},
        }
    )
    current_team_turn: int = 1
    last_round_points: int = 0
    winner_team: int | None = None

    allow_late_join = True


@dataclass
class RabiscoRoom(Room):
    variant: Variant = Variant.RABISCO
    phase: RabiscoPhase = RabiscoPhase.LOBBY
    max_rounds: int = 3
    max_score: int = 120
    turn: TurnOrder = field(default_factory=TurnOrder)
    current_drawer_id: str | None = None
    current_word: str | None = None
    word_options: list[str] = field(default_factory=list)
    hints: list[int] = field(default_factory=list)
    length_revealed: bool = False
    strokes: list[dict] = field(default_factory=list)
    guessed_players: list[str] = field(default_factory=list)
    sabotages_active: dict[str, dict] = field(default_factory=dict)
    game_winner_id: str | None = None


ROOM_TYPES: dict[Variant, type[Room]] = {
    Variant.INKSPIRACY: InkspiracyRoom,
    Variant.CONCEPT: ConceptRoom,
    Variant.KNOWME: KnowmeRoom,
    Variant.RABISCO: RabiscoRoom,
}
