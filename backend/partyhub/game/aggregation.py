"""Collection of one contribution per eligible player.

An :class:`Aggregation` is created on phase entry with the set of players
allowed to contribute. It resolves at most once: whichever path gets to
:meth:`Aggregation.try_resolve` first (last required submission or timer
expiry) wins, and every later attempt is a no-op.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable


class SubmitOutcome(str, Enum):
    NOT_ELIGIBLE = "not_eligible"
    DUPLICATE = "duplicate"
    CLOSED = "closed"
    PENDING = "pending"
    COMPLETE = "complete"


class TieBreak(str, Enum):
    # A tie yields no winner.
    NONE = "none"
    # The tied value submitted earliest wins.
    FIRST_SEEN = "first_seen"
    # Uniform choice among tied values using the supplied generator.
    RANDOM = "random"


@dataclass
class Aggregation:
    eligible: list[str] = field(default_factory=list)
    submissions: dict[str, Any] = field(default_factory=dict)
    resolved: bool = False

    def __post_init__(self) -> None:
        self.eligible = list(dict.fromkeys(self.eligible))

    def submit(self, player_id: str, value: Any) -> SubmitOutcome:
        if self.resolved:
            return SubmitOutcome.CLOSED
        if player_id not in self.eligible:
            return SubmitOutcome.NOT_ELIGIBLE
        if player_id in self.submissions:
            return SubmitOutcome.DUPLICATE
        self.submissions[player_id] = value
        return SubmitOutcome.COMPLETE if self.is_complete() else SubmitOutcome.PENDING

    def is_complete(self) -> bool:
        return bool(self.eligible) and all(pid in self.submissions for pid in self.eligible)

    def try_resolve(self) -> bool:
        """Mark the aggregation resolved. True only for the first caller."""
        if self.resolved:
            return False
        self.resolved = True
        return True

    def drop(self, player_id: str) -> None:
        """Remove a player from the eligible set (they left the room)."""
        if player_id in self.eligible:
            self.eligible.remove(player_id)
        self.submissions.pop(player_id, None)

    def pending(self) -> list[str]:
        return [pid for pid in self.eligible if pid not in self.submissions]

    def counts(self) -> dict[Hashable, int]:
        """Submission count per value, in first-seen order."""
        out: dict[Hashable, int] = {}
        for value in self.submissions.values():
            out[value] = out.get(value, 0) + 1
        return out

    def majority(
        self,
        tie_break: TieBreak = TieBreak.NONE,
        rng: random.Random | None = None,
    ) -> tuple[Hashable | None, list[Hashable]]:
        """Return ``(winner, tied)`` for the most submitted value.

        ``tied`` lists every value sharing the top count (first-seen order);
        ``winner`` is None when nothing was submitted or the tie policy
        declines to pick.
        """
        counts = self.counts()
        if not counts:
            return None, []
        top = max(counts.values())
        tied = [value for value, count in counts.items() if count == top]
        if len(tied) == 1:
            return tied[0], tied
        if tie_break == TieBreak.FIRST_SEEN:
            return tied[0], tied
        if tie_break == TieBreak.RANDOM:
            return (rng or random).choice(tied), tied
        return None, tied
