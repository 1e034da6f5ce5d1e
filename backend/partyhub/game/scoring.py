from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

logger = logging.getLogger(__name__)


# (max distance, points), closest band first.
PROXIMITY_BANDS: tuple[tuple[int, int], ...] = ((2, 4), (5, 3), (8, 2), (10, 1))
PROXIMITY_SETTER_BONUS = 2

ORDER_POINTS: tuple[int, ...] = (10, 9, 8, 7, 6, 5)
HINT_PENALTY = 2
DRAWER_POINTS_PER_GUESS = 2

OVERLOAD_BASE = 10
OVERLOAD_TOKENS_PER_POINT = 3
OVERLOAD_FLOOR = 2
OVERLOAD_SPEED_BONUS = 5
OVERLOAD_SPEED_WINDOW_SEC = 30


@dataclass
class ScoreDelta:
    actor: int = 0
    others: dict[str, int] = field(default_factory=dict)


def sanitize_score(value: Any) -> int:
    """Coerce a score to a finite, non-negative int."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        value = int(value)
    return max(0, value)


def ensure_valid_scores(players: Iterable[Any]) -> None:
    for p in players:
        total = sanitize_score(p.total_score)
        if total != p.total_score:
            logger.warning("score drift corrected player=%s total=%r", p.id, p.total_score)
        p.total_score = total
        p.score = sanitize_score(p.score)


def award(player: Any, points: int, round_points: int | None = None) -> None:
    """Add ``points`` to a player's cumulative score through the sanitizer.

    ``round_points`` overrides the round score; by default the points are
    added to it.
    """
    player.total_score = sanitize_score(player.total_score)
    player.total_score = sanitize_score(player.total_score + sanitize_score(points))
    if round_points is None:
        player.score = sanitize_score(sanitize_score(player.score) + sanitize_score(points))
    else:
        player.score = sanitize_score(round_points)


def deduct(player: Any, points: int) -> None:
    player.total_score = sanitize_score(sanitize_score(player.total_score) - sanitize_score(points))


def proximity_points(guess: int | float, target: int | float, bands: Sequence[tuple[int, int]] = PROXIMITY_BANDS) -> int:
    diff = abs(target - guess)
    for limit, points in bands:
        if diff <= limit:
            return points
    return 0


def score_proximity(guesses: dict[str, int], target: int) -> ScoreDelta:
    """Dial round: each guesser banded by distance; the setter earns a
    participation bonus when anyone scored."""
    others = {pid: proximity_points(guess, target) for pid, guess in guesses.items()}
    actor = PROXIMITY_SETTER_BONUS if any(points > 0 for points in others.values()) else 0
    return ScoreDelta(actor=actor, others=others)


def order_points(order: int, hints_revealed: int = 0, floor: int = 1) -> int:
    if 0 <= order < len(ORDER_POINTS):
        points = ORDER_POINTS[order]
    else:
        points = min(ORDER_POINTS)
    if hints_revealed > 0:
        points = max(floor, points - hints_revealed * HINT_PENALTY)
    return points


def score_order_decay(order: int, hints_revealed: int = 0) -> ScoreDelta:
    return ScoreDelta(actor=DRAWER_POINTS_PER_GUESS, others={"guesser": order_points(order, hints_revealed)})


def overload_points(tokens_placed: int, seconds_used: float) -> int:
    penalty = tokens_placed // OVERLOAD_TOKENS_PER_POINT
    points = max(OVERLOAD_FLOOR, OVERLOAD_BASE - penalty)
    if seconds_used < OVERLOAD_SPEED_WINDOW_SEC:
        points += OVERLOAD_SPEED_BONUS
    return points


def helper_share(points: int) -> int:
    return max(1, points // 2)


def score_overload(tokens_placed: int, seconds_used: float) -> ScoreDelta:
    points = overload_points(tokens_placed, seconds_used)
    return ScoreDelta(actor=helper_share(points), others={"guesser": points})
