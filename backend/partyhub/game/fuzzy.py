from __future__ import annotations

import re
import unicodedata
from typing import NamedTuple


GENERAL_THRESHOLD = 0.7
NEAR_GUESS_THRESHOLD = 0.75


class MatchResult(NamedTuple):
    exact: bool
    close: bool


def normalize_text(text: str | None) -> str:
    if not text:
        return ""
    t = unicodedata.normalize("NFD", text.casefold())
    t = "".join(ch for ch in t if not unicodedata.combining(ch))
    t = re.sub(r"[^0-9a-z\s]", "", t)
    return t.strip()


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            cur.append(min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + cost))
        prev = cur
    return prev[-1]


def similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1 - levenshtein(a, b) / max(len(a), len(b))


def is_match(guess: str | None, target: str | None, threshold: float = GENERAL_THRESHOLD) -> MatchResult:
    g = normalize_text(guess)
    t = normalize_text(target)
    if not t or not g:
        return MatchResult(False, False)

    if g == t:
        return MatchResult(True, True)
    if g in t or t in g:
        return MatchResult(False, True)
    return MatchResult(False, similarity(g, t) > threshold)


def is_near_guess(guess: str | None, target: str | None) -> bool:
    """Stricter "you are close" check used for private hints to a guesser.

    Either the similarity clears the near-guess threshold, or the guess is a
    prefix-ish fragment of a long-enough target missing at most two letters.
    """
    g = normalize_text(guess)
    t = normalize_text(target)
    if not g or not t or g == t:
        return False

    if similarity(g, t) > NEAR_GUESS_THRESHOLD:
        return True
    return len(t) >= 4 and g in t and len(g) >= len(t) - 2


def contains_answer(text: str | None, answer: str | None) -> bool:
    a = normalize_text(answer).replace(" ", "")
    if not a:
        return False
    return a in normalize_text(text).replace(" ", "")
