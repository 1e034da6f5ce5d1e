from __future__ import annotations

import random
from typing import Sequence, TypeVar

T = TypeVar("T")

# Small built-in banks; deployments are expected to swap these out.
RABISCO_WORDS: list[str] = [
    "banana", "cavalo", "guarda-chuva", "foguete", "girafa", "violão",
    "castelo", "pipoca", "bicicleta", "tartaruga", "vulcão", "sorvete",
    "relógio", "pirata", "borboleta", "dinossauro", "escada", "farol",
]

CONCEPT_WORDS: list[dict] = [
    {"text": "Sol", "difficulty": "EASY", "category": "natureza"},
    {"text": "Gato", "difficulty": "EASY", "category": "animais"},
    {"text": "Pizza", "difficulty": "EASY", "category": "comida"},
    {"text": "Aeroporto", "difficulty": "MEDIUM", "category": "lugares"},
    {"text": "Bombeiro", "difficulty": "MEDIUM", "category": "profissoes"},
    {"text": "Carnaval", "difficulty": "MEDIUM", "category": "eventos"},
    {"text": "Revolução Francesa", "difficulty": "HARD", "category": "historia"},
    {"text": "Buraco negro", "difficulty": "HARD", "category": "ciencia"},
    {"text": "Efeito borboleta", "difficulty": "HARD", "category": "ciencia"},
]

DIFFICULTIES: tuple[str, ...] = ("EASY", "MEDIUM", "HARD")

KNOWME_CONCEPTS: list[tuple[str, str]] = [
    ("Quente", "Frio"),
    ("Superestimado", "Subestimado"),
    ("Fácil", "Difícil"),
    ("Barato", "Caro"),
    ("Herói", "Vilão"),
    ("Inútil", "Essencial"),
    ("Triste", "Feliz"),
    ("Antigo", "Moderno"),
]


def pick_words(words: Sequence[T], count: int, rng: random.Random | None = None) -> list[T]:
    pool = list(dict.fromkeys(words)) if words and isinstance(words[0], str) else list(words)
    if not pool:
        return []
    r = rng or random
    return r.sample(pool, min(count, len(pool)))


def concept_options(rng: random.Random | None = None, bank: Sequence[dict] = CONCEPT_WORDS) -> list[dict]:
    """One word per difficulty, easiest first."""
    r = rng or random
    options = []
    for difficulty in DIFFICULTIES:
        candidates = [w for w in bank if w["difficulty"] == difficulty]
        if candidates:
            options.append(dict(r.choice(candidates)))
    return options


def knowme_cards(rng: random.Random | None = None, count: int = 3) -> list[dict]:
    r = rng or random
    return [
        {"id": i, "left": left, "right": right}
        for i, (left, right) in enumerate(r.choice(KNOWME_CONCEPTS) for _ in range(count))
    ]
