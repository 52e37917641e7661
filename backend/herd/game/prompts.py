from __future__ import annotations

import random
from collections.abc import Sequence


DEFAULT_PROMPTS_EN = [
    "happy", "big", "fast", "cold", "angry", "smart", "house", "car",
    "money", "friend", "food", "tired", "scary", "funny", "beautiful",
    "strong", "old", "small", "rich", "quiet", "loud", "sad", "job",
    "child", "begin", "end", "easy", "hard", "wet", "bright",
]


def pick_prompts(prompts: Sequence[str], count: int, rng: random.Random | None = None) -> list[str]:
    pool = list(dict.fromkeys(p.strip() for p in prompts if p and p.strip()))
    count = max(1, min(count, len(pool)))
    return (rng or random).sample(pool, count)


class Lexicon:
    """Default prompt source; any object with ``pick() -> str`` can stand in."""

    def __init__(self, prompts: Sequence[str] | None = None, rng: random.Random | None = None):
        self.prompts = list(prompts or DEFAULT_PROMPTS_EN)
        self.rng = rng

    def pick(self) -> str:
        return pick_prompts(self.prompts, 1, self.rng)[0]

    def choices(self, count: int, extra: Sequence[str] = ()) -> list[str]:
        return pick_prompts(list(extra) + self.prompts, count, self.rng)
