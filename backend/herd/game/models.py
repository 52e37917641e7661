from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal, Mapping

from .matching import is_blank


Phase = Literal["lobby", "collecting", "revealed", "finished"]


@dataclass
class Player:
    id: str
    name: str
    score: int = 0
    connected: bool = True
    key: str = field(default="", repr=False)


@dataclass(frozen=True)
class RoundResult:
    round: int
    prompt: str
    answers: Mapping[str, str] = field(default_factory=dict)
    keys: Mapping[str, str] = field(default_factory=dict)
    groups: tuple[tuple[str, ...], ...] = ()
    deltas: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        # Published results are shared across threads; freeze the mappings too.
        for name in ("answers", "keys", "deltas"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        object.__setattr__(self, "groups", tuple(tuple(g) for g in self.groups))

    def to_dict(self) -> dict:
        return {
            "round": self.round,
            "prompt": self.prompt,
            "answers": dict(self.answers),
            "keys": {pid: (None if is_blank(k) else k) for pid, k in self.keys.items()},
            "groups": [list(g) for g in self.groups],
            "deltas": dict(self.deltas),
        }
