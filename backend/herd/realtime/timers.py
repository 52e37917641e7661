"""Collect deadlines and idle cleanup for every room, driven by one loop.

``tick`` does one pass and reports what happened; the Socket.IO layer runs
it in a single background task and broadcasts the outcome. HTTP-only rooms
are covered by the same loop.
"""

from __future__ import annotations

import logging
from threading import RLock
from typing import Callable

from ..game.errors import RoomNotFound
from ..game.models import RoundResult
from ..game.registry import RoomRegistry
from ..game.room import now_ms


logger = logging.getLogger(__name__)


class RoomTimers:
    def __init__(self, registry: RoomRegistry, collect_sec: int = 60, clock: Callable[[], int] = now_ms):
        self.registry = registry
        self.collect_ms = int(collect_sec) * 1000
        self._clock = clock
        self._lock = RLock()
        # room code -> (round number, collect deadline in ms)
        self._deadlines: dict[str, tuple[int, int]] = {}

    def arm(self, code: str) -> int:
        room = self.registry.get(code)
        deadline = self._clock() + self.collect_ms
        with self._lock:
            self._deadlines[room.code] = (room.round, deadline)
        return deadline

    def deadline(self, code: str, round_no: int) -> int | None:
        with self._lock:
            entry = self._deadlines.get(code)
        if entry and entry[0] == round_no:
            return entry[1]
        return None

    def tick(self, now: int | None = None) -> tuple[list[tuple[str, RoundResult]], list[str]]:
        """One pass: close overdue rounds, then drop idle rooms."""
        now = self._clock() if now is None else now

        with self._lock:
            due = [(code, rnd) for code, (rnd, at) in self._deadlines.items() if now >= at]

        reveals: list[tuple[str, RoundResult]] = []
        for code, rnd in due:
            with self._lock:
                self._deadlines.pop(code, None)
            try:
                room = self.registry.get(code)
            except RoomNotFound:
                continue
            # A stale deadline from a round that already closed does nothing.
            result = room.force_advance(round_no=rnd)
            if result is not None:
                logger.info("room=%s round=%s collect timer expired", code, rnd)
                reveals.append((code, result))

        removed = self.registry.sweep_idle(now)
        if removed:
            with self._lock:
                for code in removed:
                    self._deadlines.pop(code, None)
        return reveals, removed
