"""Process-side map of live rooms.

The registry lock only guards the code -> room map and is held just long
enough to look a room up. Actions are then applied under that room's own
lock, so two rooms never wait on each other.
"""

from __future__ import annotations

import logging
import secrets
from threading import RLock
from typing import Callable, Protocol

from .errors import InvalidPayload, RoomNotFound
from .models import RoundResult
from .room import Decision, NamePolicy, Room, now_ms


logger = logging.getLogger(__name__)

# No O/0 or I/l/1: codes get read out loud and typed on phones.
ROOM_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"


class PromptSource(Protocol):
    def pick(self) -> str: ...


class RoomRegistry:
    def __init__(
        self,
        *,
        lexicon: PromptSource | None = None,
        code_length: int = 5,
        idle_grace_sec: int = 30,
        inactivity_sec: int = 0,
        min_players: int = 1,
        max_rounds: int = 0,
        name_policy: NamePolicy = "reject",
        stem: bool = False,
        clock: Callable[[], int] = now_ms,
    ):
        self.lexicon = lexicon
        self.code_length = code_length
        self.idle_grace_ms = idle_grace_sec * 1000
        self.inactivity_ms = inactivity_sec * 1000
        self.min_players = min_players
        self.max_rounds = max_rounds
        self.name_policy = name_policy
        self.stem = stem
        self._clock = clock
        self._lock = RLock()
        self._rooms: dict[str, Room] = {}

    def _new_code(self) -> str:
        return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(self.code_length))

    # -- lifecycle ---------------------------------------------------------

    def create_room(self) -> str:
        with self._lock:
            code = self._new_code()
            while code in self._rooms:
                code = self._new_code()

            self._rooms[code] = Room(
                code,
                min_players=self.min_players,
                max_rounds=self.max_rounds,
                name_policy=self.name_policy,
                stem=self.stem,
                clock=self._clock,
            )
        logger.info("room=%s created", code)
        return code

    def get(self, room_id: str) -> Room:
        with self._lock:
            room = self._rooms.get((room_id or "").strip().upper())
        if room is None:
            raise RoomNotFound(room_id)
        return room

    def remove(self, room_id: str) -> bool:
        with self._lock:
            room = self._rooms.pop((room_id or "").strip().upper(), None)
        if room is None:
            return False
        room.close()
        logger.info("room=%s removed", room.code)
        return True

    def list_rooms(self) -> list[Room]:
        with self._lock:
            return list(self._rooms.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        with self._lock:
            return (room_id or "").strip().upper() in self._rooms

    def remove_if_idle(self, room_id: str, now: int | None = None) -> bool:
        """Remove a room only if it is still idle once both locks are held."""
        now = self._clock() if now is None else now
        code = (room_id or "").strip().upper()
        with self._lock:
            room = self._rooms.get(code)
            # Registry lock, then room lock: a join that already holds the
            # room lock finishes first and makes the room busy again.
            if room is None or not room.close_if_idle(now, self.idle_grace_ms, self.inactivity_ms):
                return False
            del self._rooms[code]
        logger.info("room=%s removed (idle)", code)
        return True

    def sweep_idle(self, now: int | None = None) -> list[str]:
        """Drop rooms with nobody connected for the grace interval, or no activity at all."""
        now = self._clock() if now is None else now
        return [room.code for room in self.list_rooms() if self.remove_if_idle(room.code, now)]

    def connected_players(self) -> int:
        return sum(room.connected_count() for room in self.list_rooms())

    # -- inbound actions ---------------------------------------------------

    def join(self, room_id: str, player_name: str, player_key: str | None = None) -> str:
        return self.get(room_id).join(player_name, player_key)

    def authenticate(self, room_id: str, player_key: str | None) -> str:
        return self.get(room_id).authenticate(player_key)

    def leave(self, room_id: str, player_id: str) -> RoundResult | None:
        return self.get(room_id).leave(player_id)

    def set_connected(self, room_id: str, player_id: str, connected: bool) -> None:
        self.get(room_id).set_connected(player_id, connected)

    def submit(self, room_id: str, player_id: str, raw_text: str) -> RoundResult | None:
        return self.get(room_id).submit(player_id, raw_text)

    def start_round(self, room_id: str, prompt: str | None = None) -> str:
        room = self.get(room_id)
        prompt = prompt if prompt is not None else self._draw_prompt()
        room.start_round(prompt)
        return prompt

    def force_advance(self, room_id: str) -> RoundResult | None:
        return self.get(room_id).force_advance()

    def continue_or_finish(self, room_id: str, decision: Decision, prompt: str | None = None) -> None:
        room = self.get(room_id)
        if decision == "continue" and prompt is None:
            prompt = self._draw_prompt()
        room.continue_or_finish(decision, prompt)

    def view(self, room_id: str, viewer_id: str | None = None) -> dict:
        return self.get(room_id).view(viewer_id)

    def _draw_prompt(self) -> str:
        if self.lexicon is None:
            raise InvalidPayload("a prompt is required")
        return self.lexicon.pick()
