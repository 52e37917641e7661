from __future__ import annotations

import logging
import secrets
import time
import uuid
from dataclasses import asdict, replace
from threading import RLock
from typing import Callable, Literal

from .errors import (
    DuplicateJoin,
    InvalidPayload,
    InvalidPhase,
    InvalidPlayerKey,
    InvariantViolation,
    NotEnoughPlayers,
    PlayerNotFound,
    RoomNotFound,
)
from .matching import canonical_keys, group_keys
from .models import Phase, Player, RoundResult
from .scoring import score


logger = logging.getLogger(__name__)

NamePolicy = Literal["reject", "allow"]
Decision = Literal["continue", "finish"]

_TRANSITIONS: dict[str, frozenset[str]] = {
    "lobby": frozenset({"collecting"}),
    "collecting": frozenset({"revealed"}),
    "revealed": frozenset({"collecting", "finished"}),
    "finished": frozenset(),
}


def now_ms() -> int:
    return int(time.time() * 1000)


def new_player_id() -> str:
    return uuid.uuid4().hex


def new_player_key() -> str:
    return secrets.token_urlsafe(18)


def _public(player: Player) -> dict:
    # The key never leaves the server except in the join reply.
    d = asdict(player)
    d.pop("key", None)
    return d


class Room:
    """One game: roster, phase, the in-flight round and the round history.

    Every public method takes the room's lock, so actions on one room are
    applied one at a time in arrival order while other rooms proceed
    independently. History is an immutable tuple that is only ever rebound,
    so ``history`` can be read without the lock.

    Player ids are public (they show up in every view); player keys are
    the secret a transport uses to tell who is acting.
    """

    def __init__(
        self,
        code: str,
        *,
        min_players: int = 1,
        max_rounds: int = 0,
        name_policy: NamePolicy = "reject",
        stem: bool = False,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = new_player_id,
        key_factory: Callable[[], str] = new_player_key,
    ):
        self.code = code
        self.min_players = max(1, min_players)
        self.max_rounds = max(0, max_rounds)
        self.name_policy = name_policy
        self.stem = stem
        self._clock = clock
        self._new_id = id_factory
        self._new_key = key_factory
        self._lock = RLock()

        self._closed = False
        self._phase: Phase = "lobby"
        self._round = 0
        self._prompt: str | None = None
        self._players: dict[str, Player] = {}
        self._host_id: str | None = None
        self._eligible: set[str] = set()
        self._submissions: dict[str, str] = {}
        self._history: tuple[RoundResult, ...] = ()
        self._idle_since_ms: int | None = clock()
        self._last_activity_ms: int = clock()

    # -- read side ---------------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def round(self) -> int:
        return self._round

    @property
    def prompt(self) -> str | None:
        return self._prompt

    @property
    def host_id(self) -> str | None:
        return self._host_id

    @property
    def history(self) -> tuple[RoundResult, ...]:
        return self._history

    @property
    def idle_since_ms(self) -> int | None:
        return self._idle_since_ms

    @property
    def last_activity_ms(self) -> int:
        return self._last_activity_ms

    @property
    def closed(self) -> bool:
        return self._closed

    def players(self) -> list[Player]:
        with self._lock:
            return [replace(p) for p in self._players.values()]

    def player(self, player_id: str) -> Player:
        with self._lock:
            return replace(self._require_player(player_id))

    def player_key(self, player_id: str) -> str:
        with self._lock:
            return self._require_player(player_id).key

    def connected_count(self) -> int:
        with self._lock:
            return sum(1 for p in self._players.values() if p.connected)

    def authenticate(self, player_key: str | None) -> str:
        """Map a secret player key to the player id it belongs to."""
        with self._lock:
            player = self._find_by_key(player_key)
            if player is None:
                raise InvalidPlayerKey(self.code)
            return player.id

    def is_idle(self, now: int, grace_ms: int, inactivity_ms: int = 0) -> bool:
        """Nobody connected for ``grace_ms``, or no action at all for ``inactivity_ms``."""
        with self._lock:
            if self._idle_since_ms is not None and now - self._idle_since_ms >= grace_ms:
                return True
            return bool(inactivity_ms) and now - self._last_activity_ms >= inactivity_ms

    def standings(self) -> list[Player]:
        with self._lock:
            # sorted() is stable, so ties keep join order.
            return sorted((replace(p) for p in self._players.values()), key=lambda p: -p.score)

    def view(self, viewer_id: str | None = None) -> dict:
        with self._lock:
            collecting = self._phase == "collecting"
            players = []
            for p in self._players.values():
                d = _public(p)
                if collecting:
                    d["submitted"] = p.id in self._submissions
                players.append(d)

            payload = {
                "code": self.code,
                "phase": self._phase,
                "round": self._round,
                "prompt": self._prompt,
                "hostId": self._host_id,
                "maxRounds": self.max_rounds,
                "players": players,
                "submittedCount": len(self._submissions) if collecting else 0,
                "eligibleCount": len(self._eligible) if collecting else 0,
            }

            if collecting and viewer_id in self._submissions:
                payload["yourAnswer"] = self._submissions[viewer_id]

            if self._phase in ("revealed", "finished") and self._history:
                payload["lastRound"] = self._history[-1].to_dict()

            if self._phase == "finished":
                payload["standings"] = [_public(p) for p in self.standings()]

            return payload

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def close_if_idle(self, now: int, grace_ms: int, inactivity_ms: int = 0) -> bool:
        # Check and close under one lock hold so a join cannot slip in between.
        with self._lock:
            if self._closed or not self.is_idle(now, grace_ms, inactivity_ms):
                return False
            self._closed = True
            return True

    # -- roster ------------------------------------------------------------

    def join(self, name: str, player_key: str | None = None) -> str:
        """Add a player, or reattach the one ``player_key`` belongs to."""
        with self._lock:
            self._require_open()

            known = self._find_by_key(player_key)
            if known is not None:
                known.connected = True
                self._after_roster_change()
                logger.info("room=%s player=%s reconnected", self.code, known.id)
                return known.id

            if self._phase == "finished":
                raise InvalidPhase("join", self._phase)

            if self.name_policy == "reject":
                folded = name.casefold()
                if any(p.name.casefold() == folded for p in self._players.values()):
                    raise DuplicateJoin(name)

            pid = self._new_id()
            while pid in self._players:
                pid = self._new_id()
            # Not added to _eligible: a late joiner waits for the next round.
            self._players[pid] = Player(id=pid, name=name, key=self._new_key())
            self._after_roster_change()
            logger.info("room=%s player=%s joined phase=%s", self.code, pid, self._phase)
            return pid

    def leave(self, player_id: str) -> RoundResult | None:
        with self._lock:
            self._require_open()
            self._require_player(player_id)
            del self._players[player_id]
            self._eligible.discard(player_id)
            self._submissions.pop(player_id, None)
            self._after_roster_change()
            logger.info("room=%s player=%s left phase=%s", self.code, player_id, self._phase)

            # The leaver may have been the last one everybody was waiting on.
            if self._phase == "collecting" and self._all_submitted():
                return self._reveal(forced=False)
            return None

    def set_connected(self, player_id: str, connected: bool) -> None:
        with self._lock:
            self._require_open()
            self._require_player(player_id).connected = connected
            self._after_roster_change()

    # -- round protocol ----------------------------------------------------

    def start_round(self, prompt: str) -> None:
        with self._lock:
            self._require_open()
            if self._phase not in ("lobby", "revealed"):
                raise InvalidPhase("start_round", self._phase)
            if self._phase == "lobby":
                connected = sum(1 for p in self._players.values() if p.connected)
                if connected < self.min_players:
                    raise NotEnoughPlayers(connected, self.min_players)
            elif self._rounds_exhausted():
                raise InvalidPhase("start_round", self._phase, "no rounds left")

            self._transition("collecting")
            self._round += 1
            self._prompt = prompt
            self._eligible = set(self._players)
            self._submissions = {}
            self._touch()
            logger.info(
                "room=%s round=%s started players=%s", self.code, self._round, len(self._eligible)
            )

    def submit(self, player_id: str, raw: str) -> RoundResult | None:
        """Record an answer; returns the round result if it closed the round."""
        with self._lock:
            self._require_open()
            self._require_player(player_id)
            if self._phase != "collecting":
                raise InvalidPhase("submit", self._phase)
            if player_id not in self._eligible:
                raise InvalidPhase("submit", self._phase, "player joined after the round started")

            self._submissions[player_id] = raw
            self._touch()
            if self._all_submitted():
                return self._reveal(forced=False)
            return None

    def force_advance(self, round_no: int | None = None) -> RoundResult | None:
        """Close the current round now; a no-op unless collecting (round ``round_no``, if given)."""
        with self._lock:
            if self._closed or self._phase != "collecting":
                return None
            if round_no is not None and round_no != self._round:
                return None
            return self._reveal(forced=True)

    def continue_or_finish(self, decision: Decision, prompt: str | None = None) -> None:
        if decision not in ("continue", "finish"):
            raise InvalidPayload(f"unknown decision {decision!r}")
        with self._lock:
            self._require_open()
            if self._phase != "revealed":
                raise InvalidPhase(decision, self._phase)
            if decision == "finish" or self._rounds_exhausted():
                self._transition("finished")
                self._touch()
                logger.info("room=%s finished after round=%s", self.code, self._round)
                return
            if prompt is None:
                raise InvalidPayload("continuing needs a prompt")
            self.start_round(prompt)

    # -- internals ---------------------------------------------------------

    def _require_open(self) -> None:
        if self._closed:
            raise RoomNotFound(self.code)

    def _find_by_key(self, player_key: str | None) -> Player | None:
        if not player_key:
            return None
        wanted = player_key.encode()
        for p in self._players.values():
            if secrets.compare_digest(p.key.encode(), wanted):
                return p
        return None

    def _require_player(self, player_id: str) -> Player:
        player = self._players.get(player_id)
        if player is None:
            raise PlayerNotFound(self.code, player_id)
        return player

    def _rounds_exhausted(self) -> bool:
        return bool(self.max_rounds) and self._round >= self.max_rounds

    def _all_submitted(self) -> bool:
        return bool(self._eligible) and self._eligible <= self._submissions.keys()

    def _transition(self, to: Phase) -> None:
        if to not in _TRANSITIONS[self._phase]:
            raise InvariantViolation(f"room {self.code}: illegal transition {self._phase} -> {to}")
        self._phase = to

    def _touch(self) -> None:
        self._last_activity_ms = self._clock()

    def _after_roster_change(self) -> None:
        self._touch()
        host = self._players.get(self._host_id) if self._host_id else None
        if host is None or not host.connected:
            connected = [pid for pid, p in self._players.items() if p.connected]
            if connected:
                self._host_id = connected[0]
            elif host is None:
                self._host_id = next(iter(self._players), None)

        if any(p.connected for p in self._players.values()):
            self._idle_since_ms = None
        elif self._idle_since_ms is None:
            self._idle_since_ms = self._clock()

    def _reveal(self, forced: bool) -> RoundResult:
        # Everything is computed before anything is committed, so a broken
        # invariant leaves the room exactly as it was.
        answers = {pid: self._submissions.get(pid, "") for pid in self._players if pid in self._eligible}
        keys = canonical_keys(answers, stem=self.stem)
        groups = group_keys(keys)
        try:
            deltas = score(groups, self._players.keys())
        except InvariantViolation:
            logger.error("room=%s round=%s scoring aborted", self.code, self._round, exc_info=True)
            raise

        result = RoundResult(
            round=self._round,
            prompt=self._prompt or "",
            answers=answers,
            keys=keys,
            groups=groups,
            deltas=deltas,
        )
        self._transition("revealed")
        for pid, delta in deltas.items():
            self._players[pid].score += delta
        self._history = self._history + (result,)
        self._submissions = {}
        self._eligible = set()
        self._touch()
        logger.info(
            "room=%s round=%s revealed forced=%s groups=%s", self.code, self._round, forced, len(groups)
        )
        return result
