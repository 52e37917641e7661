from __future__ import annotations

import functools
import logging
from threading import RLock
from typing import Any, Callable

from flask import request
from flask_socketio import SocketIO, emit, join_room, leave_room

from ..game.errors import GameError, InvalidPayload, OnlyHost, RoomNotFound
from ..game.models import RoundResult
from ..game.registry import RoomRegistry
from ..utils.validation import validate_answer, validate_decision, validate_name, validate_prompt
from .timers import RoomTimers


logger = logging.getLogger(__name__)


def register_socketio_handlers(
    socketio: SocketIO, registry: RoomRegistry, config: Any, timers: RoomTimers
) -> None:
    # sid -> (room code, player id)
    sessions: dict[str, tuple[str, str]] = {}
    lock = RLock()

    max_name = int(config.get("MAX_NAME_LENGTH", 16))
    max_answer = int(config.get("MAX_ANSWER_LENGTH", 64))
    tick_sec = float(config.get("TIMER_TICK_SEC", 0.25))

    def acked(fn: Callable) -> Callable:
        """Turn a GameError into a room:error emit plus a failed ack."""

        @functools.wraps(fn)
        def wrapper(data=None):
            try:
                result = fn(data if isinstance(data, dict) else {})
            except GameError as exc:
                logger.debug("sid=%s %s rejected: %s", request.sid, fn.__name__, exc)
                emit("room:error", exc.to_dict())
                return {"ok": False, "error": exc.code}
            return {"ok": True, **(result or {})}

        return wrapper

    def _public_state(code: str, viewer_id: str | None = None) -> dict:
        payload = registry.view(code, viewer_id=viewer_id)
        if payload["phase"] == "collecting":
            deadline = timers.deadline(payload["code"], payload["round"])
            if deadline is not None:
                payload["collectEndsAtMs"] = deadline
        return payload

    def _broadcast_room_state(code: str) -> None:
        try:
            socketio.emit("room:state", _public_state(code), to=code)
        except RoomNotFound:
            socketio.emit("room:error", {"error": "room_not_found"}, to=code)

    def _broadcast_reveal(code: str, result: RoundResult | None) -> None:
        if result is not None:
            socketio.emit("round:revealed", {"roomCode": code, "result": result.to_dict()}, to=code)

    def _session(require_host: bool = False) -> tuple[str, str]:
        with lock:
            entry = sessions.get(request.sid)
        if entry is None:
            raise InvalidPayload("not in a room")
        if require_host and registry.get(entry[0]).host_id != entry[1]:
            raise OnlyHost()
        return entry

    def _drop_session(sid: str) -> tuple[str, str] | None:
        """Forget the sid's player and mark them offline; returns the old entry."""
        with lock:
            entry = sessions.pop(sid, None)
        if entry is None:
            return None
        code, player_id = entry
        try:
            registry.set_connected(code, player_id, False)
        except GameError:
            return entry
        _broadcast_room_state(code)
        return entry

    def _timer_loop() -> None:
        # One loop for every room: collect deadlines, then idle cleanup.
        while True:
            try:
                reveals, removed = timers.tick()
            except Exception:
                logger.exception("timer tick failed")
                reveals, removed = [], []
            for code, result in reveals:
                _broadcast_reveal(code, result)
                _broadcast_room_state(code)
            for code in removed:
                socketio.emit("room:error", {"error": "room_not_found"}, to=code)
                socketio.close_room(code)
            socketio.sleep(tick_sec)

    @socketio.on("room:create")
    @acked
    def room_create(payload):
        return {"roomCode": registry.create_room()}

    @socketio.on("room:join")
    @acked
    def room_join(payload):
        code = str(payload.get("roomCode", "")).strip().upper()
        if not code:
            raise InvalidPayload("roomCode is required")
        name = validate_name(payload.get("name"), max_name)
        player_key = payload.get("playerKey")
        if player_key is not None and not isinstance(player_key, str):
            raise InvalidPayload("playerKey must be a string")

        player_id = registry.join(code, name, player_key)

        # One sid speaks for one player: a second join retires the first.
        with lock:
            previous = sessions.get(request.sid)
        if previous is not None and previous != (code, player_id):
            _drop_session(request.sid)
            if previous[0] != code:
                leave_room(previous[0])

        join_room(code)
        with lock:
            sessions[request.sid] = (code, player_id)

        _broadcast_room_state(code)
        return {
            "playerId": player_id,
            "playerKey": registry.get(code).player_key(player_id),
            "room": _public_state(code, viewer_id=player_id),
        }

    @socketio.on("room:leave")
    @acked
    def room_leave(payload):
        code, player_id = _session()
        with lock:
            sessions.pop(request.sid, None)
        leave_room(code)
        result = registry.leave(code, player_id)
        _broadcast_reveal(code, result)
        _broadcast_room_state(code)

    @socketio.on("room:state")
    @acked
    def room_state(payload):
        code, player_id = _session()
        return {"room": _public_state(code, viewer_id=player_id)}

    @socketio.on("game:start")
    @acked
    def game_start(payload):
        code, _ = _session(require_host=True)
        prompt = registry.start_round(code, validate_prompt(payload.get("prompt")))
        timers.arm(code)
        _broadcast_room_state(code)
        return {"prompt": prompt}

    @socketio.on("answer:submit")
    @acked
    def answer_submit(payload):
        code, player_id = _session()
        text = validate_answer(payload.get("text"), max_answer)
        result = registry.submit(code, player_id, text)
        _broadcast_reveal(code, result)
        _broadcast_room_state(code)
        return {"revealed": result is not None}

    @socketio.on("game:force_advance")
    @acked
    def game_force_advance(payload):
        code, _ = _session(require_host=True)
        result = registry.force_advance(code)
        _broadcast_reveal(code, result)
        _broadcast_room_state(code)
        return {"revealed": result is not None}

    @socketio.on("game:continue")
    @acked
    def game_continue(payload):
        code, _ = _session(require_host=True)
        decision = validate_decision(payload.get("decision", "continue"))
        registry.continue_or_finish(code, decision, validate_prompt(payload.get("prompt")))
        if registry.get(code).phase == "collecting":
            timers.arm(code)
        _broadcast_room_state(code)

    @socketio.on("disconnect")
    def on_disconnect(*args):
        _drop_session(request.sid)

    # Tests drive timers.tick() directly.
    if not config.get("TESTING"):
        socketio.start_background_task(_timer_loop)
