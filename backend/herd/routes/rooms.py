from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..game.errors import InvalidPlayerKey, OnlyHost
from ..game.registry import RoomRegistry
from ..realtime.timers import RoomTimers
from ..utils.validation import validate_answer, validate_decision, validate_name, validate_prompt

bp = Blueprint("rooms", __name__)

# Secret handed out on join; every player action must carry it.
PLAYER_KEY_HEADER = "X-Player-Key"


def _registry() -> RoomRegistry:
    return current_app.extensions["herd.registry"]


def _timers() -> RoomTimers:
    return current_app.extensions["herd.timers"]


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _player_key() -> str | None:
    return request.headers.get(PLAYER_KEY_HEADER) or None


def _caller(code: str) -> str:
    return _registry().authenticate(code, _player_key())


def _require_host(code: str) -> str:
    player_id = _caller(code)
    if player_id != _registry().get(code).host_id:
        raise OnlyHost()
    return player_id


def _room_view(code: str, viewer_id: str | None = None) -> dict:
    payload = _registry().view(code, viewer_id=viewer_id)
    if payload["phase"] == "collecting":
        deadline = _timers().deadline(payload["code"], payload["round"])
        if deadline is not None:
            payload["collectEndsAtMs"] = deadline
    return payload


@bp.post("/rooms")
def create_room():
    code = _registry().create_room()
    return jsonify({"roomCode": code}), 201


@bp.get("/rooms/<code>")
def get_room(code: str):
    # Anyone may look; only a valid key shows the caller's own answer.
    viewer = _caller(code) if _player_key() else None
    return jsonify(_room_view(code, viewer_id=viewer))


@bp.post("/rooms/<code>/players")
def join_room(code: str):
    payload = _payload()
    name = validate_name(payload.get("name"), current_app.config.get("MAX_NAME_LENGTH", 16))
    player_id = _registry().join(code, name, _player_key())
    return (
        jsonify(
            {
                "playerId": player_id,
                "playerKey": _registry().get(code).player_key(player_id),
                "room": _room_view(code, viewer_id=player_id),
            }
        ),
        201,
    )


@bp.delete("/rooms/<code>/players/<player_id>")
def leave_room(code: str, player_id: str):
    # A player can only remove themselves.
    if _caller(code) != player_id:
        raise InvalidPlayerKey(code)
    result = _registry().leave(code, player_id)
    return jsonify({"ok": True, "revealed": result is not None})


@bp.post("/rooms/<code>/start")
def start_round(code: str):
    payload = _payload()
    _require_host(code)
    prompt = _registry().start_round(code, validate_prompt(payload.get("prompt")))
    _timers().arm(code)
    return jsonify({"prompt": prompt, "room": _room_view(code)})


@bp.post("/rooms/<code>/answers")
def submit_answer(code: str):
    payload = _payload()
    player_id = _caller(code)
    text = validate_answer(payload.get("text"), current_app.config.get("MAX_ANSWER_LENGTH", 64))
    result = _registry().submit(code, player_id, text)
    return jsonify({"ok": True, "revealed": result is not None}), 202


@bp.post("/rooms/<code>/advance")
def force_advance(code: str):
    _require_host(code)
    result = _registry().force_advance(code)
    return jsonify({"revealed": result is not None, "room": _room_view(code)})


@bp.post("/rooms/<code>/continue")
def continue_or_finish(code: str):
    payload = _payload()
    _require_host(code)
    decision = validate_decision(payload.get("decision"))
    _registry().continue_or_finish(code, decision, validate_prompt(payload.get("prompt")))
    if _registry().get(code).phase == "collecting":
        _timers().arm(code)
    return jsonify(_room_view(code))
