"""Errors raised by the room engine.

Every ``GameError`` is recoverable: transports turn it into a response
carrying ``code``. ``InvariantViolation`` is not a ``GameError``; it means
the engine itself is broken and the operation that raised it was aborted.
"""

from __future__ import annotations


class GameError(Exception):
    code = "game_error"
    status = 400

    def to_dict(self) -> dict:
        return {"error": self.code, "message": str(self)}


class RoomNotFound(GameError):
    code = "room_not_found"
    status = 404

    def __init__(self, room_id: str):
        super().__init__(f"room {room_id!r} does not exist")
        self.room_id = room_id


class PlayerNotFound(GameError):
    code = "player_not_found"
    status = 404

    def __init__(self, room_id: str, player_id: str):
        super().__init__(f"player {player_id!r} is not in room {room_id!r}")
        self.room_id = room_id
        self.player_id = player_id


class InvalidPhase(GameError):
    code = "invalid_phase"
    status = 409

    def __init__(self, action: str, phase: str, detail: str = ""):
        msg = f"{action} is not allowed while the room is {phase}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.action = action
        self.phase = phase


class DuplicateJoin(GameError):
    code = "duplicate_join"
    status = 409

    def __init__(self, name: str):
        super().__init__(f"a connected player named {name!r} is already in the room")
        self.name = name


class NotEnoughPlayers(GameError):
    code = "not_enough_players"
    status = 409

    def __init__(self, connected: int, required: int):
        super().__init__(f"{connected} connected players, at least {required} required")
        self.connected = connected
        self.required = required


class InvalidPayload(GameError):
    code = "invalid_payload"
    status = 400


class OnlyHost(GameError):
    code = "only_host"
    status = 403

    def __init__(self):
        super().__init__("only the host can do that")


class InvalidPlayerKey(GameError):
    code = "invalid_player_key"
    status = 401

    def __init__(self, room_id: str):
        super().__init__(f"missing or unknown player key for room {room_id!r}")
        self.room_id = room_id


class InvariantViolation(RuntimeError):
    pass
