"""Room engine: answer matching, scoring, the per-room state machine and
the registry of live rooms.

Nothing in here knows about Flask or Socket.IO; HTTP routes and socket
handlers call into ``RoomRegistry`` and serialize ``Room.view()``.
"""

from .errors import (
    DuplicateJoin,
    GameError,
    InvalidPayload,
    InvalidPhase,
    InvariantViolation,
    NotEnoughPlayers,
    OnlyHost,
    PlayerNotFound,
    RoomNotFound,
)
from .matching import group, normalize
from .registry import RoomRegistry
from .room import Room
from .scoring import score

__all__ = [
    "DuplicateJoin",
    "GameError",
    "InvalidPayload",
    "InvalidPhase",
    "InvariantViolation",
    "NotEnoughPlayers",
    "OnlyHost",
    "PlayerNotFound",
    "Room",
    "RoomNotFound",
    "RoomRegistry",
    "group",
    "normalize",
    "score",
]
