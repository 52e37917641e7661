"""Prometheus gauges for live rooms and connected players.

Each app gets its own ``CollectorRegistry`` so several apps (tests) can
live in one process. The gauges read the room registry at scrape time.
"""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest

from .game.registry import RoomRegistry


class GameMetrics:
    def __init__(self, rooms: RoomRegistry):
        self.registry = CollectorRegistry()
        self.active_games = Gauge("herd_active_games", "Rooms currently held in memory", registry=self.registry)
        self.connected_players = Gauge(
            "herd_connected_players", "Players with a live connection", registry=self.registry
        )
        self.active_games.set_function(lambda: len(rooms))
        self.connected_players.set_function(rooms.connected_players)

    def render(self) -> tuple[bytes, str]:
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
