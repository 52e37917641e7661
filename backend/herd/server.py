from __future__ import annotations

import logging
import sys

from flask import Flask, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .game.errors import GameError
from .game.prompts import Lexicon
from .game.registry import RoomRegistry
from .metrics import GameMetrics
from .routes.health import bp as health_bp
from .routes.metrics import bp as metrics_bp
from .routes.prompts import bp as prompts_bp
from .routes.rooms import bp as rooms_bp
from .realtime.handlers import register_socketio_handlers
from .realtime.timers import RoomTimers


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("herd").setLevel(level)


def build_registry(config, lexicon: Lexicon) -> RoomRegistry:
    policy = config.get("NAME_COLLISION_POLICY", "reject")
    if policy not in ("reject", "allow"):
        raise ValueError(f"NAME_COLLISION_POLICY must be 'reject' or 'allow', got {policy!r}")

    return RoomRegistry(
        lexicon=lexicon,
        code_length=int(config.get("ROOM_CODE_LENGTH", 5)),
        idle_grace_sec=int(config.get("ROOM_IDLE_GRACE_SEC", 30)),
        inactivity_sec=int(config.get("ROOM_INACTIVITY_SEC", 0)),
        min_players=int(config.get("MIN_PLAYERS", 2)),
        max_rounds=int(config.get("MAX_ROUNDS", 0)),
        name_policy=policy,
        stem=bool(config.get("ANSWER_STEMMING", False)),
    )


def create_app(config_class=Config) -> tuple[Flask, SocketIO]:
    app = Flask(__name__)
    app.config.from_object(config_class)

    _configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    async_mode = app.config.get("SOCKETIO_ASYNC_MODE", "")
    if not async_mode:
        # Default choice:
        # - Windows: threading (eventlet has known compatibility issues on newer Python)
        # - Python >= 3.13: threading (safer default)
        # - Otherwise: eventlet
        if sys.platform.startswith("win") or sys.version_info >= (3, 13):
            async_mode = "threading"
        else:
            async_mode = "eventlet"

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=async_mode,
    )

    lexicon = Lexicon()
    registry = build_registry(app.config, lexicon)
    app.extensions["herd.lexicon"] = lexicon
    app.extensions["herd.registry"] = registry
    app.extensions["herd.metrics"] = GameMetrics(registry)
    timers = RoomTimers(registry, collect_sec=int(app.config.get("COLLECT_DURATION_SEC", 60)))
    app.extensions["herd.timers"] = timers

    @app.errorhandler(GameError)
    def handle_game_error(exc: GameError):
        app.logger.debug("rejected: %s", exc)
        return jsonify(exc.to_dict()), exc.status

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(rooms_bp, url_prefix="/api")
    app.register_blueprint(prompts_bp, url_prefix="/api")
    app.register_blueprint(metrics_bp, url_prefix="/api")

    register_socketio_handlers(socketio, registry, app.config, timers)

    return app, socketio
