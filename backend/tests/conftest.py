import itertools
import os
import sys

import pytest

# Ensure the backend root (containing the `herd` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from herd.game.room import Room
from herd.server import create_app


class TestConfig:
    TESTING = True
    SECRET_KEY = 'test-secret'
    CORS_ORIGINS = '*'
    TRUST_PROXY_HEADERS = False
    SOCKETIO_ASYNC_MODE = 'threading'
    LOG_LEVEL = 'DEBUG'
    ROOM_CODE_LENGTH = 5
    ROOM_IDLE_GRACE_SEC = 30
    ROOM_INACTIVITY_SEC = 1800
    TIMER_TICK_SEC = 0.25
    MIN_PLAYERS = 2
    MAX_ROUNDS = 0
    NAME_COLLISION_POLICY = 'reject'
    ANSWER_STEMMING = False
    COLLECT_DURATION_SEC = 60
    PROMPT_CHOICES_COUNT = 3
    MAX_NAME_LENGTH = 16
    MAX_ANSWER_LENGTH = 64


class FakeClock:
    def __init__(self, start=1_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def make_room(clock):
    """Rooms with predictable player ids p1, p2, ... in join order."""

    def _make(**kwargs):
        counter = itertools.count(1)
        kwargs.setdefault('clock', clock)
        kwargs.setdefault('id_factory', lambda: f'p{next(counter)}')
        return Room('ROOM1', **kwargs)

    return _make


@pytest.fixture()
def app_and_socketio():
    return create_app(TestConfig)


@pytest.fixture()
def flask_app(app_and_socketio):
    return app_and_socketio[0]


@pytest.fixture()
def socketio(app_and_socketio):
    return app_and_socketio[1]


@pytest.fixture()
def registry(flask_app):
    return flask_app.extensions['herd.registry']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app, socketio):
    clients = []

    def _connect():
        c = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        clients.append(c)
        return c

    yield _connect
    for c in clients:
        try:
            if c.is_connected():
                c.disconnect()
        except Exception:
            pass
