import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Socket.IO: "" picks eventlet or threading based on platform
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rooms
    ROOM_CODE_LENGTH = int(os.environ.get("ROOM_CODE_LENGTH", "5"))
    ROOM_IDLE_GRACE_SEC = int(os.environ.get("ROOM_IDLE_GRACE_SEC", "30"))
    # Rooms with no action at all for this long are dropped even while
    # clients still look connected (0 disables)
    ROOM_INACTIVITY_SEC = int(os.environ.get("ROOM_INACTIVITY_SEC", "1800"))
    # Background sweep interval for collect deadlines and idle rooms
    TIMER_TICK_SEC = float(os.environ.get("TIMER_TICK_SEC", "0.25"))
    # Rooms with no action at all for this long are dropped even if clients
    # still look connected (0 disables)
    ROOM_INACTIVITY_SEC = int(os.environ.get("ROOM_INACTIVITY_SEC", "1800"))
    # Background sweep for collect deadlines and idle rooms
    TIMER_TICK_SEC = float(os.environ.get("TIMER_TICK_SEC", "0.25"))

    # Game
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "2"))
    MAX_ROUNDS = int(os.environ.get("MAX_ROUNDS", "0"))
    NAME_COLLISION_POLICY = os.environ.get("NAME_COLLISION_POLICY", "reject")
    ANSWER_STEMMING = os.environ.get("ANSWER_STEMMING", "0") == "1"
    COLLECT_DURATION_SEC = int(os.environ.get("COLLECT_DURATION_SEC", "60"))
    PROMPT_CHOICES_COUNT = int(os.environ.get("PROMPT_CHOICES_COUNT", "3"))

    # Input limits
    MAX_NAME_LENGTH = int(os.environ.get("MAX_NAME_LENGTH", "16"))
    MAX_ANSWER_LENGTH = int(os.environ.get("MAX_ANSWER_LENGTH", "64"))
