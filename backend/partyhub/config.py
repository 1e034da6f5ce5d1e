import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Empty picks a default per platform in create_app.
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    # Inkspiracy
    INKSPIRACY_MIN_PLAYERS = int(os.environ.get("INKSPIRACY_MIN_PLAYERS", "3"))
    INKSPIRACY_MAX_ROUNDS = int(os.environ.get("INKSPIRACY_MAX_ROUNDS", "2"))
    INKSPIRACY_VOTE_SEC = int(os.environ.get("INKSPIRACY_VOTE_SEC", "60"))
    INKSPIRACY_GUESS_SEC = int(os.environ.get("INKSPIRACY_GUESS_SEC", "45"))
    INKSPIRACY_IMPOSTOR_WIN = int(os.environ.get("INKSPIRACY_IMPOSTOR_WIN", "3"))
    INKSPIRACY_INNOCENT_WIN = int(os.environ.get("INKSPIRACY_INNOCENT_WIN", "1"))
    INKSPIRACY_WIN_THRESHOLD = int(os.environ.get("INKSPIRACY_WIN_THRESHOLD", "10"))

    # Concept
    CONCEPT_MIN_PLAYERS = int(os.environ.get("CONCEPT_MIN_PLAYERS", "2"))
    CONCEPT_SABOTAGE_SEC = int(os.environ.get("CONCEPT_SABOTAGE_SEC", "20"))
    CONCEPT_ROUND_SEC = int(os.environ.get("CONCEPT_ROUND_SEC", "120"))

    # KnowMe
    KNOWME_MIN_PLAYERS = int(os.environ.get("KNOWME_MIN_PLAYERS", "2"))
    KNOWME_GUESS_SEC = int(os.environ.get("KNOWME_GUESS_SEC", "90"))
    KNOWME_TEAM_WIN_SCORE = int(os.environ.get("KNOWME_TEAM_WIN_SCORE", "10"))

    # Rabisco
    RABISCO_MIN_PLAYERS = int(os.environ.get("RABISCO_MIN_PLAYERS", "2"))
    RABISCO_CHOOSE_SEC = int(os.environ.get("RABISCO_CHOOSE_SEC", "15"))
    RABISCO_DRAW_SEC = int(os.environ.get("RABISCO_DRAW_SEC", "80"))
    RABISCO_INTERMISSION_SEC = int(os.environ.get("RABISCO_INTERMISSION_SEC", "5"))
    RABISCO_MAX_ROUNDS = int(os.environ.get("RABISCO_MAX_ROUNDS", "3"))
    RABISCO_MAX_SCORE = int(os.environ.get("RABISCO_MAX_SCORE", "120"))
    RABISCO_WORD_CHOICES = int(os.environ.get("RABISCO_WORD_CHOICES", "3"))
    RABISCO_SABOTAGE_MS = int(os.environ.get("RABISCO_SABOTAGE_MS", "5000"))
    RABISCO_ITEM_PRICES = {
        "invisible_ink": 15,
        "earthquake": 10,
        "censorship": 12,
        "mirror": 8,
    }
