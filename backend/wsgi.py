from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parents[1] / ".env")

try:
    from backend.partyhub.server import create_app
except ImportError:  # pragma: no cover
    from partyhub.server import create_app

# Gunicorn entrypoint, e.g. ``gunicorn -k eventlet -w 1 backend.wsgi:app``.
# A single worker is required: rooms live in process memory.
app, socketio = create_app()
