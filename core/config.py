# ABOUTME: Shared app configuration and constants used across API, store and UI (core package).
# ABOUTME: Keeps defaults in one place so API and clients stay in sync.

import os

from dotenv import load_dotenv

load_dotenv()

# Unfiltered session listing returns at most this many, newest end time first.
SESSIONS_PAGE_SIZE = 200
RECENT_SESSIONS_LIMIT = 5

TREND_WINDOW_DAYS = 14
PRESENCE_WINDOW_DAYS = 30

# Timed sessions shorter than this are discarded as accidental start/stop.
MIN_TIMED_SESSION_SECONDS = 5

DEFAULT_MOTIVATION_NOTE = "I will not compromise on Science"

# Auth: SECRET_KEY must be set (e.g. in .env); no default to avoid JWT forgery in production.
_SECRET_KEY = os.environ.get("SECRET_KEY")
if not _SECRET_KEY:
    raise ValueError(
        "SECRET_KEY environment variable must be set. For local dev, add SECRET_KEY=your-secret to .env."
    )
SECRET_KEY = _SECRET_KEY
ALGORITHM = "HS256"
_DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES = 60


def _parse_access_token_expire_minutes() -> int:
    raw = os.environ.get(
        "ACCESS_TOKEN_EXPIRE_MINUTES", str(_DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    try:
        return int(raw)
    except ValueError:
        return _DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES


ACCESS_TOKEN_EXPIRE_MINUTES = _parse_access_token_expire_minutes()
MIN_PASSWORD_LENGTH = 8
MAX_EMAIL_LENGTH = 254
MAX_DISPLAY_NAME_LENGTH = 64

# CORS: comma-separated origins; default allows local Streamlit UI. Set in production.
_raw_cors = os.environ.get("CORS_ORIGINS", "http://localhost:8501")
CORS_ORIGINS = [o.strip() for o in _raw_cors.split(",") if o.strip()] or [
    "http://localhost:8501"
]

# Persistence: "sql" (SQLite via SQLModel) or "mock" (local JSON file, seeded demo data).
STORE_SQL = "sql"
STORE_MOCK = "mock"
STUDY_STORE = os.environ.get("STUDY_STORE", STORE_SQL).strip().lower() or STORE_SQL
# Empty MOCK_STORE_PATH keeps the mock store in memory only.
MOCK_STORE_PATH = os.environ.get("MOCK_STORE_PATH", "study_mock.json").strip() or None
