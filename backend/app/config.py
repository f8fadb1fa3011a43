import os
from pathlib import Path
from dotenv import load_dotenv

# Override=True so changes in backend/.env take effect on process reload (and not get
# stuck on old environment variables).
#
# For automated tests (SQLite), we need to prevent backend/.env from overriding the
# test DATABASE_URL. Set DISABLE_DOTENV=1 to skip loading .env.
if os.getenv("DISABLE_DOTENV") != "1":
    load_dotenv(override=True)


def _env_bool(name: str, default: str = "1") -> bool:
    v = (os.getenv(name, default) or default).strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


_raw_database_url = (os.getenv("DATABASE_URL") or "").strip()
# Default to a local SQLite DB for dev so the backend can start out-of-the-box.
# Use an absolute path so it works regardless of current working directory.
_default_sqlite_path = (Path(__file__).resolve().parent.parent / "dev.db").as_posix()
DATABASE_URL = _raw_database_url or f"sqlite:///{_default_sqlite_path}"

# Auth / JWT
# NOTE: keep a default for local dev so the server can boot even if SECRET_KEY isn't set.
SECRET_KEY = os.getenv("SECRET_KEY") or os.getenv("JWT_SECRET") or "jobboardsecret"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440") or "1440")

# CORS: comma separated list of extra origins
FRONTEND_ORIGINS = [
    origin.strip()
    for origin in (os.getenv("FRONTEND_ORIGINS") or "").split(",")
    if origin.strip()
]

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()

# -------------------- Rate limiting --------------------
# Rules are "<max requests>/<window seconds>".
RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", "1")
RATE_LIMIT_API = os.getenv("RATE_LIMIT_API", "100/900")
RATE_LIMIT_AUTH = os.getenv("RATE_LIMIT_AUTH", "5/900")
RATE_LIMIT_APPLICATION = os.getenv("RATE_LIMIT_APPLICATION", "10/3600")
# "memory://" for a single process, "redis://host:6379" to share counters.
RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")
