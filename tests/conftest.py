import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


# Ensure `import backend.app...` works regardless of where pytest is run from.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Set before any `backend.app` import (test modules import models at collection
# time), so config never reads a developer .env or points at backend/dev.db.
TEST_DB_PATH = Path(tempfile.mkdtemp(prefix="jobboard-tests-")) / "test.sqlite3"
os.environ["DISABLE_DOTENV"] = "1"
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{TEST_DB_PATH.as_posix()}"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"


class RecordingNotifier:
    """NotificationSink that keeps every emitted event in memory."""

    def __init__(self):
        self.events: list[tuple[str, str, object]] = []

    def emit(self, scope, event, payload):
        self.events.append((scope, event, payload))

    def named(self, event: str) -> list[tuple[str, str, object]]:
        return [e for e in self.events if e[1] == event]


@pytest.fixture(scope="session")
def test_db_path() -> Path:
    return TEST_DB_PATH


@pytest.fixture()
def app(test_db_path: Path, monkeypatch: pytest.MonkeyPatch) -> FastAPI:
    """
    Create the FastAPI app wired to a temporary SQLite DB.
    """
    from backend.app import config
    from backend.app import database as db
    from backend.app.services import rate_limiter

    engine = create_engine(
        os.environ["DATABASE_URL"],
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    db.install_sqlite_pragmas(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Patch the shared database module so router dependencies use the test DB.
    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(db, "SessionLocal", TestingSessionLocal)

    # Import models so Base metadata is populated, then create tables.
    from backend.app.models import application, job, user  # noqa: F401

    db.Base.metadata.drop_all(bind=engine)
    db.Base.metadata.create_all(bind=engine)

    # Rate limits get their own tests.
    monkeypatch.setattr(config, "RATE_LIMIT_ENABLED", False)
    rate_limiter.limiter.reset()

    from backend.app.main import create_app

    return create_app()


@pytest.fixture()
def client(app: FastAPI):
    # Entering the client runs the lifespan, which starts the notification relay.
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def db_session(app: FastAPI):
    """
    Direct SQLAlchemy session bound to the same temporary SQLite DB used by the test app.
    """
    from backend.app import database

    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def recording_app(app: FastAPI, notifier: RecordingNotifier) -> FastAPI:
    """The app with its notification relay swapped for a RecordingNotifier."""
    from backend.app.utils.dependencies import get_notifier

    app.dependency_overrides[get_notifier] = lambda: notifier
    return app


@pytest.fixture()
def recording_client(recording_app: FastAPI):
    with TestClient(recording_app) as c:
        yield c



@pytest.fixture()
def make_admin(db_session):
    """Admins can't self-register: promote a fresh account in the DB and log it in."""
    from backend.app.models.user import Role, User

    def _make(client: TestClient, email: str) -> dict:
        body = {"name": "Admin", "email": email, "password": "Testpass123!"}
        r = client.post("/auth/register", json=body)
        assert r.status_code == 200, r.text
        db_session.query(User).filter(User.email == email).update({"role": Role.ADMIN.value})
        db_session.commit()
        r = client.post("/auth/login", json={"email": email, "password": body["password"]})
        assert r.status_code == 200, r.text
        return r.json()

    return _make
