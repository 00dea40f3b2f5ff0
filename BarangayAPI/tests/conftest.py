import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

DEFAULT_SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
SQLALCHEMY_DATABASE_URL = os.getenv("TEST_DATABASE_URL") or DEFAULT_SQLALCHEMY_DATABASE_URL

# Ensure the application itself uses the test database instead of the production default.
os.environ.setdefault("DATABASE_URL", SQLALCHEMY_DATABASE_URL)
# The API tests trigger sweeps explicitly; no background thread.
os.environ["SWEEP_SCHEDULER_ENABLED"] = "false"

from BarangayAPI.config import JWT_SECRET_KEY, JWT_ALGORITHM
from BarangayAPI.database import Base, engine, SessionLocal, get_db
from BarangayAPI.main import app
from BarangayAPI.models import User

TestingSessionLocal = SessionLocal

try:
    with engine.begin() as connection:
        Base.metadata.drop_all(bind=connection)
        Base.metadata.create_all(bind=connection)
except OperationalError as exc:
    raise RuntimeError(
        "Unable to initialize the database schema for tests. "
        "Set TEST_DATABASE_URL to a reachable database URL or ensure SQLite is available."
    ) from exc


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="module")
def test_client():
    with TestClient(app) as client:
        yield client


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory():
    """A private in-memory database, for engine tests that count sweep results."""
    isolated = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=isolated)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=isolated)
    finally:
        isolated.dispose()


@pytest.fixture
def isolated_db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


_user_counter = {"n": 0}


@pytest.fixture
def make_user():
    def _make(session, role: int = 0, full_name: str = "Juan Dela Cruz") -> User:
        _user_counter["n"] += 1
        user = User(
            full_name=full_name,
            email=f"user{_user_counter['n']}-{os.getpid()}@barangay.test",
            role=role,
            approved=True,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        payload = {"sub": str(user.id), "exp": datetime.utcnow() + timedelta(hours=1)}
        token = jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
        return {"Authorization": f"Bearer {token}"}

    return _headers


class RecordingEmitter:
    def __init__(self):
        self.events = []

    def emit(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [event for event, _ in self.events]


@pytest.fixture
def emitter():
    return RecordingEmitter()
