"""
Test configuration and fixtures for GeneratorLog tests.
"""
import os
from datetime import datetime, timedelta

# The module-level engine is built on import; keep it off the disk
os.environ.setdefault("GENERATORLOG_DB_URL", "sqlite:///:memory:")
os.environ.setdefault("GENERATORLOG_LOG_TO_FILE", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from generatorlog.api.dependencies import get_clock
from generatorlog.core.clock import utcnow
from generatorlog.core.config import Settings, get_settings
from generatorlog.core.db.session import get_db, get_session_factory
from generatorlog.core.db.tables.apikey import ApiKey
from generatorlog.core.db.tables.base import Base
from generatorlog.core.db.tables.generator import Generator
from generatorlog.core.db.tables.user import User
from generatorlog.core.rate_limit import RateLimiter, auth_limiter
from generatorlog.core.security import hash_password, new_api_key
from generatorlog.core.sessions import SessionStore


TEST_SETTINGS = Settings(
    env="test",
    database_url="sqlite:///:memory:",
    log_to_file=False,
)

DEFAULT_PASSWORD = "correct horse battery"


class FakeClock:
    """Manually advanced UTC clock returning naive datetimes."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Manually advanced monotonic clock for the rate limiter."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_auth_limiter():
    """slowapi keeps counters in process memory; start every test fresh."""
    auth_limiter.reset()
    yield
    auth_limiter.reset()


@pytest.fixture
def session_factory():
    """Session factory bound to an isolated in-memory database."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield sessionmaker(bind=engine, autoflush=False)

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    """Create an isolated test database session for each test."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 2, 13, 16, 0, 0))


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def client_factory(session_factory):
    """Factory to create test clients bound to a specific db session."""
    limiters = []

    def create_client(session, session_id=None, clock=None, rate_limiter=None):
        from generatorlog.app import create_app

        if rate_limiter is None:
            rate_limiter = RateLimiter(limit=1000, sweep_interval=None)
        limiters.append(rate_limiter)
        app = create_app(settings=TEST_SETTINGS, rate_limiter=rate_limiter, create_tables=False)

        def override_get_db():
            yield session

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_session_factory] = lambda: session_factory
        app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
        if clock is not None:
            app.dependency_overrides[get_clock] = lambda: clock

        client = TestClient(app)
        if session_id:
            client.cookies.set(TEST_SETTINGS.session_cookie_name, session_id)
        return client

    yield create_client

    for limiter in limiters:
        limiter.close()


@pytest.fixture
def make_user(db_session):
    """Create users directly in the database."""

    def create(email="owner@example.com", password=DEFAULT_PASSWORD, name="Owner"):
        user = User(email=email, name=name, password_hash=hash_password(password))
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return create


@pytest.fixture
def login_session(db_session):
    """Start a session for a user and return its id."""

    def create(user, clock=None):
        store = SessionStore(db_session, TEST_SETTINGS.session_max_age_seconds, clock=clock or utcnow)
        return store.create(user.id)

    return create


@pytest.fixture
def make_api_key(db_session):
    """Create an API key for a user; returns (row, raw key)."""

    def create(user, name="Shortcut"):
        material = new_api_key()
        api_key = ApiKey(user_id=user.id, key_hash=material.hash, hint=material.hint, name=name)
        db_session.add(api_key)
        db_session.commit()
        db_session.refresh(api_key)
        return api_key, material.raw

    return create


@pytest.fixture
def make_generator(db_session):
    """Create a generator for a user."""

    def create(user, **fields):
        fields.setdefault("name", "Honda EU2200i")
        generator = Generator(user_id=user.id, **fields)
        db_session.add(generator)
        db_session.commit()
        db_session.refresh(generator)
        return generator

    return create


@pytest.fixture
def owner(make_user):
    return make_user()


@pytest.fixture
def other_user(make_user):
    return make_user(email="neighbour@example.com", name="Neighbour")
