"""Pytest configuration and shared fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from authadmin.api.deps import get_db
from authadmin.api.main import create_app
from authadmin.core.ban import BanEnforcementHook
from authadmin.core.config import Settings, get_settings
from authadmin.core.records import SessionRecord
from authadmin.core.security import sign_value
from authadmin.core.service import AdminService
from authadmin.db.base import Base
from authadmin.db.store import SqlIdentityStore
import authadmin.db.models  # noqa: F401
from tests.fakes import FakeCookieController, FrozenClock


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        secret_key="test-secret-key",
        base_url="http://testserver",
        log_to_file=False,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def store(db_session, settings, clock):
    """SQL identity store with ban enforcement registered."""
    store = SqlIdentityStore.from_settings(db_session, settings, clock=clock)
    store.register_session_hook(BanEnforcementHook(store, settings, clock=clock))
    return store


@pytest.fixture
def service(store, settings, clock):
    return AdminService(store, settings, clock=clock)


@pytest.fixture
def cookies():
    return FakeCookieController()


@pytest.fixture
def app(settings, db_session):
    app = create_app(settings)

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def sign_in(client, db_session, settings):
    """Create a session for a user and put its cookie on the test client."""
    store = SqlIdentityStore.from_settings(db_session, settings)

    def _sign_in(user) -> SessionRecord:
        session = store.create_session(user.id)
        client.cookies.set(
            f"{settings.cookie_prefix}.session_token",
            sign_value(session.token, settings.secret_key),
            # Same jar key the server-set cookie gets, so responses replace it
            domain="testserver.local",
        )
        return session

    return _sign_in
