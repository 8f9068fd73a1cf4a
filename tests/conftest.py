"""
Shared pytest configuration.

Each test gets a fresh in-memory SQLite database; the FastAPI app is wired to
it by overriding the get_db dependency. Outbound notifications are captured
instead of sent.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.services.notifications import notification_service

from factories import make_organization, make_profile


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
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sent_messages():
    """Capture notifications as (recipient, text) tuples."""
    captured = []

    def _capture(to, text):
        captured.append((to, text))
        return True

    previous = notification_service.set_sender_override(_capture)
    yield captured
    notification_service.set_sender_override(previous)


@pytest.fixture
def org_owner(db):
    return make_profile(db, "owner", role="organization", full_name="Lina Haddad")


@pytest.fixture
def organization(db, org_owner):
    return make_organization(db, org_owner.id)


@pytest.fixture
def volunteers(db):
    """Four volunteer profiles keyed by first name."""
    return {
        name: make_profile(db, name)
        for name in ("alice", "bob", "carol", "dave")
    }


@pytest.fixture
def admin(db):
    return make_profile(db, "admin", role="admin", full_name="Platform Admin")
