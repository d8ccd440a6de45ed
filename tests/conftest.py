import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AUTH_JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth.jwt_provider import JWTTokenVerifier
from app.database import Base, get_db
from app.main import app
from app.models import MemberRole, RsvpStatus, Trip, TripMember, User


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
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
def trip(db):
    """A GBP trip with three accepted members; u1 owns it."""
    for uid in ("u1", "u2", "u3"):
        db.add(User(id=uid, email=f"{uid}@example.com", display_name=uid.upper()))
    trip = Trip(name="Lisbon", base_currency="GBP", created_by_id="u1")
    db.add(trip)
    db.flush()
    db.add(TripMember(trip_id=trip.id, user_id="u1", role=MemberRole.OWNER.value, rsvp_status=RsvpStatus.ACCEPTED.value))
    db.add(TripMember(trip_id=trip.id, user_id="u2", rsvp_status=RsvpStatus.ACCEPTED.value))
    db.add(TripMember(trip_id=trip.id, user_id="u3", rsvp_status=RsvpStatus.ACCEPTED.value))
    db.commit()
    db.refresh(trip)
    return trip


@pytest.fixture
def verifier():
    return JWTTokenVerifier(secret="test-secret")


@pytest.fixture
def client(session_factory, verifier):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    previous_verifier = app.state.token_verifier
    app.state.token_verifier = verifier
    with TestClient(app) as c:
        yield c
    app.state.token_verifier = previous_verifier
    app.dependency_overrides.clear()


@pytest.fixture
def auth(verifier):
    """Build Authorization headers for a user id."""

    def headers(uid: str, email: str | None = None) -> dict:
        token = verifier.issue(uid, email=email or f"{uid}@example.com", name=uid.upper())
        return {"Authorization": f"Bearer {token}"}

    return headers
