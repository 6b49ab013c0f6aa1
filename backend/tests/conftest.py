"""Shared fixtures: in-memory SQLite database, API client and an authenticated user."""

import os

# Configuration is read at import time, so the environment must be set first.
os.environ["ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PURCHASE_RATE_LIMIT"] = "1000/minute"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base, get_db
from main import app
from models.user import User
from services.auth import create_access_token
from services.border_service import ensure_default_borders


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)


def create_jwt_token(user: User) -> str:
    return create_access_token(user)


def make_user(db: Session, username: str, points: int = 0) -> User:
    user = User(username=username, email=f"{username}@example.com", points=points)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def db_session() -> Session:
    """Fresh schema with the default border catalog for every test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    ensure_default_borders(session)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session: Session) -> TestClient:
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def test_user(db_session: Session) -> User:
    return make_user(db_session, "testuser")


@pytest.fixture
def valid_jwt_token(test_user: User) -> str:
    return create_jwt_token(test_user)


@pytest.fixture
def auth_headers(valid_jwt_token: str) -> dict:
    return {"Authorization": f"Bearer {valid_jwt_token}"}
