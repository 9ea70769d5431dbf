"""
Shared pytest fixtures: in-memory database, in-memory session store and API clients.
"""
import os

# Configure before smartbook reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JOB_QUEUE_ENABLED"] = "false"
os.environ["REMINDERS_ENABLED"] = "false"
os.environ["AI_ENABLED"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["RECOMMENDATION_SEED"] = "7"

import time

import pytest
from fastapi.testclient import TestClient

from smartbook.db import Base, SessionLocal, engine, get_redis
from smartbook.deps import hash_password
from smartbook.main import app
from smartbook.models import UserRole
from smartbook.services.storage import UserRepository


class InMemoryRedis:
    """The subset of the Redis API used for login sessions."""

    def __init__(self):
        self.store = {}

    def _expired(self, key):
        value = self.store.get(key)
        return value is not None and value[1] is not None and value[1] < time.time()

    def get(self, key):
        if self._expired(key):
            del self.store[key]
        value = self.store.get(key)
        return value[0] if value else None

    def setex(self, key, seconds, value):
        self.store[key] = (value, time.time() + seconds)
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def ping(self):
        return True


@pytest.fixture
def fake_redis():
    return InMemoryRedis()


@pytest.fixture
def db():
    import smartbook.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def users(db):
    """One user per role, password is ``<username>123``."""
    created = {}
    for username, name, role in (
        ("admin", "Sarah Johnson", UserRole.ADMIN),
        ("staff", "John Davis", UserRole.STAFF),
        ("customer", "Michael Thompson", UserRole.CUSTOMER),
        ("other", "Emma Davis", UserRole.CUSTOMER),
    ):
        created[username] = UserRepository.create_user(
            db,
            username=username,
            password_hash=hash_password(f"{username}123"),
            name=name,
            email=f"{username}@example.com",
            phone="555-000-0000",
            role=role,
        )
    return created


@pytest.fixture
def client(db, fake_redis):
    app.dependency_overrides[get_redis] = lambda: fake_redis
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def login(db, users, fake_redis):
    """Factory returning a TestClient logged in as the given user."""
    app.dependency_overrides[get_redis] = lambda: fake_redis

    def _login(username):
        test_client = TestClient(app)
        response = test_client.post(
            "/api/auth/login", json={"username": username, "password": f"{username}123"}
        )
        assert response.status_code == 200, response.text
        return test_client

    try:
        yield _login
    finally:
        app.dependency_overrides.clear()
