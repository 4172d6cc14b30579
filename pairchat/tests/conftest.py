"""
Pytest configuration and fixtures for testing.
Provides a test database, the application, a test client and seeded users.
"""
import pytest
from typing import Callable, Dict, Generator, List
from fastapi import FastAPI
from fastapi.testclient import TestClient

from pairchat.core.config import Settings
from pairchat.core.security import hash_password
from pairchat.db.database import Database
from pairchat.db.models import User
from pairchat.db.repository import Repository
from pairchat.main import create_app


@pytest.fixture(scope="function")
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test_pairchat.db'}",
        jwt_secret_key="test-secret",
        bcrypt_rounds=4,
        log_json=False,
        shutdown_drain_seconds=1.0,
    )


@pytest.fixture(scope="function")
def test_database(test_settings: Settings) -> Generator[Database, None, None]:
    """
    Create a fresh database for each test.
    Tables are created on startup and the pool is disposed afterwards.
    """
    database = Database.from_settings(test_settings)
    database.startup()
    try:
        yield database
    finally:
        database.shutdown()


@pytest.fixture(scope="function")
def test_app(test_settings: Settings, test_database: Database) -> FastAPI:
    return create_app(test_settings, test_database)


@pytest.fixture(scope="function")
def test_client(test_app: FastAPI) -> Generator[TestClient, None, None]:
    """Create a test client; entering it runs the application lifespan."""
    with TestClient(test_app) as client:
        yield client


@pytest.fixture(scope="function")
def seed_test_users(test_database: Database) -> List[User]:
    """
    Seed test database with alice, bob and carol.
    All share the password "password123".
    """
    users = []
    with test_database.session() as db:
        repository = Repository(db)
        for username in ("alice", "bob", "carol"):
            users.append(repository.create_user(username, hash_password("password123", rounds=4)))
        db.commit()
    return users


@pytest.fixture
def auth_headers(test_app: FastAPI) -> Callable[[User], Dict[str, str]]:
    """Build an Authorization header for a seeded user."""
    def _headers(user: User) -> Dict[str, str]:
        token = test_app.state.identity_provider.issue(user.id, user.username)
        return {"Authorization": f"Bearer {token}"}
    return _headers
