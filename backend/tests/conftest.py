"""Shared test fixtures for the archive tests."""
import pytest
from fastapi.testclient import TestClient

from archive.auth.service import pwd_context
from archive.config import AppConfig, Secrets, StorageSettings, UserCredentials
from archive.main import create_app

TEST_LOGIN = "alice"
TEST_PASSWORD = "wonderland"
# bcrypt hashing is slow; hash once per test session.
TEST_PASSWORD_HASH = pwd_context.hash(TEST_PASSWORD)


@pytest.fixture
def config(tmp_path) -> AppConfig:
    """Config with a temp database, tiny chunks and one known user."""
    return AppConfig(
        storage=StorageSettings(
            db_path=str(tmp_path / "archive.duckdb"),
            documents_path=str(tmp_path / "documents.duckdb"),
            chunk_size=4,
        ),
        secrets=Secrets(
            session_secret="test-secret",
            users={
                TEST_LOGIN: UserCredentials(id="user-1", password_hash=TEST_PASSWORD_HASH),
            },
        ),
    )


@pytest.fixture
def client(config):
    """TestClient with the lifespan running, so the blob store is READY."""
    with TestClient(create_app(config)) as test_client:
        yield test_client


@pytest.fixture
def logged_in(client):
    """The same client after a successful login."""
    response = client.post("/api/auth/login", json={"login": TEST_LOGIN, "password": TEST_PASSWORD})
    assert response.status_code == 200
    return client
