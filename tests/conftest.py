"""Pytest configuration and fixtures for key router tests"""

import os

import pytest
from cryptography.fernet import Fernet

# Must be set before app.main is imported (config is loaded at import time)
os.environ.setdefault("CREDENTIAL_ENCRYPTION_KEY", Fernet.generate_key().decode())

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api_keys import APIKeyStore, SystemSettingsStore
from app.crypto import SecretCipher
from app.database import Base, get_db


class FakeAPIError(Exception):
    """Mimics a provider SDK error carrying an HTTP status code."""

    def __init__(self, code, message):
        self.code = code
        self.message = message
        super().__init__(f"{code} {message}")


class FakeProvider:
    """Provider scripted by (secret, model) → text or exception.

    Unscripted pairs fail with an unrecognized error.
    """

    def __init__(self, script=None, default=None):
        self.script = dict(script or {})
        self.default = default
        self.calls = []

    def generate(self, secret, model, prompt):
        self.calls.append((secret, model))
        result = self.script.get((secret, model), self.script.get(model, self.default))
        if result is None:
            raise RuntimeError(f"unexpected failure #{len(self.calls)}")
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(secret, model, prompt)
        return result


@pytest.fixture(autouse=True)
def no_fallback_key(monkeypatch):
    """Tests opt in to the process fallback key explicitly."""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh in-memory database engine for each test"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a database session for each test"""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def cipher():
    return SecretCipher(Fernet.generate_key().decode())


@pytest.fixture
def store(db_session, cipher):
    return APIKeyStore(db_session, cipher)


@pytest.fixture
def settings_store(db_session, cipher):
    return SystemSettingsStore(db_session, cipher)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def client(session_factory, cipher, provider):
    """FastAPI test client wired to the in-memory database and fake provider."""
    from app.main import app, get_cipher, get_provider

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cipher] = lambda: cipher
    app.dependency_overrides[get_provider] = lambda: provider

    yield TestClient(app)

    app.dependency_overrides.clear()
