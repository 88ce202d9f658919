from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Optional

# enoma_api.db builds its engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import enoma_api.models  # noqa: F401
from enoma_api.db import Base
import enoma_api.db as db_module
import enoma_api.api as api_module
from enoma_api.config import load_config
from enoma_api.openai_client import AIError, get_openai_client
from enoma_api.services.google_places import get_places_client
from enoma_api.supabase_rest import AuthError, AuthUser, get_supabase_client

TEST_TOKEN = "test-access-token"
TEST_USER = AuthUser(id="user-1", email="owner@example.com")


class FakeSupabase:
    """Accepts TEST_TOKEN only; uploads are recorded, never sent."""

    url = "https://project.supabase.co"

    def __init__(self, user: AuthUser = TEST_USER) -> None:
        self.user = user
        self.uploads: list[tuple[str, str, str, int]] = []

    def get_user(self, access_token: str) -> AuthUser:
        if access_token != TEST_TOKEN:
            raise AuthError("Invalid session")
        return self.user

    def upload_object(self, bucket: str, path: str, content: bytes, content_type: str, upsert: bool = True) -> str:
        self.uploads.append((bucket, path, content_type, len(content)))
        return self.public_url(bucket, path)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{path}"


@dataclass
class FakeOpenAI:
    reply: dict[str, Any] = field(default_factory=dict)
    error: Optional[AIError] = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    def complete_json(self, prompt, model, system=None, temperature=None, timeout=None):
        self.calls.append({"prompt": prompt, "model": model, "system": system, "temperature": temperature})
        if self.error is not None:
            raise self.error
        return dict(self.reply)


@dataclass
class FakePlaces:
    result: dict[str, Any] = field(default_factory=dict)
    error: Optional[Exception] = None
    calls: list[str] = field(default_factory=list)

    def place_details(self, place_id: str) -> dict[str, Any]:
        self.calls.append(place_id)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture(scope="session")
def test_engine():
    url = os.getenv("ENOMA_TEST_DATABASE_URL")
    if url:
        engine = create_engine(url, pool_pre_ping=True)
    else:
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def _bind_test_db(monkeypatch, test_engine):
    TestSessionLocal = sessionmaker(bind=test_engine, expire_on_commit=False)
    monkeypatch.setattr(db_module, "_engine", test_engine, raising=False)
    monkeypatch.setattr(db_module, "SessionLocal", TestSessionLocal, raising=False)
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for key in ("RESEND_API_KEY", "ADMIN_EMAILS", "STRIPE_SECRET_KEY", "DEBUG_ECHO_ENABLED"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_test")
    monkeypatch.setenv("STRIPE_PRICE_ID", "price_test")
    monkeypatch.setenv("BASE_URL", "https://app.enoma.test")
    monkeypatch.setenv("SITE_URL", "https://enoma.test")
    monkeypatch.delenv("NEXT_PUBLIC_SITE_URL", raising=False)


@pytest.fixture
def db_session() -> Session:
    session = db_module.SessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def fake_ai() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture
def fake_places() -> FakePlaces:
    return FakePlaces()


@pytest.fixture
def app(fake_supabase, fake_ai, fake_places):
    app = api_module.create_app()
    app.dependency_overrides[get_supabase_client] = lambda: fake_supabase
    app.dependency_overrides[get_openai_client] = lambda: fake_ai
    app.dependency_overrides[get_places_client] = lambda: fake_places
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def set_config(app):
    """Override selected Config fields for request-time dependencies."""

    def _set(**changes):
        config = replace(load_config(), **changes)
        app.dependency_overrides[api_module.get_config] = lambda: config
        return config

    return _set


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_TOKEN}"}
