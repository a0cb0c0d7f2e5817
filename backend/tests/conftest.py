"""Shared fixtures: sqlite databases, fake external clients and an API client."""

import os

# Settings are read at import time; these must be in place first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = "http://localhost:3000"
os.environ["SUPABASE_URL"] = "https://example.supabase.co"
os.environ["SUPABASE_ANON_KEY"] = "anon-key"
os.environ["GEMINI_API_KEY"] = "gemini-key"
os.environ["DEBUG"] = "false"

from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from catalogue.auth_client import AuthenticatedUser
from catalogue.errors import AuthError
from catalogue.models import Base

GOOD_TOKEN = "good-token"
AUTH_HEADERS = {"Authorization": f"Bearer {GOOD_TOKEN}"}
USER_ID = "2f6c1d3e-0000-4000-8000-000000000001"


@pytest.fixture
def db_path(tmp_path):
    """A sqlite file with every table created."""
    path = tmp_path / "catalogue.db"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    engine.dispose()
    return path


@pytest.fixture
def session_factory(db_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class FakeAuthClient:
    """Accepts GOOD_TOKEN and one registered account."""

    def __init__(self) -> None:
        self.accounts: Dict[str, str] = {"jane@example.com": "s3cret-pass"}
        self.signups: List[Dict[str, Any]] = []

    async def sign_up(self, email, password, full_name=None, avatar_url=None):
        if email in self.accounts:
            raise AuthError("User already registered")
        self.accounts[email] = password
        self.signups.append({"email": email, "full_name": full_name, "avatar_url": avatar_url})
        return {"id": "new-user", "email": email}

    async def sign_in_with_password(self, email, password) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        if self.accounts.get(email) != password:
            raise AuthError("Invalid login credentials")
        user = {"id": USER_ID, "email": email}
        return {"access_token": GOOD_TOKEN, "token_type": "bearer", "user": user}, user

    async def get_user(self, token: str) -> AuthenticatedUser:
        if token != GOOD_TOKEN:
            raise AuthError("Invalid or expired token")
        return AuthenticatedUser(id=USER_ID, email="jane@example.com")


class FakeStorageClient:
    def __init__(self) -> None:
        self.uploads: Dict[str, Tuple[bytes, str]] = {}

    async def upload(self, key, content, content_type, access_token=None):
        self.uploads[key] = (content, content_type)
        return key

    def public_url(self, key: str) -> str:
        return f"https://storage.test/product-files/{key}"


class FakeExtractionClient:
    """Returns a preset decoded reply, or raises a preset error."""

    def __init__(self) -> None:
        self.result: Any = {}
        self.error: Optional[Exception] = None
        self.calls: List[Tuple[bytes, str]] = []

    async def extract(self, image_bytes: bytes, mime_type: str) -> Any:
        self.calls.append((image_bytes, mime_type))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def fake_auth():
    return FakeAuthClient()


@pytest.fixture
def fake_storage():
    return FakeStorageClient()


@pytest.fixture
def fake_extraction():
    return FakeExtractionClient()


@pytest.fixture
def api(session_factory, fake_auth, fake_storage, fake_extraction):
    """TestClient with the database and every external client replaced."""
    from catalogue.database import get_db
    from catalogue.dependencies import (
        get_auth_client,
        get_extraction_client,
        get_storage_client,
    )
    from catalogue.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_client] = lambda: fake_auth
    app.dependency_overrides[get_storage_client] = lambda: fake_storage
    app.dependency_overrides[get_extraction_client] = lambda: fake_extraction

    # Not entered as a context manager, so the lifespan (real clients,
    # create_tables on the configured URL) does not run.
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
