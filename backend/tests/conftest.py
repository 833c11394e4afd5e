"""
crudkit Backend — Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (records, mocked stores,
       request contexts, an API client on an in-memory database).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.
Who:   Used by all test files in the tests/ directory.
When:  Fixtures are created fresh for each test.

Fixture Hierarchy:
    Record factories:
    ├── make_user:          unsaved User with every column filled in
    └── make_notification:  unsaved Notification owned by a user
    Controller-level (no database):
    ├── mock_store:         factory for an AsyncMock-backed store
    └── make_ctx:           RequestContext builder
    API-level (SQLite in memory):
    ├── app:                create_app() with the lifespan running
    └── test_client:        HTTPX AsyncClient on that app
"""

import os
import tempfile

# Override settings for testing BEFORE any crudkit imports: the settings
# singleton is read once at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="crudkit_test_")
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests
os.environ["AUTH_TYPE"] = "oauth_bearer"

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from crudkit.auth import Credentials
from crudkit.config import settings
from crudkit.core.context import RequestContext
from crudkit.models import Notification, User
from crudkit.store.base import DataStore


# ══════════════════════════════════════════════════════════════════════════
# Record Factories
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_user():
    """
    Builds User records without a database.

    Column defaults only apply on flush, so every field the controllers
    read is set explicitly here.
    """

    def factory(**overrides: Any) -> User:
        now = datetime.now(timezone.utc)
        values = {
            "uid": str(uuid4()),
            "display_name": "Test User",
            "email": "user@example.com",
            "phone_number": None,
            "avatar": None,
            "settings": None,
            "is_verified": False,
            "verification_code": None,
            "verification_expires_at": None,
            "access_token": f"token-{uuid4().hex[:8]}",
            "status": "active",
            "created_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        return User(**values)

    return factory


@pytest.fixture
def make_notification():
    def factory(user_id: str, **overrides: Any) -> Notification:
        now = datetime.now(timezone.utc)
        values = {
            "uid": str(uuid4()),
            "user_id": user_id,
            "type": "system",
            "title": "Welcome",
            "message": "Hello there",
            "is_read": False,
            "status": "active",
            "created_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        return Notification(**values)

    return factory


# ══════════════════════════════════════════════════════════════════════════
# Controller-Level Fixtures (no database)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_store():
    """
    Factory for a store double.

    Store methods are AsyncMocks; insert_one/update_one echo the record
    back and create_model builds a real, unsaved record.

    Usage:
        store = mock_store(Notification)
        store.get_one_by_pk.return_value = notification
    """

    def factory(record_class: type) -> MagicMock:
        store = MagicMock()
        store.record_class = record_class
        store.filter_pagination = AsyncMock()
        store.get_one_by_pk = AsyncMock()
        store.insert_one = AsyncMock(side_effect=lambda record: record)
        store.update_one = AsyncMock(side_effect=lambda record: record)

        def create_model(values):
            record = record_class()
            record.apply(values)
            return record

        store.create_model = create_model
        return store

    return factory


@pytest.fixture
def make_ctx():
    """
    Builds a RequestContext around a dict of stores.

    Usage:
        ctx = make_ctx({"Notification": store}, user=user, query={"page": "2"})
    """

    def factory(
        stores: Optional[Dict[str, Any]] = None,
        user: Optional[User] = None,
        is_new_user: bool = False,
        **kwargs: Any,
    ) -> RequestContext:
        credentials = None
        if user is not None:
            credentials = Credentials(user_id=user.uid, profile=user, is_new_user=is_new_user)
        return RequestContext(
            data_store=DataStore(stores or {}),
            settings=settings,
            credentials=credentials,
            **kwargs,
        )

    return factory


@pytest.fixture
def sample_image_bytes():
    """
    Provides minimal JPEG bytes for upload validation tests.

    Note: This is NOT a decodable photograph; it only carries the JPEG
    header that libmagic recognizes.
    """
    # Minimal JPEG: Start of Image (FFD8) + JFIF marker + End of Image (FFD9)
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


# ══════════════════════════════════════════════════════════════════════════
# API-Level Fixtures (SQLite in memory)
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def app():
    """
    A fresh application with its lifespan running.

    What:    create_app() on an in-memory SQLite database (tables created
             by the lifespan).
    Why:     httpx's ASGITransport does not send lifespan events, so the
             fixture enters the lifespan itself.
    """
    from crudkit.main import create_app

    application = create_app()
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture
async def test_client(app):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def stored_user(app, make_user):
    """A persisted user; authenticate with `Authorization: Bearer <access_token>`."""
    store = app.state.data_store.get_store("User")
    return await store.insert_one(make_user())


@pytest.fixture
def auth_headers(stored_user):
    return {"Authorization": f"Bearer {stored_user.access_token}"}
