"""
Pytest configuration and shared test helpers for backend tests.
"""
import os
import sys
from pathlib import Path

# Skip heavy server startup (MongoDB, scheduler) when running under pytest.
os.environ.setdefault("PYTEST_RUNNING", "1")

# Backend root on the path so `server`, `database` and `qanoon` import directly.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from unittest.mock import AsyncMock, MagicMock

# Shared TestClient fixture so tests can use in-process requests without a running server.
from fastapi.testclient import TestClient
from server import app


class AsyncCursor:
    """Async iterator over a list (for mocking Motor find() cursor).
    
    Supports the chained sort/skip/limit calls and to_list the services use.
    """
    def __init__(self, items):
        self._items = list(items)
    def __aiter__(self):
        return self
    async def __anext__(self):
        if not self._items:
            raise StopAsyncIteration
        return self._items.pop(0)
    def sort(self, *args, **kwargs):
        return self
    def skip(self, *args, **kwargs):
        return self
    def limit(self, *args, **kwargs):
        return self
    async def to_list(self, length=None):
        items, self._items = self._items, []
        return items


def update_result(matched=1, modified=1):
    result = MagicMock()
    result.matched_count = matched
    result.modified_count = modified
    return result


def delete_result(deleted=1):
    result = MagicMock()
    result.deleted_count = deleted
    return result


def make_collection(find_one=None, find_items=None):
    """MagicMock standing in for one Motor collection."""
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=find_one)
    collection.find = MagicMock(side_effect=lambda *a, **k: AsyncCursor(find_items or []))
    collection.insert_one = AsyncMock()
    collection.insert_many = AsyncMock()
    collection.update_one = AsyncMock(return_value=update_result())
    collection.update_many = AsyncMock(return_value=update_result())
    collection.delete_one = AsyncMock(return_value=delete_result())
    collection.delete_many = AsyncMock(return_value=delete_result(0))
    collection.count_documents = AsyncMock(return_value=0)
    collection.distinct = AsyncMock(return_value=[])
    collection.aggregate = MagicMock(side_effect=lambda *a, **k: AsyncCursor([]))
    return collection


class FakeDb:
    """Database stand-in: every collection attribute is a ready-made AsyncMock collection."""
    def __getattr__(self, name):
        if name.startswith("__"):
            raise AttributeError(name)
        collection = make_collection()
        setattr(self, name, collection)
        return collection


def cursor_of(items):
    """find()/aggregate() replacement returning a fresh cursor per call."""
    return MagicMock(side_effect=lambda *a, **k: AsyncCursor(items))


@pytest.fixture
def client():
    """Return a TestClient for the main FastAPI app (server:app). Use for unit-style API tests."""
    return TestClient(app)


@pytest.fixture
def db():
    return FakeDb()


def bearer(user_id="user-1", email="user@example.com"):
    """Authorization header carrying a real signed token."""
    from auth import create_access_token
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id, 'email': email})}"}


def signed_in(db, user_id="user-1", role="individual", company_id=None, **profile_fields):
    """Seed the profile and role rows that require_auth loads for `user_id`."""
    profile = {
        "user_id": user_id,
        "email": f"{user_id}@example.com",
        "full_name": "Test User",
        "user_role": role,
        "current_company_id": company_id,
        "subscription_tier": "free",
        "queries_used": 0,
    }
    profile.update(profile_fields)
    db.profiles.find_one = AsyncMock(return_value=profile)
    db.user_roles.find = cursor_of([{"user_id": user_id, "role": role}])
    return profile
