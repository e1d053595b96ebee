"""Pytest configuration and fixtures"""
import asyncio
import itertools
import os
from collections import defaultdict
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from storefront.auth import AuthStore, MemoryTokenStorage
from storefront.config import Settings
from storefront.gateway import Gateway

# Set test environment variables
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "eyJ" + "a" * 120)
os.environ.setdefault("STOREFRONT_API_URL", "https://api.example.com")


async def hang(*_args, **_kwargs):
    """Side effect for a collaborator that never answers."""
    await asyncio.Event().wait()


class _Result:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeTable:
    """In-memory PostgREST table covering the calls the storefront makes."""

    def __init__(self, rows: List[Dict[str, Any]], calls: List, ids, failures: List):
        self.rows = rows
        self.calls = calls
        self._ids = ids
        self._failures = failures
        self._mode = "select"
        self._payload: Optional[Dict[str, Any]] = None
        self._filters: List = []
        self._order: List = []
        self._limit: Optional[int] = None
        self._range: Optional[tuple] = None

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        return self

    def select(self, *args, **kwargs):
        self._mode = "select"
        return self._record("select", *args, **kwargs)

    def insert(self, payload):
        self._mode = "insert"
        self._payload = payload
        return self._record("insert", payload)

    def update(self, payload):
        self._mode = "update"
        self._payload = payload
        return self._record("update", payload)

    def delete(self):
        self._mode = "delete"
        return self._record("delete")

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self._record("eq", column, value)

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self._record("neq", column, value)

    def gte(self, column, value):
        return self._record("gte", column, value)

    def lte(self, column, value):
        return self._record("lte", column, value)

    def or_(self, expression):
        # Only "col.ilike.%term%" alternatives are understood
        clauses = [part.split(".ilike.", 1) for part in expression.split(",")]
        self._filters.append(
            lambda row: any(
                pattern.strip("%").lower() in str(row.get(column) or "").lower()
                for column, pattern in clauses
            )
        )
        return self._record("or_", expression)

    def order(self, column, **kwargs):
        self._order.append((column, kwargs.get("desc", False)))
        return self._record("order", column, **kwargs)

    def limit(self, count):
        self._limit = count
        return self._record("limit", count)

    def range(self, start, end):
        self._range = (start, end)
        return self._record("range", start, end)

    def _matched(self):
        return [row for row in self.rows if all(check(row) for check in self._filters)]

    def _sorted(self, rows):
        # Stable sorts applied last-key-first; missing values compare equal
        for column, desc in reversed(self._order):
            rows = sorted(rows, key=lambda row: (row.get(column) is None, row.get(column) if row.get(column) is not None else 0), reverse=desc)
        return rows

    async def execute(self):
        if self._failures:
            raise self._failures.pop(0)

        if self._mode == "insert":
            row = {"id": f"row-{next(self._ids)}", **self._payload}
            self.rows.append(row)
            return _Result([dict(row)])

        matched = self._matched()
        if self._mode == "update":
            for row in matched:
                row.update(self._payload)
            return _Result([dict(row) for row in matched])
        if self._mode == "delete":
            for row in matched:
                self.rows.remove(row)
            return _Result([dict(row) for row in matched])

        total = len(matched)
        matched = self._sorted(matched)
        if self._range is not None:
            matched = matched[self._range[0]:self._range[1] + 1]
        if self._limit is not None:
            matched = matched[:self._limit]
        return _Result([dict(row) for row in matched], count=total)


class FakeSupabase:
    """Async Supabase client double: `table()` plus a mocked `auth`."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.calls: List = []
        self.failures: List = []
        self._ids = itertools.count(1)
        self.auth = Mock()
        self.auth.get_session = AsyncMock(return_value=None)
        self.auth.set_session = AsyncMock()
        self.auth.sign_out = AsyncMock()

    def table(self, name: str):
        self.calls.append(("table", (name,), {}))
        return FakeTable(self.tables[name], self.calls, self._ids, self.failures)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def mock_query():
    """Chainable PostgREST builder mock"""
    query = Mock()
    for name in ("select", "eq", "gte", "lte", "or_", "order", "range", "limit"):
        getattr(query, name).return_value = query
    return query


@pytest.fixture
def settings():
    return Settings(api_url="https://api.example.com", request_timeout=2.0)


@pytest.fixture
def make_gateway(settings):
    """Build a Gateway whose transport is the given request handler."""
    def _make(handler, gateway_settings: Optional[Settings] = None, base_url: str = ""):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=base_url)
        return Gateway(gateway_settings or settings, client=client)

    return _make


@pytest.fixture
def auth_payload():
    """Successful signin/session body"""
    return {
        "user": {"id": "user-123", "email": "ann@example.com"},
        "session": {
            "access_token": "access-abc",
            "refresh_token": "refresh-abc",
            "expires_at": 1893456000,
        },
    }


@pytest.fixture
def mock_auth_service():
    """AuthService double with every call succeeding and no profile row"""
    service = Mock()
    service.sign_in = AsyncMock()
    service.sign_up = AsyncMock()
    service.verify_otp = AsyncMock()
    service.lookup_session = AsyncMock(return_value=None)
    service.sign_out = AsyncMock()
    service.get_profile = AsyncMock(return_value=None)
    service.update_profile = AsyncMock(return_value={})
    return service


@pytest.fixture
def mock_session_cache():
    cache = Mock()
    cache.get_session = AsyncMock(return_value=None)
    cache.set_session = AsyncMock()
    cache.sign_out = AsyncMock()
    return cache


@pytest.fixture
def token_storage():
    return MemoryTokenStorage()


@pytest.fixture
def auth_store(mock_auth_service, token_storage, mock_session_cache):
    """AuthStore with short timeouts so hanging collaborators fail fast"""
    return AuthStore(
        mock_auth_service,
        token_storage=token_storage,
        session_cache=mock_session_cache,
        step_timeout=0.05,
        profile_timeout=0.05,
        session_sync_timeout=0.05,
        profile_sync_delay=0,
    )
