# Test configuration
import asyncio
import inspect
import os
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from postgrest.exceptions import APIError

# Set test environment variables BEFORE importing package modules
os.environ["SUPABASE_URL"] = "https://test-project.supabase.co"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["SITE_URL"] = "https://portfolio.test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DEBUG_TOOLS_ENABLED"] = "false"

from portfolio_data.config import Settings  # noqa: E402
from portfolio_data.storage import MemoryStorage  # noqa: E402

NOT_FOUND_ERROR = {
    "code": "PGRST116",
    "message": "JSON object requested, multiple (or no) rows returned",
    "details": "The result contains 0 rows",
    "hint": None,
}


def api_error(code: str, message: str) -> APIError:
    return APIError({"code": code, "message": message, "details": None, "hint": None})


class FakeResponse:
    def __init__(self, data=None, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Chainable stand-in for the PostgREST request builder over in-memory rows."""

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.action = "select"
        self.columns = "*"
        self.payload = None
        self.predicates = []
        self.order_spec = None
        self.limit_n = None
        self.window = None
        self.want_single = False
        self.count_method = None
        self.head = False

    def select(self, columns="*", count=None, head=False):
        self.columns = columns
        self.count_method = count
        self.head = head
        return self

    def insert(self, data):
        self.action = "insert"
        self.payload = data
        return self

    def update(self, data):
        self.action = "update"
        self.payload = data
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.predicates.append(lambda row: row.get(column) == value)
        return self

    def is_(self, column, value):
        assert value == "null"
        self.predicates.append(lambda row: row.get(column) is None)
        return self

    def or_(self, expression):
        clauses = []
        for clause in expression.split(","):
            column, operator, pattern = clause.split(".", 2)
            assert operator == "ilike"
            clauses.append((column, pattern.strip("%").lower()))
        self.client.or_expressions.append(expression)
        self.predicates.append(
            lambda row: any(term in str(row.get(col) or "").lower() for col, term in clauses)
        )
        return self

    def order(self, column, desc=False):
        self.order_spec = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def range(self, start, end):
        self.window = (start, end)
        return self

    def single(self):
        self.want_single = True
        return self

    @property
    def kind(self):
        if self.action == "select" and self.head:
            return "count"
        return self.action

    def _matching(self):
        rows = self.client.tables.setdefault(self.table, [])
        return [row for row in rows if all(p(row) for p in self.predicates)]

    async def execute(self):
        self.client.calls.append((self.table, self.kind))
        error = self.client.failures.get((self.table, self.kind)) or self.client.failures.get(
            (self.table, None)
        )
        if error is not None:
            raise error

        if self.action == "insert":
            row = dict(self.payload)
            row.setdefault("id", str(uuid.uuid4()))
            row["created_at"] = row["updated_at"] = self.client.next_timestamp()
            self.client.tables.setdefault(self.table, []).append(row)
            return FakeResponse(data=[dict(row)])

        if self.action == "update":
            updated = []
            for row in self._matching():
                row.update(self.payload)
                row["updated_at"] = self.client.next_timestamp()
                updated.append(dict(row))
            return FakeResponse(data=updated)

        if self.action == "delete":
            removed = self._matching()
            rows = self.client.tables.setdefault(self.table, [])
            rows[:] = [row for row in rows if row not in removed]
            return FakeResponse(data=removed)

        rows = self._matching()
        total = len(rows)
        if self.order_spec:
            column, desc = self.order_spec
            rows = sorted(
                rows,
                key=lambda row: (row.get(column) is not None, row.get(column) or 0),
                reverse=desc,
            )
        if self.window:
            start, end = self.window
            rows = rows[start:end + 1]
        if self.limit_n is not None:
            rows = rows[: self.limit_n]
        if self.columns != "*":
            wanted = [c.strip() for c in self.columns.split(",")]
            rows = [{c: row.get(c) for c in wanted} for row in rows]
        else:
            rows = [dict(row) for row in rows]

        count = total if self.count_method else None
        if self.head:
            return FakeResponse(data=[], count=count)
        if self.want_single:
            if len(rows) != 1:
                raise APIError(dict(NOT_FOUND_ERROR))
            return FakeResponse(data=rows[0], count=count)
        return FakeResponse(data=rows, count=count)


class FakeRpc:
    def __init__(self, client, name, params):
        self.client = client
        self.name = name
        self.params = params

    async def execute(self):
        self.client.rpc_calls.append((self.name, self.params))
        handler = self.client.rpc_handlers.get(self.name)
        if handler is None:
            raise api_error("PGRST202", f"Could not find the function {self.name}")
        result = handler(self.params)
        if inspect.isawaitable(result):
            result = await result
        return FakeResponse(data=result)


class FakeSupabaseClient:
    """In-memory Supabase client: tables, RPC handlers and a mocked auth API."""

    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failures = {}
        self.or_expressions = []
        self.rpc_calls = []
        self.rpc_handlers = {}
        self._ticks = 0

        self.subscription = MagicMock()
        self.auth = MagicMock()
        self.auth.get_session = AsyncMock(return_value=None)
        self.auth.get_user = AsyncMock(return_value=None)
        self.auth.refresh_session = AsyncMock(return_value=None)
        self.auth.sign_out = AsyncMock(return_value=None)
        self.auth.sign_in_with_oauth = AsyncMock()
        self.auth.sign_in_with_password = AsyncMock()
        self.auth.exchange_code_for_session = AsyncMock()
        self.auth.sign_up = AsyncMock()
        self.auth.reset_password_for_email = AsyncMock(return_value=None)
        self.auth.update_user = AsyncMock()
        self.auth.on_auth_state_change = MagicMock(return_value=self.subscription)

    def next_timestamp(self):
        self._ticks += 1
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        return (base + timedelta(seconds=self._ticks)).isoformat()

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        return FakeRpc(self, name, params or {})

    def fail(self, table, error, kind=None):
        """Make every matching query against ``table`` raise ``error``."""
        self.failures[(table, kind)] = error

    def seed(self, table, rows):
        for row in rows:
            row = dict(row)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", self.next_timestamp())
            self.tables.setdefault(table, []).append(row)

    def calls_to(self, table, kind=None):
        return [c for c in self.calls if c[0] == table and (kind is None or c[1] == kind)]


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_session(user_id="user-1", expires_at=None, email="user@example.com"):
    user = SimpleNamespace(id=user_id, email=email)
    return SimpleNamespace(
        user=user,
        expires_at=expires_at,
        access_token="access-token",
        refresh_token="refresh-token",
    )


async def slow(value, delay=0.01):
    await asyncio.sleep(delay)
    return value


@pytest.fixture
def fake_client():
    return FakeSupabaseClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def test_settings():
    return Settings(
        SUPABASE_URL="https://test-project.supabase.co",
        SUPABASE_ANON_KEY="test-anon-key",
        SITE_URL="https://portfolio.test",
    )
