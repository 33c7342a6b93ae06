"""Shared fixtures: an in-memory Supabase double and a scripted provider."""
import copy
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Optional

import pytest

from src.fetch.providers import ProviderName
from src.store.cache_store import CouponCacheStore
from src.store.quota import QuotaGate
from src.store.usage import UsageRecorder


def _as_datetime(value: Any) -> Any:
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


class FakeQuery:
    """Subset of the PostgREST query builder used by the stores."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.filters = []
        self.order_by = None
        self.limit_to = None
        self.payload = None
        self.on_conflict = None

    def select(self, *columns, count=None):
        self.op = "select"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def gt(self, column, value):
        bound = _as_datetime(value)
        self.filters.append(
            lambda row: row.get(column) is not None and _as_datetime(row[column]) > bound
        )
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, size):
        self.limit_to = size
        return self

    def upsert(self, rows, on_conflict=""):
        self.op = "upsert"
        self.payload = rows if isinstance(rows, list) else [rows]
        self.on_conflict = [c.strip() for c in on_conflict.split(",") if c.strip()]
        return self

    def insert(self, rows):
        self.op = "insert"
        self.payload = rows if isinstance(rows, list) else [rows]
        return self

    def execute(self):
        self.db.calls.append((self.table, self.op))
        self.db.check((self.table, self.op))
        result = self._apply()
        self.db.check((self.table, self.op), committed=True)
        return result

    def _apply(self):
        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "select":
            result = [copy.deepcopy(r) for r in rows if all(f(r) for f in self.filters)]
            if self.order_by:
                column, desc = self.order_by
                # Postgres puts NULLs first on DESC
                present = [r for r in result if r.get(column) is not None]
                missing = [r for r in result if r.get(column) is None]
                present.sort(key=lambda r: r[column], reverse=desc)
                result = missing + present if desc else present + missing
            if self.limit_to is not None:
                result = result[: self.limit_to]
            return SimpleNamespace(data=result, count=len(result))

        if self.op == "insert":
            for row in self.payload:
                rows.append(copy.deepcopy(row))
            return SimpleNamespace(data=copy.deepcopy(self.payload))

        # merge-duplicates: columns absent from the payload keep their value
        written = []
        for row in self.payload:
            key = tuple(row.get(c) for c in self.on_conflict)
            for existing in rows:
                if tuple(existing.get(c) for c in self.on_conflict) == key:
                    existing.update(copy.deepcopy(row))
                    break
            else:
                existing = copy.deepcopy(row)
                rows.append(existing)
            written.append(copy.deepcopy(existing))
        return SimpleNamespace(data=written)


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: dict):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.rpc_calls.append((self.name, dict(self.params)))
        self.db.check(("rpc", self.name))
        result = self._apply()
        self.db.check(("rpc", self.name), committed=True)
        return result

    def _apply(self):
        if self.name == "get_user_quota":
            user_id = self.params["p_user_id"]
            used = self.db.searches_used.get(user_id, 0)
            return SimpleNamespace(
                data=[
                    {
                        "can_search": used < self.db.searches_allowed,
                        "searches_used": used,
                        "searches_allowed": self.db.searches_allowed,
                    }
                ]
            )
        if self.name == "increment_search_count":
            user_id = self.params["p_user_id"]
            self.db.searches_used[user_id] = self.db.searches_used.get(user_id, 0) + 1
        return SimpleNamespace(data=None)


class FakeAuth:
    def __init__(self, db: "FakeSupabase"):
        self.db = db

    def get_user(self, token: str):
        user = self.db.users.get(token)
        if user is None:
            raise Exception("invalid JWT")
        return SimpleNamespace(user=user)


class FakeSupabase:
    """In-memory stand-in for supabase.Client."""

    def __init__(self, searches_allowed: int = 3):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self.rpc_calls: list[tuple[str, dict]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self.one_shot: dict[tuple[str, str], tuple[Exception, bool]] = {}
        self.searches_allowed = searches_allowed
        self.searches_used: dict[str, int] = {}
        self.users = {"good-token": SimpleNamespace(id="user-1", email="shopper@example.com")}
        self.auth = FakeAuth(self)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict) -> FakeRpc:
        return FakeRpc(self, name, params)

    def fail(self, target: str, op: str, exc: Optional[Exception] = None) -> None:
        self.failures[(target, op)] = exc or RuntimeError(f"{target} {op} unavailable")

    def fail_once(self, target: str, op: str, exc: Exception, after_commit: bool = False) -> None:
        """Raise exc on the next call only, before or after the write lands."""
        self.one_shot[(target, op)] = (exc, after_commit)

    def check(self, key: tuple[str, str], committed: bool = False) -> None:
        if not committed and key in self.failures:
            raise self.failures[key]
        pending = self.one_shot.get(key)
        if pending is not None and pending[1] == committed:
            del self.one_shot[key]
            raise pending[0]

    def rpc_names(self) -> list[str]:
        return [name for name, _ in self.rpc_calls]


class ScriptedProvider:
    """Provider double returning canned content or raising."""

    def __init__(self, content: Optional[str] = None, error: Optional[Exception] = None,
                 name: ProviderName = ProviderName.MISTRAL):
        self.name = name
        self.content = content
        self.error = error
        self.domains: list[str] = []
        self.closed = False

    async def search(self, domain: str) -> str:
        self.domains.append(domain)
        if self.error is not None:
            raise self.error
        return self.content

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    """Store retries run back to back in tests."""
    for fn in (
        CouponCacheStore._select_fresh_sync,
        CouponCacheStore._upsert_sync,
        QuotaGate._call_sync,
        UsageRecorder._insert_sync,
        QuotaGate._increment_sync,
        UsageRecorder._rpc_sync,
    ):
        monkeypatch.setattr(fn.retry, "sleep", lambda seconds: None)


@pytest.fixture
def supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def cache_store(supabase) -> CouponCacheStore:
    return CouponCacheStore(supabase, table="coupon_cache")
