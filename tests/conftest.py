import asyncio
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DATASTORE_BACKEND"] = "sql"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["LOGIN_RATE_LIMIT"] = "1000/minute"

import pytest

from auth import AuthProvider
from database import Base, SessionLocal, engine, init_db
from datastore import SqlDataStore
from errors import DataStoreError
from session_store import SessionStore


@pytest.fixture(autouse=True)
def fresh_db():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def datastore():
    return SqlDataStore(SessionLocal)


class FlakyDataStore(SqlDataStore):
    """SQL store whose selected operations fail once per table."""

    def __init__(self, fail_select=(), fail_insert=(), fail_delete=()):
        super().__init__(SessionLocal)
        self.fail_select = set(fail_select)
        self.fail_insert = set(fail_insert)
        self.fail_delete = set(fail_delete)

    async def select(self, table, filters=None, order=None, limit=None, embed=None):
        if table in self.fail_select:
            self.fail_select.discard(table)
            raise DataStoreError(f"select on {table} failed", table)
        return await super().select(table, filters, order, limit, embed)

    async def insert(self, table, rows):
        if table in self.fail_insert:
            self.fail_insert.discard(table)
            raise DataStoreError(f"insert into {table} failed", table)
        return await super().insert(table, rows)

    async def delete(self, table, filters):
        if table in self.fail_delete:
            self.fail_delete.discard(table)
            raise DataStoreError(f"delete from {table} failed", table)
        return await super().delete(table, filters)


# Stand-in for supabase.Client that records each builder chain it executes.
class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.calls = [("table", table)]

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return method

    def execute(self):
        self.client.executed.append(self.calls)
        if self.client.error:
            raise self.client.error
        return FakeResponse(self.client.data)


class FakeClient:
    def __init__(self, data=None, error=None):
        self.data = data
        self.error = error
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)


def run(coro):
    return asyncio.run(coro)


def make_store(datastore, token=None) -> SessionStore:
    store = SessionStore(AuthProvider(SessionLocal, token=token), datastore)
    run(store.initialize())
    return store


def register(datastore, email="jane@example.com", password="secret123",
             full_name="Jane Doe", role="student") -> SessionStore:
    store = make_store(datastore)
    run(store.sign_up(email, password, full_name, role))
    return store
