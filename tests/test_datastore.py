import datetime

import pytest

from datastore import Order, SupabaseDataStore
from errors import DataStoreError

from conftest import FakeClient, register, run


def test_sql_insert_select_update_delete(datastore):
    profile = register(datastore).profile
    [row] = run(datastore.insert("portfolios", [{"user_id": profile.id, "username": "janedoe"}]))
    assert row["theme"] == "modern"
    assert row["is_public"] is True

    updated = run(datastore.update("portfolios", row["id"], {"tagline": "Engineer"}))
    assert updated["tagline"] == "Engineer"

    run(datastore.insert("skills", [
        {"portfolio_id": row["id"], "name": "Go", "category": "b"},
        {"portfolio_id": row["id"], "name": "Py", "category": "a"},
    ]))
    names = [s["name"] for s in run(datastore.select("skills", {"portfolio_id": row["id"]}, order=[Order("category")]))]
    assert names == ["Py", "Go"]

    run(datastore.delete("skills", {"portfolio_id": row["id"]}))
    assert run(datastore.select("skills", {"portfolio_id": row["id"]})) == []


def test_sql_select_one_and_embed(datastore):
    profile = register(datastore).profile
    run(datastore.insert("portfolios", [{"user_id": profile.id, "username": "janedoe"}]))
    row = run(datastore.select_one("portfolios", {"username": "janedoe"}, embed={"profiles": ("full_name",)}))
    assert row["profiles"] == {"full_name": "Jane Doe"}
    assert run(datastore.select_one("portfolios", {"username": "ghost"})) is None


@pytest.mark.parametrize("call", [
    lambda ds: ds.select("nope"),
    lambda ds: ds.select("portfolios", {"bogus": 1}),
    lambda ds: ds.select("skills", embed={"profiles": ("full_name",)}),
    lambda ds: ds.update("portfolios", "missing-id", {"tagline": "x"}),
    lambda ds: ds.insert("skills", [{"portfolio_id": "p", "unknown_column": 1}]),
])
def test_sql_errors_become_datastore_errors(datastore, call):
    with pytest.raises(DataStoreError):
        run(call(datastore))


def test_sql_unique_violation_message_is_verbatim(datastore):
    profile = register(datastore).profile
    run(datastore.insert("portfolios", [{"user_id": profile.id, "username": "janedoe"}]))
    with pytest.raises(DataStoreError) as excinfo:
        run(datastore.insert("portfolios", [{"user_id": "someone-else", "username": "janedoe"}]))
    assert "UNIQUE constraint failed" in excinfo.value.message


# ---------- Supabase backend against a recording fake client ----------

def test_supabase_select_builds_query():
    client = FakeClient(data=[{"id": "1"}])
    store = SupabaseDataStore(client)

    rows = run(store.select(
        "portfolios", {"username": "janedoe", "is_public": True},
        order=[Order("created_at", descending=True)], limit=1,
        embed={"profiles": ("full_name", "email")},
    ))

    assert rows == [{"id": "1"}]
    assert client.executed[0] == [
        ("table", "portfolios"),
        ("select", ("*, profiles(full_name, email)",), {}),
        ("eq", ("username", "janedoe"), {}),
        ("eq", ("is_public", True), {}),
        ("order", ("created_at",), {"desc": True}),
        ("limit", (1,), {}),
    ]


def test_supabase_empty_data_is_empty_list():
    assert run(SupabaseDataStore(FakeClient(data=None)).select("skills")) == []


def test_supabase_update_and_delete():
    client = FakeClient(data=[{"id": "p1", "tagline": "x"}])
    store = SupabaseDataStore(client)

    assert run(store.update("portfolios", "p1", {"tagline": "x"}))["tagline"] == "x"
    run(store.delete("skills", {"portfolio_id": "p1"}))

    assert client.executed[0][1:] == [("update", ({"tagline": "x"},), {}), ("eq", ("id", "p1"), {})]
    assert client.executed[1][1:] == [("delete", (), {}), ("eq", ("portfolio_id", "p1"), {})]


class APIError(Exception):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


def test_supabase_errors_keep_message():
    store = SupabaseDataStore(FakeClient(error=APIError('duplicate key value violates unique constraint "portfolios_username_key"')))
    with pytest.raises(DataStoreError) as excinfo:
        run(store.insert("portfolios", [{"username": "janedoe"}]))
    assert excinfo.value.message.startswith("duplicate key value")
    assert excinfo.value.table == "portfolios"


def test_supabase_sends_timestamps_as_iso_strings():
    client = FakeClient(data=[{"id": "p1"}])
    stamp = datetime.datetime(2024, 5, 1, 12, 30)

    run(SupabaseDataStore(client).update("portfolios", "p1", {"updated_at": stamp}))

    assert client.executed[0][1] == ("update", ({"updated_at": "2024-05-01T12:30:00"},), {})
