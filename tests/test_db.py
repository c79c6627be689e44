# tests/test_db.py
import gc

import pytest

import db
from db import NotFoundError, PermissionDeniedError, Query, SERVER_TIMESTAMP, StoreError


def test_add_get_and_server_timestamp(store):
    doc_id = store.add("things", {"name": "x", "created_at": SERVER_TIMESTAMP})
    doc = store.get("things", doc_id)
    assert doc["id"] == doc_id
    assert doc["name"] == "x"
    assert isinstance(doc["created_at"], str) and doc["created_at"]
    assert store.get("other", doc_id) is None


def test_query_where_order_limit_empty_last(store):
    store.add("things", {"k": "a", "n": "b"})
    store.add("things", {"k": "a", "n": ""})
    store.add("things", {"k": "a", "n": "a"})
    store.add("things", {"k": "z", "n": "c"})

    rows = store.query(Query("things", where=("k", "a"), order_by="n"))
    assert [r["n"] for r in rows] == ["a", "b", ""]
    rows = store.query(Query("things", where=("k", "a"), order_by="n", descending=True))
    assert [r["n"] for r in rows] == ["b", "a", ""]
    assert len(store.query(Query("things", limit=2))) == 2


def test_subscription_pushes_after_each_write_and_stops_on_unsubscribe(store):
    seen = []
    sub = store.subscribe(Query("things"), lambda docs: seen.append(len(docs)))
    assert seen == [0]

    doc_id = store.add("things", {"v": 1})
    store.update("things", doc_id, {"v": 2})
    store.add("elsewhere", {"v": 1})
    assert seen == [0, 1, 1]

    sub.unsubscribe()
    store.delete("things", doc_id)
    assert seen == [0, 1, 1]
    assert not sub.active


def test_update_merges_and_missing_document_raises(store):
    doc_id = store.add("things", {"a": 1, "b": 2})
    store.update("things", doc_id, {"b": 3})
    assert store.get("things", doc_id)["a"] == 1
    assert store.get("things", doc_id)["b"] == 3
    with pytest.raises(NotFoundError):
        store.update("things", "nope", {"a": 1})


def test_batch_add_keeps_order(store):
    ids = store.batch_add("things", [{"i": i, "created_at": SERVER_TIMESTAMP} for i in range(5)])
    rows = store.query(Query("things", order_by="created_at", descending=True))
    assert [r["id"] for r in rows] == list(reversed(ids))


def test_permission_errors_are_distinguishable():
    err = db._translate(Exception("attempt to write a readonly database"))
    assert isinstance(err, PermissionDeniedError)
    assert err.code == "permission-denied"
    other = db._translate(Exception("disk I/O error"))
    assert type(other) is StoreError
    assert other.code == "unavailable"


def test_subscription_error_goes_to_on_error(store, monkeypatch):
    def denied(q):
        raise PermissionDeniedError("denied")

    monkeypatch.setattr(store, "query", denied)
    errors, changes = [], []
    store.subscribe(Query("things"), changes.append, errors.append)
    assert changes == []
    assert isinstance(errors[0], PermissionDeniedError)


def test_collected_listener_is_released(store):
    class Listener:
        def __init__(self):
            self.calls = 0

        def on_change(self, docs):
            self.calls += 1

    kept = Listener()
    store.subscribe(Query("things"), kept.on_change)
    gone = Listener()
    store.subscribe(Query("things"), gone.on_change)
    assert len(store._subscriptions) == 2

    del gone
    gc.collect()
    store.add("things", {"n": 1})
    assert len(store._subscriptions) == 1
    assert kept.calls == 2
