# tests/test_database.py
# Store contract tests, run against both the in-memory and the Redis backend

from datetime import timedelta

import pytest

from pasteburn.database import InMemoryPasteStore, Status, connect_store
from pasteburn.errors import ConflictError, StorageFullError

from conftest import START, make_paste


def test_insert_and_get(store):
    total = store.insert(make_paste("abc", expires_in=60, max_views=3, is_public=False))
    assert total == 1

    paste = store.get("abc")
    assert paste.content == "hello"
    assert paste.created_at == START
    assert paste.expires_at == START + timedelta(seconds=60)
    assert paste.max_views == 3
    assert paste.remaining_views == 3
    assert paste.view_count == 0
    assert store.exists("abc")
    assert store.get("missing") is None
    assert not store.exists("missing")


def test_insert_duplicate_token_conflicts(store):
    store.insert(make_paste("dup", content="first"))
    with pytest.raises(ConflictError):
        store.insert(make_paste("dup", content="second"))
    assert store.get("dup").content == "first"
    assert store.count_total() == 1


def test_insert_rejects_when_paste_limit_reached(store):
    store.insert(make_paste("a"), max_pastes=2)
    store.insert(make_paste("b"), max_pastes=2)
    with pytest.raises(StorageFullError):
        store.insert(make_paste("c"), max_pastes=2)
    assert store.exists("a") and store.exists("b")


def test_insert_rejects_when_total_length_exceeded(store):
    store.insert(make_paste("a", content="x" * 6), max_total_length=10)
    with pytest.raises(StorageFullError):
        store.insert(make_paste("b", content="y" * 5), max_total_length=10)
    store.delete("a")
    store.insert(make_paste("b", content="y" * 5), max_total_length=10)


def test_decrement_remaining_views_deletes_at_zero(store):
    store.insert(make_paste("burn", max_views=2))
    assert store.decrement_remaining_views("burn") == 1
    assert store.get("burn").remaining_views == 1
    assert store.decrement_remaining_views("burn") == 0
    assert store.get("burn") is None
    assert store.decrement_remaining_views("burn") is None


def test_decrement_remaining_views_ignores_unlimited(store):
    store.insert(make_paste("free"))
    assert store.decrement_remaining_views("free") is None
    assert store.exists("free")


def test_consume_view_counts_and_burns(store):
    store.insert(make_paste("once", max_views=1))
    outcome = store.consume_view("once", START)
    assert outcome.status is Status.OK
    assert outcome.paste.content == "hello"
    assert outcome.paste.remaining_views == 0
    assert outcome.paste.view_count == 1
    assert store.get("once") is None
    assert store.consume_view("once", START).status is Status.MISSING


def test_consume_view_unlimited_increments_view_count(store):
    store.insert(make_paste("free"))
    for _ in range(3):
        store.consume_view("free", START)
    assert store.get("free").view_count == 3
    assert store.get("free").remaining_views is None


def test_consume_view_reports_expired(store):
    store.insert(make_paste("old", expires_in=60))
    outcome = store.consume_view("old", START + timedelta(seconds=60))
    assert outcome.status is Status.EXPIRED
    assert outcome.paste is None


def test_renew_reset_and_extend(store):
    store.insert(make_paste("r", expires_in=3600))
    now = START + timedelta(seconds=600)

    outcome = store.renew("r", now, 60)
    assert outcome.status is Status.OK
    assert outcome.expires_at == now + timedelta(seconds=60)
    assert store.get("r").duration_seconds == 60

    outcome = store.renew("r", now, 60, policy="extend")
    assert outcome.expires_at == now + timedelta(seconds=120)
    assert store.get("r").expires_at == now + timedelta(seconds=120)


def test_renew_statuses(store):
    store.insert(make_paste("never"))
    store.insert(make_paste("old", expires_in=10))
    assert store.renew("never", START, 60).status is Status.NO_EXPIRY
    assert store.renew("old", START + timedelta(seconds=10), 60).status is Status.EXPIRED
    assert store.renew("missing", START, 60).status is Status.MISSING


def test_delete(store):
    store.insert(make_paste("gone", is_public=True))
    assert store.delete("gone") is True
    assert store.delete("gone") is False
    assert store.list_public(10, 0, START) == []


def test_delete_expired(store):
    store.insert(make_paste("short", expires_in=10, is_public=True))
    store.insert(make_paste("long", expires_in=1000, is_public=True))
    store.insert(make_paste("forever", is_public=True))

    assert store.delete_expired(START + timedelta(seconds=5)) == 0
    assert store.delete_expired(START + timedelta(seconds=10)) == 1
    assert store.get("short") is None
    assert store.delete_expired(START + timedelta(seconds=10)) == 0
    assert store.count_live(START + timedelta(seconds=10)) == 2


def test_delete_expired_respects_limit(store):
    for i in range(5):
        store.insert(make_paste(f"t{i}", expires_in=10))
    later = START + timedelta(seconds=20)
    assert store.delete_expired(later, limit=2) == 2
    assert store.delete_expired(later, limit=10) == 3


def test_list_public_newest_first_and_paged(store):
    for i in range(5):
        store.insert(make_paste(f"p{i}", is_public=True, created_at=START + timedelta(seconds=i)))
    store.insert(make_paste("private", created_at=START + timedelta(seconds=10)))

    now = START + timedelta(seconds=20)
    first = store.list_public(limit=2, offset=0, now=now)
    second = store.list_public(limit=2, offset=2, now=now)
    assert [p.token for p in first] == ["p4", "p3"]
    assert [p.token for p in second] == ["p2", "p1"]
    assert store.count_public(now) == 5


def test_list_public_skips_expired_rows_before_sweep(store):
    store.insert(make_paste("fresh", is_public=True, expires_in=100))
    store.insert(make_paste("stale", is_public=True, expires_in=10))
    now = START + timedelta(seconds=50)
    assert [p.token for p in store.list_public(10, 0, now)] == ["fresh"]
    assert store.count_public(now) == 1
    assert store.count_live(now) == 1


def test_count_public_follows_renewal_and_deletion(store):
    store.insert(make_paste("renewed", is_public=True, expires_in=10))
    store.insert(make_paste("lapsed", is_public=True, expires_in=10))
    store.insert(make_paste("forever", is_public=True))
    store.insert(make_paste("hidden", expires_in=10))

    store.renew("renewed", START + timedelta(seconds=5), 100)
    later = START + timedelta(seconds=50)
    assert store.count_public(later) == 2

    store.delete("forever")
    assert store.count_public(later) == 1
    store.delete_expired(later)
    assert store.count_public(later) == 1
    assert store.count_public(START + timedelta(seconds=200)) == 0


def test_count_total_survives_deletion(store):
    store.insert(make_paste("a", expires_in=10))
    store.insert(make_paste("b", max_views=1))
    store.consume_view("b", START)
    store.delete_expired(START + timedelta(seconds=60))
    assert store.count_total() == 2
    assert store.count_live(START + timedelta(seconds=60)) == 0


def test_ping(store):
    assert store.ping() is True


def test_connect_store_falls_back_on_malformed_url():
    store = connect_store("not-a-redis-url", prefix="test")
    assert isinstance(store, InMemoryPasteStore)
    assert store.using_fallback is True
    assert store.ping() is True
