"""Tests for the SQLite-backed document store."""

import logging
import random

import pytest

from farmstall.db import connect, ensure_schema
from farmstall.errors import PersistenceError, ValidationError
from farmstall.store import DocumentStore, PushKeyGenerator, join_path, split_path


class TestPaths:
    def test_split_path_ignores_extra_slashes(self):
        assert split_path("/inventory//abc/") == ["inventory", "abc"]
        assert split_path("") == []

    def test_split_path_rejects_forbidden_characters(self):
        with pytest.raises(ValidationError, match="Invalid path segment"):
            split_path("inventory/a.b")

    def test_join_path(self):
        assert join_path("inventory", "abc", "sold") == "inventory/abc/sold"
        assert join_path("/inventory/", "") == "inventory"


class TestReadWrite:
    def test_get_missing_returns_none(self, store):
        assert store.get("inventory") is None
        assert store.get("") is None

    def test_set_and_get_nested(self, store):
        store.set("inventory/a", {"type": "Carrot", "weight": 2.0})

        assert store.get("inventory/a/type") == "Carrot"
        assert store.get("inventory") == {"a": {"type": "Carrot", "weight": 2.0}}
        assert store.get("") == {"inventory": {"a": {"type": "Carrot", "weight": 2.0}}}

    def test_set_replaces_wholesale(self, store):
        store.set("currentBatch", {"type": "Carrot", "costPerKg": 5})
        store.set("currentBatch", {"type": "Onion"})

        assert store.get("currentBatch") == {"type": "Onion"}

    def test_remove_prunes_empty_parents(self, store):
        store.set("inventory/a/type", "Carrot")
        store.remove("inventory/a/type")

        assert store.get("inventory") is None
        assert store.get("") is None

    def test_update_applies_all_paths(self, store):
        store.set("inventory/a", {"sold": False, "inFarmStall": True})
        store.update({"sold": True, "soldDate": "2026-10-19T10:00:00.000+00:00"}, base="inventory/a")

        assert store.get("inventory/a") == {
            "sold": True,
            "inFarmStall": True,
            "soldDate": "2026-10-19T10:00:00.000+00:00",
        }

    def test_update_across_top_level_nodes(self, store):
        store.set("inventory/a", {"type": "Carrot"})
        store.set("currentBatch", {"type": "Carrot"})

        store.update({"inventory": None, "currentBatch": None})

        assert store.get("") is None

    def test_set_root_replaces_everything(self, store):
        store.set("inventory/a", {"type": "Carrot"})
        store.set("", {"currentBatch": {"type": "Onion"}})

        assert store.get("") == {"currentBatch": {"type": "Onion"}}

    def test_set_root_rejects_non_mapping(self, store):
        with pytest.raises(ValidationError):
            store.set("", 5)

    def test_ensure_schema_is_repeatable(self, store, conn):
        store.set("inventory/a", {"type": "Carrot"})

        ensure_schema(conn)

        cols = {r["name"] for r in conn.execute("PRAGMA table_info(nodes)")}
        assert cols == {"key", "value", "updated_at"}
        assert store.get("inventory/a/type") == "Carrot"

    def test_write_failure_raises_persistence_error(self, store, conn):
        conn.execute("DROP TABLE nodes")
        conn.commit()

        with pytest.raises(PersistenceError):
            store.set("inventory/a", {"type": "Carrot"})


class TestPush:
    def test_push_allocates_key_and_writes(self, store):
        key = store.push("inventory", {"type": "Carrot"})

        assert len(key) == 20
        assert store.get(f"inventory/{key}") == {"type": "Carrot"}

    def test_push_without_value_writes_nothing(self, store):
        key = store.push("inventory")

        assert key
        assert store.get("inventory") is None

    def test_keys_sort_in_creation_order_within_one_millisecond(self):
        gen = PushKeyGenerator(clock=lambda: 1_760_000_000.0, rng=random.Random(3))
        keys = [gen() for _ in range(50)]

        assert keys == sorted(keys)
        assert len(set(keys)) == 50

    def test_keys_sort_in_creation_order_over_time(self):
        ticks = iter([1.0, 2.0, 3.5, 100.0])
        gen = PushKeyGenerator(clock=lambda: next(ticks), rng=random.Random(1))
        keys = [gen() for _ in range(4)]

        assert keys == sorted(keys)


class TestSubscriptions:
    def test_listener_gets_current_value_immediately(self, store):
        store.set("inventory/a", {"type": "Carrot"})
        seen = []

        store.subscribe("inventory", seen.append)

        assert seen == [{"a": {"type": "Carrot"}}]

    def test_listener_gets_none_for_empty_path(self, store):
        seen = []
        store.subscribe("inventory", seen.append)

        assert seen == [None]

    def test_listener_notified_on_change_only(self, store):
        seen = []
        store.subscribe("inventory", seen.append)

        store.set("inventory/a", {"type": "Carrot"})
        store.set("currentBatch", {"type": "Onion"})
        store.set("inventory/a", {"type": "Carrot"})

        assert seen == [None, {"a": {"type": "Carrot"}}]

    def test_cancel_stops_delivery(self, store):
        seen = []
        sub = store.subscribe("inventory", seen.append)

        sub.cancel()
        store.set("inventory/a", {"type": "Carrot"})

        assert seen == [None]
        assert sub.active is False

    def test_listener_cannot_mutate_store_state(self, store):
        store.set("inventory/a", {"type": "Carrot"})
        store.subscribe("inventory", lambda value: value["a"].update(type="Changed"))

        assert store.get("inventory/a/type") == "Carrot"

    def test_failing_listener_does_not_undo_write(self, store, caplog):
        def boom(value):
            if value:
                raise RuntimeError("view crashed")

        seen = []
        store.subscribe("inventory", boom)
        store.subscribe("inventory", seen.append)

        with caplog.at_level(logging.ERROR, logger="farmstall.store"):
            store.set("inventory/a", {"type": "Carrot"})

        assert store.get("inventory/a/type") == "Carrot"
        assert seen[-1] == {"a": {"type": "Carrot"}}
        assert "Listener for 'inventory' raised" in caplog.text

    def test_refresh_picks_up_other_process_writes(self, tmp_path):
        db_path = tmp_path / "shared.db"
        conn_a = connect(db_path)
        conn_b = connect(db_path)
        ensure_schema(conn_a)
        try:
            store_a = DocumentStore(conn_a)
            store_b = DocumentStore(conn_b)
            seen = []
            store_a.subscribe("inventory", seen.append)

            store_b.set("inventory/x", {"type": "Melon"})

            assert seen == [None]
            assert store_a.refresh() is True
            assert seen[-1] == {"x": {"type": "Melon"}}
            assert store_a.refresh() is False
        finally:
            conn_a.close()
            conn_b.close()
