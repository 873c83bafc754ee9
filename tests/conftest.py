"""Pytest configuration and fixtures."""

import itertools

import pytest

from farmstall.db import connect, ensure_schema
from farmstall.errors import PersistenceError
from farmstall.models import InventoryItem
from farmstall.services.batches import BatchSlot, BatchWorkflow
from farmstall.services.inventory import InventoryStore
from farmstall.store import DocumentStore


class FlakyStore(DocumentStore):
    """Document store whose n-th inventory record write fails."""

    def __init__(self, conn, fail_writes=()):
        super().__init__(conn)
        self.fail_writes = set(fail_writes)
        self.item_writes = 0

    def set(self, path, value):
        if path.startswith("inventory/") and value is not None:
            n = self.item_writes
            self.item_writes += 1
            if n in self.fail_writes:
                raise PersistenceError("Simulated write failure.", {"path": path})
        super().set(path, value)


@pytest.fixture
def conn():
    """In-memory SQLite connection with the schema applied."""
    c = connect(":memory:")
    ensure_schema(c)
    yield c
    c.close()


@pytest.fixture
def store(conn):
    return DocumentStore(conn)


@pytest.fixture
def inventory(store):
    """Inventory adapter with a live subscription."""
    inv = InventoryStore(store)
    inv.subscribe()
    yield inv
    inv.close()


@pytest.fixture
def slot(store):
    s = BatchSlot(store)
    s.subscribe()
    yield s
    s.close()


@pytest.fixture
def workflow(slot, inventory):
    return BatchWorkflow(slot, inventory)


@pytest.fixture
def flaky_workflow(conn):
    """Workflow over a store that fails selected item writes; returns (workflow, store)."""

    def _make(fail_writes):
        flaky = FlakyStore(conn, fail_writes)
        inv = InventoryStore(flaky)
        inv.subscribe()
        s = BatchSlot(flaky)
        s.subscribe()
        return BatchWorkflow(s, inv), flaky

    return _make


@pytest.fixture
def make_item():
    """Factory for sold InventoryItems with sensible defaults."""
    ids = itertools.count(1)

    def _make(**overrides):
        fields = {
            "id": f"item-{next(ids)}",
            "type": "Carrot",
            "weight": 1.0,
            "cost_price": 5.0,
            "sale_price": 10.0,
            "in_farm_stall": True,
            "sold": True,
            "date": "2026-10-01T08:00:00.000+00:00",
            "sold_date": "2026-10-01T09:00:00.000+00:00",
            "from_external_batch": False,
        }
        fields.update(overrides)
        return InventoryItem(**fields)

    return _make


@pytest.fixture
def flaky_store(conn):
    """Factory for a FlakyStore over the shared in-memory connection."""

    def _make(fail_writes):
        return FlakyStore(conn, fail_writes)

    return _make
