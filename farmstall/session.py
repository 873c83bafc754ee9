"""Shared objects for the Streamlit pages."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import streamlit as st

from farmstall.config import Settings, get_settings
from farmstall.db import get_conn
from farmstall.log import configure_logging
from farmstall.services.batches import BatchSlot, BatchWorkflow
from farmstall.services.inventory import InventoryStore
from farmstall.store import DocumentStore

WORKFLOW_SESSION_KEY = "batch_workflow"


@dataclass
class AppContext:
    settings: Settings
    store: DocumentStore
    inventory: InventoryStore
    workflow: BatchWorkflow


@st.cache_resource
def get_store(db_path: Path) -> DocumentStore:
    return DocumentStore(get_conn(db_path))


@st.cache_resource
def get_inventory(db_path: Path) -> InventoryStore:
    # One live mirror per process, shared by every browser session.
    inventory = InventoryStore(get_store(db_path))
    inventory.subscribe()
    return inventory


@st.cache_resource
def get_batch_slot(db_path: Path) -> BatchSlot:
    slot = BatchSlot(get_store(db_path))
    slot.subscribe()
    return slot


def get_workflow(db_path: Path) -> BatchWorkflow:
    # Staged items are per session; the slot is shared.
    wf = st.session_state.get(WORKFLOW_SESSION_KEY)
    if wf is None or wf.slot is not get_batch_slot(db_path):
        wf = BatchWorkflow(get_batch_slot(db_path), get_inventory(db_path))
        st.session_state[WORKFLOW_SESSION_KEY] = wf
    return wf


def bootstrap() -> AppContext:
    settings = get_settings()
    configure_logging(settings)

    store = get_store(settings.db_path)
    inventory = get_inventory(settings.db_path)
    workflow = get_workflow(settings.db_path)

    # Pick up writes from other processes sharing the database file.
    store.refresh()
    return AppContext(settings=settings, store=store, inventory=inventory, workflow=workflow)
