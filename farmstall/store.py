"""
Realtime document store backed by SQLite.

The application state is one JSON tree addressed by slash-separated paths
("inventory/<key>/sold", "currentBatch"). Clients read and write paths and
register listeners; every committed write notifies the listeners whose value
changed. Writes made by another process are picked up by ``refresh()``.

Each top-level child of the root is one row in ``nodes``; a write loads the
affected rows, edits them in memory and saves them back inside a single
``BEGIN IMMEDIATE`` transaction.
"""

from __future__ import annotations

import copy
import json
import logging
import random
import sqlite3
import threading
import time
from typing import Any, Callable, Mapping, Optional

from farmstall.db import q
from farmstall.errors import PersistenceError, ValidationError
from farmstall.utils import iso_now

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"
_FORBIDDEN_KEY_CHARS = set(".#$[]")
_UNSET = object()


def split_path(path: str) -> list[str]:
    parts = [p for p in str(path or "").strip().split("/") if p]
    for p in parts:
        if _FORBIDDEN_KEY_CHARS & set(p):
            raise ValidationError(f"Invalid path segment: {p!r}", {"path": path})
    return parts


def join_path(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def _prune(value: Any) -> Any:
    # Empty mappings and nulls do not exist in the tree.
    if isinstance(value, Mapping):
        out = {}
        for k, v in value.items():
            v = _prune(v)
            if v is not None:
                out[str(k)] = v
        return out or None
    return value


def _assign(node: Any, parts: list[str], value: Any) -> Any:
    if not parts:
        return _prune(value)
    base = dict(node) if isinstance(node, dict) else {}
    child = _assign(base.get(parts[0]), parts[1:], value)
    if child is None:
        base.pop(parts[0], None)
    else:
        base[parts[0]] = child
    return base or None


def _descend(node: Any, parts: list[str]) -> Any:
    for p in parts:
        if not isinstance(node, dict):
            return None
        node = node.get(p)
    return node


class PushKeyGenerator:
    """
    Generates 20-character keys that sort in creation order.

    8 characters encode the millisecond timestamp, 12 are random. Keys made
    within the same millisecond increment the random part so they still sort.
    """

    def __init__(self, clock: Callable[[], float] = time.time, rng: Optional[random.Random] = None):
        self._clock = clock
        self._rng = rng or random.SystemRandom()
        self._last_ms = -1
        self._last_rand = [0] * 12
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            now = int(self._clock() * 1000)
            duplicate = now <= self._last_ms
            if duplicate:
                now = self._last_ms
            self._last_ms = now

            ts_chars = []
            for _ in range(8):
                ts_chars.append(PUSH_CHARS[now % 64])
                now //= 64
            prefix = "".join(reversed(ts_chars))

            if not duplicate:
                self._last_rand = [self._rng.randrange(64) for _ in range(12)]
            else:
                i = 11
                while i >= 0 and self._last_rand[i] == 63:
                    self._last_rand[i] = 0
                    i -= 1
                if i >= 0:
                    self._last_rand[i] += 1

            return prefix + "".join(PUSH_CHARS[n] for n in self._last_rand)


class Subscription:
    """Handle returned by ``DocumentStore.subscribe``; ``cancel()`` stops delivery."""

    def __init__(self, store: "DocumentStore", path: str, listener: Listener):
        self._store = store
        self.path = path
        self.listener = listener
        self.last_value: Any = _UNSET
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._store._unsubscribe(self)

    def __repr__(self) -> str:
        return f"Subscription(path={self.path!r}, active={self.active})"


class DocumentStore:
    def __init__(self, conn: sqlite3.Connection, *, key_generator: Optional[Callable[[], str]] = None):
        self._conn = conn
        self._lock = threading.RLock()
        self._subscriptions: list[Subscription] = []
        self._next_key = key_generator or PushKeyGenerator()
        self._revision = self._read_revision()

    # -------------------------
    # Reads
    # -------------------------

    def _read_revision(self) -> int:
        try:
            rows = q(self._conn, "SELECT revision FROM store_meta WHERE id=1")
        except sqlite3.Error as e:
            raise PersistenceError("Could not read store revision.", {"error": str(e)}) from e
        return int(rows[0]["revision"]) if rows else 0

    def _read_node(self, key: str) -> Any:
        rows = q(self._conn, "SELECT value FROM nodes WHERE key=?", (key,))
        return json.loads(rows[0]["value"]) if rows else None

    def _read_root(self) -> Optional[dict]:
        rows = q(self._conn, "SELECT key, value FROM nodes ORDER BY key")
        return {r["key"]: json.loads(r["value"]) for r in rows} or None

    def get(self, path: str = "") -> Any:
        """Current value at ``path`` (``None`` when absent)."""
        parts = split_path(path)
        with self._lock:
            try:
                if not parts:
                    return self._read_root()
                return _descend(self._read_node(parts[0]), parts[1:])
            except (sqlite3.Error, ValueError) as e:
                raise PersistenceError(f"Could not read '{path}'.", {"path": path, "error": str(e)}) from e

    # -------------------------
    # Writes
    # -------------------------

    def set(self, path: str, value: Any) -> None:
        """Replace the value at ``path`` wholesale; ``None`` deletes it."""
        self._write([(split_path(path), value)])

    def update(self, updates: Mapping[str, Any], base: str = "") -> None:
        """Apply several path -> value replacements (relative to ``base``) in one transaction."""
        base_parts = split_path(base)
        changes = [(base_parts + split_path(p), v) for p, v in updates.items()]
        if changes:
            self._write(changes)

    def push(self, path: str, value: Any = None) -> str:
        """Allocate a new ordered key under ``path``; write ``value`` there if given."""
        key = self._next_key()
        if value is not None:
            self.set(join_path(path, key), value)
        return key

    def remove(self, path: str) -> None:
        self.set(path, None)

    def _write(self, changes: list[tuple[list[str], Any]]) -> None:
        with self._lock:
            try:
                with self._conn:
                    self._conn.execute("BEGIN IMMEDIATE")
                    touched: dict[str, Any] = {}
                    for parts, value in changes:
                        if not parts:
                            if value is not None and not isinstance(value, Mapping):
                                raise ValidationError("The root can only hold a mapping.")
                            for r in q(self._conn, "SELECT key FROM nodes"):
                                touched[r["key"]] = None
                            for k, v in (value or {}).items():
                                touched[str(k)] = _prune(v)
                            continue
                        key = parts[0]
                        current = touched[key] if key in touched else self._read_node(key)
                        touched[key] = _assign(current, parts[1:], value)

                    ts = iso_now()
                    for key, node in touched.items():
                        if node is None:
                            self._conn.execute("DELETE FROM nodes WHERE key=?", (key,))
                        else:
                            self._conn.execute(
                                """
                                INSERT INTO nodes (key, value, updated_at) VALUES (?, ?, ?)
                                ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
                                """,
                                (key, json.dumps(node, separators=(",", ":")), ts),
                            )
                    self._conn.execute("UPDATE store_meta SET revision = revision + 1 WHERE id=1")
            except ValidationError:
                raise
            except (sqlite3.Error, TypeError, ValueError) as e:
                paths = ["/".join(parts) for parts, _ in changes]
                raise PersistenceError("Write failed.", {"paths": paths, "error": str(e)}) from e

            self._revision = self._read_revision()
            self._dispatch()

    # -------------------------
    # Listeners
    # -------------------------

    def subscribe(self, path: str, listener: Listener) -> Subscription:
        """
        Register ``listener`` for the value at ``path``.

        The listener is called immediately with the current value and again
        after every write that changes it. Cancel the returned handle on teardown.
        """
        split_path(path)
        sub = Subscription(self, path, listener)
        with self._lock:
            self._subscriptions.append(sub)
            try:
                self._deliver(sub)
            except PersistenceError:
                self._subscriptions.remove(sub)
                sub.active = False
                raise
        logger.debug("Subscribed to '%s'", path)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)
        logger.debug("Unsubscribed from '%s'", sub.path)

    def refresh(self) -> bool:
        """Notify listeners if another process committed a write since the last look."""
        with self._lock:
            revision = self._read_revision()
            if revision == self._revision:
                return False
            self._revision = revision
            self._dispatch()
            return True

    def _dispatch(self) -> None:
        for sub in list(self._subscriptions):
            if sub.active:
                self._deliver(sub)

    def _deliver(self, sub: Subscription) -> None:
        value = self.get(sub.path)
        if sub.last_value is not _UNSET and value == sub.last_value:
            return
        sub.last_value = value
        try:
            sub.listener(copy.deepcopy(value))
        except Exception:
            # The write is already committed; other listeners still run.
            logger.exception("Listener for '%s' raised", sub.path)
