from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from farmstall.errors import ValidationError
from farmstall.models import InventoryItem, NewItem
from farmstall.store import DocumentStore, Subscription, join_path
from farmstall.utils import iso_now, positive_number

logger = logging.getLogger(__name__)

INVENTORY_PATH = "inventory"

SnapshotListener = Callable[[list[InventoryItem]], None]


def _validate_candidate(candidate: NewItem) -> None:
    if not str(candidate.type or "").strip():
        raise ValidationError("Item type is required.")
    positive_number(candidate.weight, "Weight")
    positive_number(candidate.sale_price, "Sale price")
    positive_number(candidate.cost_price, "Cost price", allow_zero=True)


class InventoryStore:
    """
    In-memory mirror of the ``inventory`` collection plus every mutation on it.

    The mirror only changes when the subscription delivers a snapshot, so a
    mutation is visible in ``inventory`` once the store has committed it.
    """

    def __init__(self, store: DocumentStore, path: str = INVENTORY_PATH):
        self._store = store
        self._path = path
        self._items: dict[str, InventoryItem] = {}
        self._subscription: Optional[Subscription] = None
        self._listeners: list[SnapshotListener] = []

    # -------------------------
    # Subscription
    # -------------------------

    def subscribe(self) -> Subscription:
        if self._subscription is not None and self._subscription.active:
            return self._subscription
        self._subscription = self._store.subscribe(self._path, self._on_snapshot)
        return self._subscription

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _on_snapshot(self, value: Any) -> None:
        records = value if isinstance(value, dict) else {}
        self._items = {
            str(key): InventoryItem.from_record(key, rec)
            for key, rec in sorted(records.items())
            if isinstance(rec, dict)
        }
        logger.debug("Inventory snapshot: %d item(s)", len(self._items))
        snapshot = self.inventory
        for listener in list(self._listeners):
            listener(snapshot)

    # -------------------------
    # Views over the snapshot
    # -------------------------

    @property
    def inventory(self) -> list[InventoryItem]:
        return list(self._items.values())

    @property
    def sales(self) -> list[InventoryItem]:
        return [i for i in self._items.values() if i.sold]

    @property
    def storage_items(self) -> list[InventoryItem]:
        return [i for i in self._items.values() if not i.sold and not i.in_farm_stall]

    @property
    def farm_stall_items(self) -> list[InventoryItem]:
        return [i for i in self._items.values() if i.in_farm_stall and not i.sold]

    def get(self, item_id: str) -> Optional[InventoryItem]:
        return self._items.get(str(item_id))

    # -------------------------
    # Mutations
    # -------------------------

    def _item_path(self, item_id: str) -> str:
        item_id = str(item_id or "").strip()
        if not item_id:
            raise ValidationError("Item id is required.")
        return join_path(self._path, item_id)

    def _fetch(self, item_id: str) -> Optional[InventoryItem]:
        # Read through to the store: the mirror may lag behind other clients.
        record = self._store.get(self._item_path(item_id))
        if not isinstance(record, dict):
            logger.debug("Item %s not found; ignoring", item_id)
            return None
        return InventoryItem.from_record(item_id, record)

    def add_item(self, candidate: NewItem) -> InventoryItem:
        _validate_candidate(candidate)
        key = self._store.push(self._path)
        item = candidate.to_item(key)
        self._store.set(join_path(self._path, key), item.to_record())
        logger.info("Added %s %.2f %s (%s)", item.type, item.weight, item.unit, key)
        return item

    def _set_stall_flag(self, item_id: str, in_farm_stall: bool) -> None:
        item = self._fetch(item_id)
        if item is None:
            return
        if item.sold:
            logger.debug("Item %s is sold; stall placement unchanged", item_id)
            return
        self._store.update({"inFarmStall": in_farm_stall}, base=self._item_path(item_id))
        logger.info("Moved %s to %s", item_id, "farm stall" if in_farm_stall else "storage")

    def move_to_farm_stall(self, item_id: str) -> None:
        self._set_stall_flag(item_id, True)

    def move_to_inventory(self, item_id: str) -> None:
        self._set_stall_flag(item_id, False)

    def mark_as_sold(self, item_id: str) -> None:
        item = self._fetch(item_id)
        if item is None or item.sold:
            return
        self._store.update({"sold": True, "soldDate": iso_now()}, base=self._item_path(item_id))
        logger.info("Sold %s (%s) for %.2f", item_id, item.type, item.sale_price)

    def remove_from_inventory(self, item_id: str) -> None:
        self._store.remove(self._item_path(item_id))
        logger.info("Removed %s", item_id)

    def edit_item(
        self,
        item_id: str,
        *,
        weight: Optional[float] = None,
        sale_price: Optional[float] = None,
    ) -> Optional[InventoryItem]:
        if weight is not None:
            weight = positive_number(weight, "Weight")
        if sale_price is not None:
            sale_price = positive_number(sale_price, "Sale price")

        item = self._fetch(item_id)
        if item is None:
            return None
        if item.sold:
            raise ValidationError("Sold items cannot be edited.", {"id": item_id})

        edited = item.with_edits(weight=weight, sale_price=sale_price)
        self._store.update(
            {"weight": edited.weight, "salePrice": edited.sale_price, "costPrice": edited.cost_price},
            base=self._item_path(item_id),
        )
        logger.info("Edited %s: weight %.2f, sale %.2f, cost %.2f", item_id, edited.weight, edited.sale_price, edited.cost_price)
        return edited
