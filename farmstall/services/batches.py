from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Optional

from farmstall.errors import BatchStateError, PartialBatchError, PersistenceError, ValidationError
from farmstall.models import Batch, BatchState, BatchSummary, InventoryItem, NewItem, StagedItem, flower_type
from farmstall.services.inventory import InventoryStore
from farmstall.store import DocumentStore, Subscription
from farmstall.utils import iso_now, positive_number

logger = logging.getLogger(__name__)

BATCH_SLOT_PATH = "currentBatch"


def _temp_id() -> str:
    return f"temp-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}"


class BatchSlot:
    """
    The single shared "batch in progress" record.

    An empty slot is IDLE; a written slot carries ``state: OPEN`` and the
    batch descriptor. Every client sees the same slot, so only one intake can
    be open at a time. There is no lock: two clients starting a batch at the
    same moment resolve by last write wins.
    """

    def __init__(self, store: DocumentStore, path: str = BATCH_SLOT_PATH):
        self._store = store
        self._path = path
        self._batch: Optional[Batch] = None
        self._subscription: Optional[Subscription] = None

    def subscribe(self) -> Subscription:
        if self._subscription is not None and self._subscription.active:
            return self._subscription
        self._subscription = self._store.subscribe(self._path, self._on_value)
        return self._subscription

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def _on_value(self, value: Any) -> None:
        self._batch = self._parse(value)

    @staticmethod
    def _parse(value: Any) -> Optional[Batch]:
        if not isinstance(value, dict) or value.get("state", BatchState.OPEN.value) != BatchState.OPEN.value:
            return None
        return Batch.from_record(value)

    @property
    def batch(self) -> Optional[Batch]:
        """Last value delivered by the subscription (reads through when not subscribed)."""
        if self._subscription is None or not self._subscription.active:
            return self.read()
        return self._batch

    @property
    def state(self) -> BatchState:
        return BatchState.OPEN if self.batch is not None else BatchState.IDLE

    def read(self) -> Optional[Batch]:
        return self._parse(self._store.get(self._path))

    def open(self, batch: Batch) -> None:
        self._store.set(self._path, batch.to_record())

    def clear(self) -> None:
        self._store.set(self._path, None)


class BatchWorkflow:
    """
    One client's side of the intake workflow.

    Staged items live only in this object until ``finish_batch`` persists
    them. They belong to the batch identified by its ``opened_at`` stamp; if
    the shared slot is cleared or replaced by another client the staged items
    are dropped on the next call.
    """

    def __init__(self, slot: BatchSlot, inventory: InventoryStore):
        self.slot = slot
        self.inventory = inventory
        self._staged: list[StagedItem] = []
        self._batch_token: Optional[str] = None

    def _sync(self) -> Optional[Batch]:
        batch = self.slot.batch
        token = batch.opened_at if batch is not None else None
        if token != self._batch_token:
            if self._staged:
                logger.warning(
                    "Batch slot changed by another client; discarding %d staged item(s)", len(self._staged)
                )
                self._staged = []
            self._batch_token = token
        return batch

    def _require_open(self) -> Batch:
        batch = self._sync()
        if batch is None:
            raise BatchStateError("No active batch. Start a new batch first.")
        return batch

    # -------------------------
    # Read accessors
    # -------------------------

    @property
    def state(self) -> BatchState:
        return BatchState.OPEN if self._sync() is not None else BatchState.IDLE

    @property
    def batch(self) -> Optional[Batch]:
        return self._sync()

    @property
    def staged_items(self) -> list[StagedItem]:
        self._sync()
        return list(self._staged)

    @property
    def summary(self) -> BatchSummary:
        return BatchSummary.from_items(self.staged_items)

    # -------------------------
    # Transitions
    # -------------------------

    def start_batch(self, item_type: str, cost_per_kg: float, from_external_batch: bool = False) -> Batch:
        item_type = str(item_type or "").strip()
        if not item_type:
            raise ValidationError("Please select a produce type.")
        cost = positive_number(cost_per_kg, "Cost per kg", allow_zero=True)

        # Fresh read: the mirror may not have seen another client's batch yet.
        if self.slot.read() is not None:
            raise BatchStateError("A batch is already in progress. Finish or cancel it first.")

        batch = Batch(
            type=item_type,
            cost_per_kg=cost,
            from_external_batch=bool(from_external_batch),
            opened_at=iso_now(),
        )
        self.slot.open(batch)
        self._staged = []
        self._batch_token = batch.opened_at
        logger.info("Started batch %s at %.2f/kg (external=%s)", batch.type, batch.cost_per_kg, batch.from_external_batch)
        return batch

    def start_flower_entry(
        self,
        bunches: float,
        price_per_bunch: float,
        variety: Optional[str] = None,
        from_external_batch: bool = False,
    ) -> InventoryItem:
        """
        Add cut flowers straight to inventory.

        Flowers are counted in bunches and carry no cost, so they skip the
        weighing batch entirely: one item, ``weight`` = bunches,
        ``cost_price`` = 0, ``sale_price`` = bunches * price per bunch.
        """
        n = positive_number(bunches, "Bunches")
        price = positive_number(price_per_bunch, "Price per bunch")
        candidate = NewItem(
            type=flower_type(variety),
            weight=n,
            cost_price=0.0,
            sale_price=n * price,
            from_external_batch=bool(from_external_batch),
        )
        return self.inventory.add_item(candidate)

    def stage_item(self, weight: float, sale_price: float) -> StagedItem:
        batch = self._require_open()
        w = positive_number(weight, "Weight")
        sp = positive_number(sale_price, "Sale price")

        item = StagedItem(
            temp_id=_temp_id(),
            type=batch.type,
            weight=w,
            cost_price=w * batch.cost_per_kg,
            sale_price=sp,
            date=iso_now(),
            from_external_batch=batch.from_external_batch,
        )
        self._staged.append(item)
        logger.debug("Staged %.2f kg %s at %.2f", w, batch.type, sp)
        return item

    def remove_staged_item(self, temp_id: str) -> bool:
        self._require_open()
        before = len(self._staged)
        self._staged = [i for i in self._staged if i.temp_id != temp_id]
        return len(self._staged) != before

    def finish_batch(self) -> list[InventoryItem]:
        """
        Persist every staged item, then clear the batch slot.

        Items are written one by one. If some fail, the ones that made it are
        dropped from the staged list, the failures stay staged, the slot stays
        open and ``PartialBatchError`` names both. A repeat call only writes
        what is still staged.
        """
        batch = self._require_open()
        if not self._staged:
            raise ValidationError("Empty batch. Please add at least one item to the batch.")

        persisted: list[InventoryItem] = []
        failed: list[int] = []
        remaining: list[StagedItem] = []
        last_error: Optional[PersistenceError] = None

        for idx, staged in enumerate(self._staged):
            try:
                persisted.append(self.inventory.add_item(staged.to_new_item()))
            except PersistenceError as e:
                logger.error("Could not persist staged item %d (%s): %s", idx, staged.temp_id, e.message)
                failed.append(idx)
                remaining.append(staged)
                last_error = e

        if failed:
            self._staged = remaining
            if not persisted:
                raise PersistenceError(
                    "Failed to complete batch. No items were saved.",
                    {"failed_indices": failed},
                ) from last_error
            raise PartialBatchError(
                f"Saved {len(persisted)} item(s) but {len(failed)} failed. Finish the batch again to retry.",
                persisted_ids=[i.id for i in persisted],
                failed_indices=failed,
            ) from last_error

        self._staged = []
        try:
            self.slot.clear()
        except PersistenceError as e:
            logger.error("Batch %s saved but the slot could not be cleared: %s", batch.type, e.message)
            raise PartialBatchError(
                f"All {len(persisted)} item(s) were saved but the batch is still open. Cancel it to start a new one.",
                persisted_ids=[i.id for i in persisted],
                failed_indices=[],
            ) from e
        self._batch_token = None
        logger.info("Finished batch %s: %d item(s) added", batch.type, len(persisted))
        return persisted

    def cancel_batch(self, confirmed: bool = False) -> None:
        batch = self._require_open()
        if self._staged and not confirmed:
            raise ValidationError(
                f"Cancelling discards {len(self._staged)} staged item(s). Confirm to continue.",
                {"staged": len(self._staged)},
            )
        self.slot.clear()
        discarded = len(self._staged)
        self._staged = []
        self._batch_token = None
        logger.info("Cancelled batch %s (%d staged item(s) discarded)", batch.type, discarded)
