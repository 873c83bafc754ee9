from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Optional

from farmstall.models import NewItem, flower_type
from farmstall.services.batches import BATCH_SLOT_PATH
from farmstall.services.inventory import INVENTORY_PATH, InventoryStore
from farmstall.store import DocumentStore, join_path

logger = logging.getLogger(__name__)

# (type, cost per kg, sale price per kg, from external batch)
DEMO_PRODUCE = [
    ("Pumpkin", 8.0, 18.0, False),
    ("Potato", 9.5, 22.0, True),
    ("Carrot", 5.0, 14.0, False),
    ("Tomato", 14.0, 32.0, False),
    ("Cabbage", 6.0, 15.0, True),
]
DEMO_FLOWERS = [("Proteas", 45.0), ("Roses", 35.0)]


def wipe_all(store: DocumentStore) -> None:
    store.update({INVENTORY_PATH: None, BATCH_SLOT_PATH: None})
    logger.info("Wiped inventory and batch slot")


def load_demo_data(inventory: InventoryStore, store: DocumentStore, *, seed: int = 7, now: Optional[datetime] = None) -> int:
    """
    Seed a spread of produce and flower items over the last week.

    Roughly a third end up in the farm stall and a third sold on an earlier
    day, so the dashboard and reports have something to show.
    """
    rng = random.Random(seed)
    now = now or datetime.now(timezone.utc)
    created = 0

    for i in range(18):
        item_type, cost_per_kg, price_per_kg, external = DEMO_PRODUCE[i % len(DEMO_PRODUCE)]
        weight = round(rng.uniform(0.8, 6.0), 2)
        day = now - timedelta(days=rng.randint(1, 6), hours=rng.randint(0, 8))
        item = inventory.add_item(
            NewItem(
                type=item_type,
                weight=weight,
                cost_price=weight * cost_per_kg,
                sale_price=round(weight * price_per_kg, 0),
                date=day.isoformat(timespec="milliseconds"),
                from_external_batch=external,
            )
        )
        created += 1
        _place(store, item.id, rng, day)

    for variety, price_per_bunch in DEMO_FLOWERS:
        for _ in range(3):
            bunches = rng.randint(1, 4)
            day = now - timedelta(days=rng.randint(1, 6))
            item = inventory.add_item(
                NewItem(
                    type=flower_type(variety),
                    weight=float(bunches),
                    cost_price=0.0,
                    sale_price=bunches * price_per_bunch,
                    date=day.isoformat(timespec="milliseconds"),
                )
            )
            created += 1
            _place(store, item.id, rng, day)

    logger.info("Loaded %d demo item(s)", created)
    return created


def _place(store: DocumentStore, item_id: str, rng: random.Random, created: datetime) -> None:
    # Back-dated sales bypass mark_as_sold, which always stamps "now".
    roll = rng.random()
    base = join_path(INVENTORY_PATH, item_id)
    if roll < 0.33:
        store.update({"inFarmStall": True}, base=base)
    elif roll < 0.66:
        sold_at = created + timedelta(hours=rng.randint(1, 20))
        store.update(
            {"inFarmStall": True, "sold": True, "soldDate": sold_at.isoformat(timespec="milliseconds")},
            base=base,
        )
