"""
Shapes of inventory items and the intake batch.

Records in the document store use camelCase keys (``costPrice``,
``inFarmStall``); the dataclasses here use snake_case and convert at the
edges with ``from_record`` / ``to_record``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from farmstall.utils import FLOWER_PREFIX, is_flower_type, iso_now, safe_div

PRODUCE_TYPES = ["Pumpkin", "Melon", "Potato", "Carrot", "Onion", "Tomato", "Cucumber", "Cabbage", "Other"]

SEGMENT_CUT_FLOWERS = "Cut Flowers"
SEGMENT_EXTERNAL = "External Produce"
SEGMENT_FARM = "Feel Good Farm"
SEGMENTS = [SEGMENT_CUT_FLOWERS, SEGMENT_EXTERNAL, SEGMENT_FARM]


def _float(v: Any, default: float = 0.0) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def unit_for(item_type: str) -> str:
    return "bunches" if is_flower_type(item_type) else "kg"


def flower_type(variety: Optional[str] = None) -> str:
    v = str(variety or "").strip()
    return f"{FLOWER_PREFIX} - {v}" if v else FLOWER_PREFIX


def segment_for(item_type: str, from_external_batch: bool) -> str:
    if is_flower_type(item_type):
        return SEGMENT_CUT_FLOWERS
    if from_external_batch:
        return SEGMENT_EXTERNAL
    return SEGMENT_FARM


@dataclass(frozen=True)
class InventoryItem:
    id: str
    type: str
    weight: float
    cost_price: float
    sale_price: float
    in_farm_stall: bool = False
    sold: bool = False
    date: str = ""
    sold_date: Optional[str] = None
    from_external_batch: bool = False

    @property
    def is_flower(self) -> bool:
        return is_flower_type(self.type)

    @property
    def unit(self) -> str:
        return unit_for(self.type)

    @property
    def profit(self) -> float:
        return self.sale_price - self.cost_price

    @property
    def segment(self) -> str:
        return segment_for(self.type, self.from_external_batch)

    @property
    def location(self) -> str:
        if self.sold:
            return "Sold"
        return "Farm Stall" if self.in_farm_stall else "Storage"

    @classmethod
    def from_record(cls, item_id: str, record: Mapping[str, Any]) -> "InventoryItem":
        sold_date = record.get("soldDate")
        return cls(
            id=str(item_id),
            type=str(record.get("type") or ""),
            weight=_float(record.get("weight")),
            cost_price=_float(record.get("costPrice")),
            sale_price=_float(record.get("salePrice")),
            in_farm_stall=bool(record.get("inFarmStall", False)),
            sold=bool(record.get("sold", False)),
            date=str(record.get("date") or ""),
            sold_date=str(sold_date) if sold_date else None,
            from_external_batch=bool(record.get("fromExternalBatch", False)),
        )

    def to_record(self) -> dict[str, Any]:
        rec: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "weight": self.weight,
            "costPrice": self.cost_price,
            "salePrice": self.sale_price,
            "inFarmStall": self.in_farm_stall,
            "sold": self.sold,
            "date": self.date,
            "fromExternalBatch": self.from_external_batch,
        }
        if self.sold_date:
            rec["soldDate"] = self.sold_date
        return rec

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "weight": self.weight,
            "cost_price": self.cost_price,
            "sale_price": self.sale_price,
            "in_farm_stall": self.in_farm_stall,
            "sold": self.sold,
            "date": self.date,
            "sold_date": self.sold_date,
            "from_external_batch": self.from_external_batch,
        }

    def with_edits(self, *, weight: Optional[float] = None, sale_price: Optional[float] = None) -> "InventoryItem":
        """
        Return a copy with a new weight and/or sale price.

        Produce keeps its unit cost: a new weight rescales ``cost_price`` by
        the old ``cost_price / weight``. Flowers are priced per bunch with no
        cost, so their cost is left alone.
        """
        new_weight = self.weight if weight is None else float(weight)
        new_sale = self.sale_price if sale_price is None else float(sale_price)
        new_cost = self.cost_price
        if not self.is_flower and new_weight != self.weight:
            new_cost = safe_div(self.cost_price, self.weight) * new_weight
        return replace(self, weight=new_weight, sale_price=new_sale, cost_price=new_cost)


@dataclass
class NewItem:
    """An item about to be added: no id, not in the stall, not sold."""

    type: str
    weight: float
    cost_price: float
    sale_price: float
    date: str = field(default_factory=iso_now)
    from_external_batch: bool = False

    def to_item(self, item_id: str) -> InventoryItem:
        return InventoryItem(
            id=item_id,
            type=self.type,
            weight=float(self.weight),
            cost_price=float(self.cost_price),
            sale_price=float(self.sale_price),
            in_farm_stall=False,
            sold=False,
            date=self.date,
            from_external_batch=bool(self.from_external_batch),
        )


@dataclass(frozen=True)
class StagedItem:
    temp_id: str
    type: str
    weight: float
    cost_price: float
    sale_price: float
    date: str
    from_external_batch: bool = False

    @property
    def profit(self) -> float:
        return self.sale_price - self.cost_price

    def to_new_item(self) -> NewItem:
        return NewItem(
            type=self.type,
            weight=self.weight,
            cost_price=self.cost_price,
            sale_price=self.sale_price,
            date=self.date,
            from_external_batch=self.from_external_batch,
        )


class BatchState(str, Enum):
    IDLE = "IDLE"
    OPEN = "OPEN"


@dataclass(frozen=True)
class Batch:
    type: str
    cost_per_kg: float
    from_external_batch: bool = False
    opened_at: str = ""

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Batch":
        return cls(
            type=str(record.get("type") or ""),
            cost_per_kg=_float(record.get("costPerKg")),
            from_external_batch=bool(record.get("fromExternalBatch", False)),
            opened_at=str(record.get("openedAt") or ""),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "state": BatchState.OPEN.value,
            "type": self.type,
            "costPerKg": self.cost_per_kg,
            "fromExternalBatch": self.from_external_batch,
            "openedAt": self.opened_at,
        }


@dataclass(frozen=True)
class BatchSummary:
    count: int = 0
    total_weight: float = 0.0
    total_cost: float = 0.0
    total_sale_price: float = 0.0

    @property
    def profit(self) -> float:
        return self.total_sale_price - self.total_cost

    @classmethod
    def from_items(cls, items: Iterable[StagedItem]) -> "BatchSummary":
        items = list(items)
        return cls(
            count=len(items),
            total_weight=sum(i.weight for i in items),
            total_cost=sum(i.cost_price for i in items),
            total_sale_price=sum(i.sale_price for i in items),
        )
