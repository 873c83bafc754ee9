"""
Dashboard and report figures derived from an inventory snapshot.

Everything here is a pure function of the items passed in; callers re-run
them whenever the snapshot changes. Amounts are not rounded.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

import pandas as pd

from farmstall.errors import ValidationError
from farmstall.models import SEGMENTS, InventoryItem, segment_for, unit_for

ITEM_COLUMNS = [
    "id",
    "type",
    "weight",
    "cost_price",
    "sale_price",
    "in_farm_stall",
    "sold",
    "date",
    "sold_date",
    "from_external_batch",
]
TYPE_SUMMARY_COLUMNS = ["type", "count", "total_weight", "total_value", "unit"]
TIME_SERIES_COLUMNS = ["date", "sales", "profit"]
CATEGORY_COLUMNS = ["type", "sales", "profit", "count"]
SEGMENT_COLUMNS = ["segment", "sales", "profit", "count"]

TIMEFRAMES = ("week", "month", "all")
LEADERBOARD_SIZE = 5


@dataclass(frozen=True)
class DashboardTotals:
    total_sales: float
    total_cost: float
    items_sold: int
    inventory_count: int
    inventory_value: float

    @property
    def profit(self) -> float:
        return self.total_sales - self.total_cost


def items_frame(items: Iterable[InventoryItem]) -> pd.DataFrame:
    df = pd.DataFrame([i.to_row() for i in items], columns=ITEM_COLUMNS)
    df["weight"] = df["weight"].astype(float)
    df["cost_price"] = df["cost_price"].astype(float)
    df["sale_price"] = df["sale_price"].astype(float)
    return df


def _sale_timestamps(df: pd.DataFrame) -> pd.Series:
    # Older records may be sold without a soldDate; fall back to creation date.
    stamps = df["sold_date"].where(df["sold_date"].notna() & (df["sold_date"] != ""), df["date"])
    return stamps.astype(str)


def _parsed_sale_times(df: pd.DataFrame) -> pd.Series:
    return pd.to_datetime(_sale_timestamps(df), utc=True, format="ISO8601", errors="coerce")


def _sale_days(df: pd.DataFrame) -> pd.Series:
    # Calendar day in UTC, whatever offset the writer used.
    return _parsed_sale_times(df).dt.strftime("%Y-%m-%d")


def timeframe_start(timeframe: str, now: Optional[datetime] = None) -> Optional[pd.Timestamp]:
    if timeframe not in TIMEFRAMES:
        raise ValidationError(f"Unknown timeframe '{timeframe}'. Use one of {', '.join(TIMEFRAMES)}.")
    if timeframe == "all":
        return None
    ts = pd.Timestamp(now or datetime.now(timezone.utc))
    ts = ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")
    if timeframe == "week":
        return ts - pd.Timedelta(days=7)
    return ts - pd.DateOffset(months=1)


def filter_timeframe(df: pd.DataFrame, timeframe: str = "all", now: Optional[datetime] = None) -> pd.DataFrame:
    start = timeframe_start(timeframe, now)
    if start is None or df.empty:
        return df
    return df[_parsed_sale_times(df) >= start]


def group_by_type(items: Iterable[InventoryItem]) -> pd.DataFrame:
    """Per-type count, total weight (kg or bunches) and total sale value."""
    df = items_frame(items)
    if df.empty:
        return pd.DataFrame(columns=TYPE_SUMMARY_COLUMNS)

    out = (
        df.groupby("type", sort=False)
        .agg(count=("id", "size"), total_weight=("weight", "sum"), total_value=("sale_price", "sum"))
        .reset_index()
    )
    out["unit"] = out["type"].map(unit_for)
    return out[TYPE_SUMMARY_COLUMNS]


def sales_time_series(
    sales: Iterable[InventoryItem],
    timeframe: str = "all",
    now: Optional[datetime] = None,
) -> pd.DataFrame:
    """
    Sales and profit per UTC calendar day of ``sold_date``.

    Days appear in the order they first occur in ``sales``; days without
    sales are not filled in.
    """
    df = filter_timeframe(items_frame(sales), timeframe, now)
    if df.empty:
        return pd.DataFrame(columns=TIME_SERIES_COLUMNS)

    df = df.assign(
        day=_sale_days(df),
        profit=df["sale_price"] - df["cost_price"],
    )
    out = (
        df.groupby("day", sort=False)
        .agg(sales=("sale_price", "sum"), profit=("profit", "sum"))
        .reset_index()
        .rename(columns={"day": "date"})
    )
    return out[TIME_SERIES_COLUMNS]


def _ranking(df: pd.DataFrame, key: str) -> pd.DataFrame:
    df = df.assign(profit=df["sale_price"] - df["cost_price"])
    return (
        df.groupby(key, sort=False)
        .agg(sales=("sale_price", "sum"), profit=("profit", "sum"), count=("id", "size"))
        .reset_index()
    )


def category_ranking(sales: Iterable[InventoryItem], top_n: Optional[int] = None) -> pd.DataFrame:
    """Sales, profit and count per type, best profit first."""
    df = items_frame(sales)
    if df.empty:
        return pd.DataFrame(columns=CATEGORY_COLUMNS)

    out = _ranking(df, "type").sort_values("profit", ascending=False, kind="mergesort")
    if top_n is not None:
        out = out.head(int(top_n))
    return out[CATEGORY_COLUMNS].reset_index(drop=True)


def segment_ranking(sales: Iterable[InventoryItem]) -> pd.DataFrame:
    """Sales, profit and count for Cut Flowers / External Produce / Feel Good Farm, best profit first."""
    df = items_frame(sales)
    df["segment"] = [segment_for(t, bool(e)) for t, e in zip(df["type"], df["from_external_batch"])]

    if df.empty:
        out = pd.DataFrame({"segment": SEGMENTS, "sales": 0.0, "profit": 0.0, "count": 0})
    else:
        out = (
            _ranking(df, "segment")
            .set_index("segment")
            .reindex(SEGMENTS)
            .fillna({"sales": 0.0, "profit": 0.0, "count": 0})
            .reset_index()
        )
        out["count"] = out["count"].astype(int)

    out = out.sort_values("profit", ascending=False, kind="mergesort")
    return out[SEGMENT_COLUMNS].reset_index(drop=True)


def dashboard_totals(
    inventory: Iterable[InventoryItem],
    sales: Iterable[InventoryItem],
    timeframe: str = "all",
    now: Optional[datetime] = None,
) -> DashboardTotals:
    sold = filter_timeframe(items_frame(sales), timeframe, now)
    unsold = [i for i in inventory if not i.sold]
    return DashboardTotals(
        total_sales=float(sold["sale_price"].sum()),
        total_cost=float(sold["cost_price"].sum()),
        items_sold=int(len(sold)),
        inventory_count=len(unsold),
        inventory_value=float(sum(i.sale_price for i in unsold)),
    )
