"""Tests for item and batch records."""

import pytest

from farmstall.errors import PartialBatchError, ValidationError
from farmstall.models import Batch, InventoryItem, flower_type, segment_for
from farmstall.utils import positive_number, safe_div


def test_record_round_trip_uses_camel_case():
    record = {
        "type": "Melon",
        "weight": 3,
        "costPrice": 12,
        "salePrice": 30,
        "inFarmStall": True,
        "sold": True,
        "date": "2026-10-01T08:00:00.000+00:00",
        "soldDate": "2026-10-02T08:00:00.000+00:00",
        "fromExternalBatch": True,
    }

    item = InventoryItem.from_record("abc", record)

    assert item.cost_price == 12.0
    assert item.in_farm_stall is True
    assert item.location == "Sold"
    assert item.to_record() == {"id": "abc", **record, "weight": 3.0, "costPrice": 12.0, "salePrice": 30.0}


def test_from_record_tolerates_missing_fields():
    item = InventoryItem.from_record("x", {"type": "Onion"})

    assert item.weight == 0.0
    assert item.sold is False
    assert item.sold_date is None
    assert "soldDate" not in item.to_record()


@pytest.mark.parametrize(
    "item_type, external, segment",
    [
        ("Flowers", False, "Cut Flowers"),
        ("Flowers - Roses", True, "Cut Flowers"),
        ("Potato", True, "External Produce"),
        ("Potato", False, "Feel Good Farm"),
    ],
)
def test_segment_for(item_type, external, segment):
    assert segment_for(item_type, external) == segment


def test_flower_type_label():
    assert flower_type(None) == "Flowers"
    assert flower_type("  ") == "Flowers"
    assert flower_type("Proteas") == "Flowers - Proteas"


def test_batch_record():
    batch = Batch(type="Carrot", cost_per_kg=5.0, opened_at="2026-10-19T08:00:00.000+00:00")

    record = batch.to_record()

    assert record["state"] == "OPEN"
    assert record["costPerKg"] == 5.0
    assert Batch.from_record(record) == batch


def test_positive_number():
    assert positive_number("2.5", "Weight") == 2.5
    assert positive_number(0, "Cost", allow_zero=True) == 0.0
    with pytest.raises(ValidationError, match="Weight must be > 0"):
        positive_number(0, "Weight")
    with pytest.raises(ValidationError, match="must be a number"):
        positive_number(float("nan"), "Weight")


def test_safe_div():
    assert safe_div(10, 4) == 2.5
    assert safe_div(10, 0) == 0.0


def test_partial_batch_error_details():
    err = PartialBatchError("Saved 1 item(s) but 1 failed.", persisted_ids=["a"], failed_indices=[1])

    assert err.details == {"persisted_ids": ["a"], "failed_indices": [1]}
    assert str(err) == "Saved 1 item(s) but 1 failed."
