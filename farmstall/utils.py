from __future__ import annotations

import math
from datetime import datetime, timezone

from farmstall.errors import ValidationError

FLOWER_PREFIX = "Flowers"


def iso_now() -> str:
    # UTC ISO timestamps with milliseconds, matching what other clients write.
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0


def is_flower_type(item_type: str) -> bool:
    return str(item_type or "").startswith(FLOWER_PREFIX)


def positive_number(value, label: str, *, allow_zero: bool = False) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number.", {"value": value})
    if math.isnan(n) or math.isinf(n):
        raise ValidationError(f"{label} must be a number.", {"value": value})
    if n < 0 or (n == 0 and not allow_zero):
        raise ValidationError(f"{label} must be {'>= 0' if allow_zero else '> 0'}.", {"value": value})
    return n
