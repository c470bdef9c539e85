# quickorder/quantities.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from django.conf import settings

DEFAULT_PRICE_THRESHOLD = Decimal("20.00")
DEFAULT_BATCH_STEP = 6

# Upper bound for a single line; larger requests are clamped.
MAX_QUANTITY = 9999


def parse_quantity(raw: Any) -> int:
    """
    Untrusted form value -> int in [0, MAX_QUANTITY].

    "4" -> 4, " 12 " -> 12, "4.9" -> 4, "1e5000" -> MAX_QUANTITY,
    "" / "abc" / "-3" / None -> 0
    """
    if raw is None or isinstance(raw, bool):
        return 0

    if isinstance(raw, int):
        return min(max(0, raw), MAX_QUANTITY)

    text = str(raw).strip()
    if not text:
        return 0

    try:
        return min(max(0, int(text)), MAX_QUANTITY)
    except ValueError:
        pass

    try:
        d = Decimal(text)
    except InvalidOperation:
        return 0
    if not d.is_finite() or d <= 0:
        return 0
    if d >= MAX_QUANTITY:
        return MAX_QUANTITY
    return int(d)


def normalize_quantity(raw: Any, step: int) -> int:
    """
    Round a positive quantity up to a whole number of steps, never below one step
    and never above the largest multiple of the step within MAX_QUANTITY.
    0 stays 0 so "remove" is distinguishable from "buy the minimum batch".
    """
    quantity = parse_quantity(raw)
    step = int(step or 1)
    if quantity <= 0 or step <= 1:
        return quantity
    rounded = -(-quantity // step) * step
    if rounded > MAX_QUANTITY:
        rounded = MAX_QUANTITY // step * step
    return max(step, rounded)


@dataclass(frozen=True)
class StepPolicy:
    """
    Cheap products are sold per batch: below the price threshold the step is
    batch_size, otherwise 1. Evaluated against the product's price at call time.
    """

    threshold: Decimal = DEFAULT_PRICE_THRESHOLD
    batch_size: int = DEFAULT_BATCH_STEP

    @classmethod
    def from_settings(cls) -> "StepPolicy":
        return cls(
            threshold=Decimal(getattr(settings, "QUICKORDER_STEP_PRICE_THRESHOLD", DEFAULT_PRICE_THRESHOLD)),
            batch_size=int(getattr(settings, "QUICKORDER_BATCH_STEP", DEFAULT_BATCH_STEP)),
        )

    def step_for(self, product) -> int:
        price = Decimal(product.display_price())
        if price < self.threshold:
            return max(1, self.batch_size)
        return 1

    def normalize(self, product, raw: Any) -> int:
        return normalize_quantity(raw, self.step_for(product))
