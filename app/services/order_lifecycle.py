# app/services/order_lifecycle.py
"""
Order pricing and status rules shared by every entry point.

Nothing here touches the database: callers pass in the order and its
line items, and persist whatever these helpers compute inside their own
transaction.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

from app.core.errors import InvalidTransition, TransitionBlocked, ValidationError

PENDING = "pending"
CANCELLED = "cancelled"

# Forward progress order; cancelled sits outside it
STATUS_RANK: dict[str, int] = {
    "pending": 0,
    "confirmed": 1,
    "processing": 2,
    "shipped": 3,
    "delivered": 4,
}

TERMINAL_STATUSES: frozenset[str] = frozenset({"delivered", "cancelled"})

# Any later status may be reached directly; cancelled from any non-terminal one.
TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "processing", "shipped", "delivered", "cancelled"}),
    "confirmed": frozenset({"processing", "shipped", "delivered", "cancelled"}),
    "processing": frozenset({"shipped", "delivered", "cancelled"}),
    "shipped": frozenset({"delivered", "cancelled"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}


class PricedLine(Protocol):
    quantity: int
    unit_price: float
    is_custom: bool


# ---------------------------------------------------------------------------
# Prices and totals
# ---------------------------------------------------------------------------


def validate_price(value: Any, field: str = "price") -> float:
    """Return `value` as a float if it is a finite number >= 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Invalid {field}: must be a number")
    if not math.isfinite(value) or value < 0:
        raise ValidationError(f"Invalid {field}: must be a finite number >= 0")
    return float(value)


def is_unpriced(line: PricedLine) -> bool:
    """A custom line still waiting for staff pricing."""
    return line.is_custom and not line.unit_price > 0


def priced_subtotal(lines: Iterable[PricedLine]) -> float:
    """Sum of quantity * unit_price over lines that carry a real price."""
    return round(
        sum(line.quantity * line.unit_price for line in lines if not is_unpriced(line)),
        2,
    )


def compute_order_total(lines: Iterable[PricedLine], delivery_price: float | None) -> float:
    """
    Order total = all line totals + delivery (None counts as 0).

    Always derived from the stored rows, never taken from the caller.
    """
    items_total = sum(line.quantity * line.unit_price for line in lines)
    return round(items_total + (delivery_price or 0.0), 2)


def validate_submission_lines(lines: Iterable[Any]) -> list[dict[str, str]]:
    """
    Collect per-line problems for a cart about to become an order.

    Returns an empty list when every line is acceptable.
    """
    errors: list[dict[str, str]] = []
    for line in lines:
        if not isinstance(line.quantity, int) or line.quantity < 1:
            errors.append(
                {
                    "product_id": str(line.product_id),
                    "reason": f"Invalid quantity ({line.quantity}); must be at least 1",
                }
            )
            continue
        price = line.unit_price
        if not math.isfinite(price) or price < 0:
            errors.append(
                {
                    "product_id": str(line.product_id),
                    "reason": f"Invalid price ({price}); must be >= 0",
                }
            )
    return errors


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Readiness:
    delivery_price_set: bool
    delivery_date_set: bool
    custom_prices_set: bool

    @property
    def ready(self) -> bool:
        return self.delivery_price_set and self.delivery_date_set and self.custom_prices_set

    @property
    def missing(self) -> list[str]:
        missing: list[str] = []
        if not self.delivery_price_set:
            missing.append("delivery_price")
        if not self.delivery_date_set:
            missing.append("delivery_date")
        if not self.custom_prices_set:
            missing.append("custom_item_prices")
        return missing


def evaluate_readiness(
    delivery_price: float | None,
    delivery_date: str | None,
    lines: Iterable[PricedLine],
) -> Readiness:
    return Readiness(
        delivery_price_set=delivery_price is not None,
        delivery_date_set=bool(delivery_date and str(delivery_date).strip()),
        custom_prices_set=not any(is_unpriced(line) for line in lines),
    )


def readiness(order: Any, lines: Iterable[PricedLine]) -> Readiness:
    return evaluate_readiness(order.delivery_price, order.delivery_date, lines)


def is_ready_to_advance(order: Any, lines: Iterable[PricedLine]) -> bool:
    return readiness(order, lines).ready


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def check_transition(current: str, target: str, state: Readiness) -> None:
    """
    Raise unless `current -> target` is allowed right now.

    Leaving pending for anything but cancelled requires full readiness;
    later statuses are never re-checked.
    """
    if not can_transition(current, target):
        raise InvalidTransition(current, target)

    if current == PENDING and target != CANCELLED and not state.ready:
        raise TransitionBlocked(current, target, state.missing)
