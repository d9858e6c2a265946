# app/core/errors.py
"""Domain exceptions for ordering, pricing and status changes."""

from __future__ import annotations

from typing import Any


class OrderingError(Exception):
    """Base exception for all ordering errors."""


class ValidationError(OrderingError):
    """Raised when input is rejected before any mutation (empty cart, bad quantity/price)."""

    def __init__(self, message: str, items: list[dict[str, Any]] | None = None):
        self.message = message
        self.items = items or []
        super().__init__(message)


class NotFound(OrderingError):
    """Raised when an order or order item id does not exist."""

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class InvalidTransition(OrderingError):
    """Raised for backward moves or moves out of a terminal status."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Invalid status transition: {current} -> {target}")


# Human-readable labels for the readiness conditions
READINESS_LABELS: dict[str, str] = {
    "delivery_price": "delivery price",
    "delivery_date": "delivery date",
    "custom_item_prices": "custom item prices",
}


class TransitionBlocked(OrderingError):
    """Raised when a pending order is advanced before pricing/scheduling is complete."""

    def __init__(self, current: str, target: str, missing: list[str]):
        self.current = current
        self.target = target
        self.missing = list(missing)
        labels = ", ".join(READINESS_LABELS.get(m, m) for m in self.missing)
        super().__init__(
            f"Cannot move order from {current} to {target}: missing {labels}"
        )


class ConcurrencyConflict(OrderingError):
    """Raised when the caller's order version is stale."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Order was modified concurrently (expected version {expected}, found {actual}). "
            "Reload and retry."
        )
