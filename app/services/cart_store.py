# app/services/cart_store.py
import json
import logging
from typing import Protocol

from app.schemas.cart import CartLineItem
from app.services.order_lifecycle import priced_subtotal

logger = logging.getLogger(__name__)


class CartBackend(Protocol):
    """Key-value storage holding one serialized cart per key."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, payload: str) -> None: ...


class CartStore:
    """
    A customer's cart before submission.

    Rules:
      - rows are kept in insertion order, one per identity key
      - adding an existing key adds quantity; stored price/name are kept
      - a row never has quantity < 1 (setting 0 removes it)
      - every mutation writes the full snapshot before returning
    """

    def __init__(
        self,
        backend: CartBackend,
        key: str,
        items: list[CartLineItem] | None = None,
    ):
        self.backend = backend
        self.key = key
        self._items: list[CartLineItem] = list(items or [])

    @classmethod
    def load(cls, backend: CartBackend, key: str) -> "CartStore":
        """
        Rehydrate a cart from its snapshot.

        A missing snapshot is an empty cart; so is a corrupt one (logged).
        """
        raw = backend.read(key)
        items: list[CartLineItem] = []
        if raw:
            try:
                items = [CartLineItem.model_validate(row) for row in json.loads(raw)]
            except (TypeError, ValueError) as e:
                logger.error("Failed to parse cart snapshot %s: %s", key, e)
                items = []
        return cls(backend, key, items)

    # ---- internal helpers ----

    def _find(self, key: str) -> CartLineItem | None:
        for item in self._items:
            if item.key == key:
                return item
        return None

    def _persist(self) -> None:
        payload = json.dumps([item.model_dump(mode="json") for item in self._items])
        self.backend.write(self.key, payload)

    # ---- read side ----

    @property
    def items(self) -> list[CartLineItem]:
        return [item.model_copy() for item in self._items]

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    @property
    def subtotal(self) -> float:
        # Unpriced custom rows count toward item_count but not here
        return priced_subtotal(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def get_total(self) -> dict[str, float | None]:
        """
        Cart totals. Delivery is priced by staff after submission, so it is
        None ("to be determined"), not zero.
        """
        subtotal = self.subtotal
        return {"subtotal": subtotal, "delivery": None, "total": subtotal}

    # ---- mutations ----

    def add_to_cart(self, item: CartLineItem, quantity: int) -> None:
        if quantity < 1:
            logger.debug("Ignoring add of %s with quantity %s", item.key, quantity)
            return

        existing = self._find(item.key)
        if existing:
            existing.quantity += quantity
        else:
            self._items.append(item.model_copy(update={"quantity": quantity}))
        self._persist()

    def update_quantity(self, key: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(key)
            return

        existing = self._find(key)
        if existing:
            existing.quantity = quantity
        self._persist()

    def remove_item(self, key: str) -> None:
        self._items = [item for item in self._items if item.key != key]
        self._persist()

    def clear_cart(self) -> None:
        self._items = []
        self._persist()
