# app/services/cart_service.py
import uuid

from sqlmodel import Session

from app.repositories.cart_repo import DatabaseCartBackend
from app.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartItemRead,
    CartSummary,
)
from app.services.cart_store import CartStore


class CartService:
    """
    HTTP-facing wrapper around CartStore for logged-in customers.

    Responsibilities:
      - address each customer's snapshot by "<storage key>:<user id>"
      - load the store, apply one mutation, return the summary
    """

    def __init__(self, storage_key: str):
        self.storage_key = storage_key

    # ---- internal helpers ----

    def snapshot_key(self, user_id: uuid.UUID) -> str:
        return f"{self.storage_key}:{user_id}"

    def open_cart(self, session: Session, user_id: uuid.UUID) -> CartStore:
        return CartStore.load(DatabaseCartBackend(session), self.snapshot_key(user_id))

    @staticmethod
    def summarize(cart: CartStore) -> CartSummary:
        """
        Return full cart summary:
          - list of CartItemRead (with key and line_total)
          - item_count, subtotal, delivery (None) and total
        """
        item_reads = [
            CartItemRead(
                key=it.key,
                product_id=it.product_id,
                product_name=it.product_name,
                unit_price=it.unit_price,
                quantity=it.quantity,
                is_custom=it.is_custom,
                custom_specs=it.custom_specs,
                line_total=it.line_total,
            )
            for it in cart.items
        ]
        totals = cart.get_total()
        return CartSummary(
            items=item_reads,
            item_count=cart.item_count,
            subtotal=totals["subtotal"],
            delivery=totals["delivery"],
            total=totals["total"],
        )

    # ---- public operations ----

    def get_cart_summary(self, session: Session, user_id: uuid.UUID) -> CartSummary:
        return self.summarize(self.open_cart(session, user_id))

    def add_to_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add a product (or custom pallet) to the cart.

        Same identity key => quantities merge; otherwise a new row.
        """
        cart = self.open_cart(session, user_id)
        cart.add_to_cart(payload.to_line_item(), payload.quantity)
        return self.summarize(cart)

    def update_quantity(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartSummary:
        """
        Replace the quantity of a row; quantity <= 0 removes it.
        """
        cart = self.open_cart(session, user_id)
        cart.update_quantity(payload.key, payload.quantity)
        return self.summarize(cart)

    def remove_item(self, session: Session, user_id: uuid.UUID, key: str) -> CartSummary:
        cart = self.open_cart(session, user_id)
        cart.remove_item(key)
        return self.summarize(cart)

    def clear_cart(self, session: Session, user_id: uuid.UUID) -> CartSummary:
        cart = self.open_cart(session, user_id)
        cart.clear_cart()
        return self.summarize(cart)
