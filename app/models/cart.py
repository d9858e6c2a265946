# app/models/cart.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class CartSnapshot(SQLModel, table=True):
    """
    Key-value snapshot of a customer's cart.

    The whole cart is re-serialized into `payload` on every mutation, so a
    reload always rehydrates the latest state.
    """

    __tablename__ = "cart_snapshots"

    key: str = Field(
        primary_key=True,
        max_length=255,
        description="Storage key, e.g. grunge-pallets-cart:<user_id>",
    )

    payload: str = Field(
        default="[]",
        description="JSON array of cart line items",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
