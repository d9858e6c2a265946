# app/models/order.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order, created once from a cart snapshot.

    Pricing fields are owned by staff after submission:
      - delivery_price: None until staff sets it ("TBD")
      - delivery_date: None until staff schedules it (ISO date text)
      - total: always recomputed server-side from items + delivery_price
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # pending | confirmed | processing | shipped | delivered | cancelled
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    delivery_price: float | None = Field(
        default=None,
        description="Delivery charge set by staff; None means not yet priced",
    )

    delivery_date: str | None = Field(
        default=None,
        description="Scheduled delivery date set by staff",
    )

    delivery_notes: str = Field(
        default="",
        description="Customer delivery instructions",
    )

    total: float = Field(
        default=0.0,
        description="Sum of priced line items plus delivery price",
    )

    # Bumped on every mutation; callers may echo it back to detect stale edits
    version: int = Field(default=1, ge=1)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last mutation timestamp (UTC)",
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order, frozen at submission.

    Catalog items keep their unit_price forever. Custom items start at 0
    ("unpriced") and are priced by staff.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    # Cart order at submission
    position: int = Field(default=0, ge=0)

    # Catalog ids and "custom-pallet" alike; catalog tables are not ours
    product_id: str = Field(index=True)

    product_name: str

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    unit_price: float = Field(
        ge=0,
        description="Unit price; 0 on a custom item means TBD",
    )

    is_custom: bool = Field(default=False)

    custom_specs: str | None = Field(
        default=None,
        description="Canonical JSON of the custom pallet specs",
    )
