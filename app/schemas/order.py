# app/schemas/order.py
import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from app.schemas.cart import CustomSpecs

OrderStatus = Literal[
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
]


class OrderSubmitItem(SQLModel):
    """
    A cart row as submitted by the client.

    Quantity and price are deliberately unconstrained here; the service
    rejects bad rows with a per-item error list instead of a bare 422.
    """

    product_id: str = Field(min_length=1)
    product_name: str
    unit_price: float
    quantity: int
    is_custom: bool = False
    custom_specs: CustomSpecs | None = None


class OrderSubmit(SQLModel):
    """
    Payload for submitting an order.

    `total` is what the client displayed; the backend recomputes it.
    """

    model_config = ConfigDict(extra="forbid")

    items: list[OrderSubmitItem]
    total: float | None = None
    delivery_notes: str | None = None

    @field_validator("delivery_notes", mode="before")
    @classmethod
    def normalize_notes(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class CheckoutRequest(SQLModel):
    """
    Payload for submitting the customer's stored cart.
    """

    model_config = ConfigDict(extra="forbid")

    delivery_notes: str | None = None


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    id: uuid.UUID
    order_id: uuid.UUID
    product_id: str
    product_name: str
    quantity: int
    unit_price: float
    is_custom: bool
    custom_specs: CustomSpecs | None = None
    line_total: float


class ReadinessRead(SQLModel):
    """
    The three conditions gating a pending order.
    """

    delivery_price_set: bool
    delivery_date_set: bool
    custom_prices_set: bool
    ready: bool
    missing: list[str]


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    user_id: uuid.UUID
    status: OrderStatus
    delivery_price: float | None
    delivery_date: str | None
    delivery_notes: str
    total: float
    version: int
    created_at: datetime
    updated_at: datetime


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]
    subtotal: float
    readiness: ReadinessRead


class OrderSubmitResponse(SQLModel):
    order: OrderWithItemsRead
    warnings: list[str] = []


class OrderPatch(SQLModel):
    """
    Staff payload for status / delivery changes.

    Omitted fields are left untouched. `version`, when sent, must match the
    stored order version.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus | None = None
    delivery_price: float | None = None
    delivery_date: date | None = None
    version: int | None = None


class OrderUpdateResponse(SQLModel):
    order: OrderWithItemsRead
    warnings: list[str] = []


class OrderItemPriceUpdate(SQLModel):
    """
    Staff payload for pricing a custom line item.
    """

    model_config = ConfigDict(extra="forbid")

    unit_price: float


class OrderItemPriceResponse(SQLModel):
    item: OrderItemRead
    order_total: float
    order_version: int
    warnings: list[str] = []
