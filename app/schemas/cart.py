# app/schemas/cart.py
import json
import math

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


class CustomSpecs(SQLModel):
    """
    Dimensions and grade for a custom pallet request.

    Only present on custom line items.
    """

    model_config = ConfigDict(extra="forbid")

    length: str
    width: str
    height: str | None = None
    notes: str | None = None
    grade_type: str | None = None   # grade-a | grade-b | heat-treated
    grade_label: str | None = None  # Grade A | Grade B | Heat Treated

    def canonical(self) -> str:
        """
        Stable serialization used for merge identity and storage:
        sorted keys, unset fields dropped, no whitespace.
        """
        return json.dumps(
            self.model_dump(exclude_none=True),
            sort_keys=True,
            separators=(",", ":"),
        )


class CartLineItem(SQLModel):
    """
    One cart row.

    Identity (`key`):
      - catalog items: product_id
      - custom items : product_id + canonical custom specs
    """

    product_id: str = Field(min_length=1)
    product_name: str
    unit_price: float = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    is_custom: bool = False
    custom_specs: CustomSpecs | None = None

    @field_validator("unit_price")
    @classmethod
    def finite_price(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("unit_price must be a finite number")
        return v

    @property
    def key(self) -> str:
        if not self.is_custom:
            return self.product_id
        specs = self.custom_specs.canonical() if self.custom_specs else "{}"
        return f"{self.product_id}|{specs}"

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.

    Price and name come from the client's catalog view; they are only used
    when this creates a new cart row.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: str = Field(min_length=1)
    product_name: str
    unit_price: float = Field(ge=0)
    quantity: int = Field(gt=0)
    is_custom: bool = False
    custom_specs: CustomSpecs | None = None

    @field_validator("product_name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("product_name cannot be empty")
        return v

    def to_line_item(self) -> CartLineItem:
        return CartLineItem(
            product_id=self.product_id,
            product_name=self.product_name,
            unit_price=self.unit_price,
            quantity=self.quantity,
            is_custom=self.is_custom,
            custom_specs=self.custom_specs if self.is_custom else None,
        )


class CartItemUpdate(SQLModel):
    """
    Payload for replacing the quantity of a cart row.

    quantity <= 0 removes the row.
    """

    model_config = ConfigDict(extra="forbid")

    key: str
    quantity: int


class CartItemRead(SQLModel):
    """
    Read model for a single cart row, including its identity key and line_total.
    """

    key: str
    product_id: str
    product_name: str
    unit_price: float
    quantity: int
    is_custom: bool
    custom_specs: CustomSpecs | None = None
    line_total: float


class CartSummary(SQLModel):
    """
    Full cart response model with totals.

    delivery is always null here: staff price delivery after submission.
    """

    items: list[CartItemRead]
    item_count: int
    subtotal: float
    delivery: float | None = None
    total: float
