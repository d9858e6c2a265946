# app/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Persistent profile for a customer company contact or a staff member.

    Identity:
      - id: MUST match Supabase auth.users.id (UUID from JWT "sub")

    Role:
      - "user"  : customer, owns carts and orders
      - "admin" : staff, reconciles pricing and moves order status

    Approval:
      - new customer sign-ups start unapproved; staff flip `approved`
        before the customer can use the cart or place orders

    Password handling lives in Supabase Auth; this table only mirrors
    identity, contact details, role and approval.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email from Supabase auth.users",
    )

    name: str = Field(
        max_length=100,
        description="Contact name; first part of email by default",
    )

    company_name: str | None = Field(
        default=None,
        max_length=200,
        description="Customer company shown to staff on orders",
    )

    role: str = Field(
        default="user",
        index=True,
        description="Application role: user | admin",
    )

    approved: bool = Field(
        default=False,
        description="Customer account approved for ordering",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
