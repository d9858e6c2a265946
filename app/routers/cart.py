# app/routers/cart.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_user
from app.core.config import get_settings
from app.database import get_session
from app.models.user import User
from app.schemas.cart import CartSummary, CartItemCreate, CartItemUpdate
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

service = CartService(get_settings().CART_STORAGE_KEY)


@router.get("", response_model=CartSummary)
def get_my_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Get current customer's cart summary.

    Auth:
      - Only role='user' (customer) can access.
      - Staff are forbidden.
    """
    return service.get_cart_summary(session, current_user.id)


@router.post("", response_model=CartSummary)
def add_to_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Add a catalog product or a custom pallet to the cart.

    Returns the updated cart summary.
    """
    return service.add_to_cart(session, current_user.id, payload)


@router.patch("/items", response_model=CartSummary)
def update_cart_item(
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Replace the quantity of a cart row identified by its key.

    quantity <= 0 removes the row.
    """
    return service.update_quantity(session, current_user.id, payload)


@router.delete("/items", response_model=CartSummary)
def remove_cart_item(
    key: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Remove a cart row by key (no-op if absent).
    """
    return service.remove_item(session, current_user.id, key)


@router.delete("", response_model=CartSummary)
def clear_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Clear the entire cart.

    Returns an empty cart summary.
    """
    return service.clear_cart(session, current_user.id)
