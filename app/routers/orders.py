# app/routers/orders.py
import uuid
from typing import Literal, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlmodel import Session

from app.core.auth import require_user, require_admin
from app.core.config import get_settings
from app.core.errors import (
    ConcurrencyConflict,
    InvalidTransition,
    NotFound,
    OrderingError,
    TransitionBlocked,
    ValidationError,
)
from app.core.notifications import NotificationDispatcher
from app.database import get_session
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.repositories.user_repo import UserRepository
from app.schemas.order import (
    CheckoutRequest,
    OrderItemPriceResponse,
    OrderItemPriceUpdate,
    OrderPatch,
    OrderStatus,
    OrderSubmit,
    OrderSubmitResponse,
    OrderUpdateResponse,
    OrderWithItemsRead,
)
from app.services.order_service import OrderService
from app.routers.cart import service as cart_service

router = APIRouter(prefix="/orders", tags=["Orders"])

settings = get_settings()
service = OrderService(OrderRepository(), UserRepository(), NotificationDispatcher(settings))


def _raise_http_error(e: OrderingError) -> NoReturn:
    if isinstance(e, NotFound):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    if isinstance(e, ValidationError):
        detail: str | dict = e.message
        if e.items:
            detail = {"message": e.message, "items": e.items}
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail) from e

    if isinstance(e, TransitionBlocked):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(e),
                "code": "transition_blocked",
                "from": e.current,
                "to": e.target,
                "missing": e.missing,
            },
        ) from e

    if isinstance(e, InvalidTransition):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    if isinstance(e, ConcurrencyConflict):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(e),
                "code": "concurrency_conflict",
                "expected": e.expected,
                "actual": e.actual,
            },
        ) from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e


# -------- Customer endpoints --------


@router.post("", response_model=OrderSubmitResponse)
def submit_order(
    payload: OrderSubmit,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Submit cart rows as a new order.

    The order starts pending with delivery price/date unset; custom items
    stay at 0 until staff price them.
    """
    try:
        return service.submit_order(session, current_user, payload)
    except OrderingError as e:
        _raise_http_error(e)


@router.post("/checkout", response_model=OrderSubmitResponse)
def checkout(
    payload: CheckoutRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Submit the customer's stored cart, then clear it.
    """
    cart = cart_service.open_cart(session, current_user.id)
    try:
        return service.checkout_cart(session, current_user, payload, cart)
    except OrderingError as e:
        _raise_http_error(e)


@router.get("/me", response_model=list[OrderWithItemsRead])
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
    skip: int = 0,
    limit: int = 50,
):
    """
    List the authenticated customer's orders, newest first.
    """
    return service.list_user_orders(session, current_user.id, skip, limit)


@router.get("/me/{order_id}", response_model=OrderWithItemsRead)
def get_my_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    try:
        return service.get_user_order(session, current_user.id, order_id)
    except OrderingError as e:
        _raise_http_error(e)


# -------- Staff endpoints --------


@router.get(
    "",
    response_model=list[OrderWithItemsRead],
    dependencies=[Depends(require_admin)],
)
def list_all_orders(
    session: Session = Depends(get_session),
    status_filter: OrderStatus | Literal["all"] | None = Query(default=None, alias="status"),
    skip: int = 0,
    limit: int = 50,
):
    """
    List all orders (staff only), optionally filtered by status.
    """
    return service.list_all_orders(session, status_filter, skip, limit)


@router.patch(
    "/items/{item_id}",
    response_model=OrderItemPriceResponse,
    dependencies=[Depends(require_admin)],
)
def set_custom_item_price(
    item_id: uuid.UUID,
    payload: OrderItemPriceUpdate,
    session: Session = Depends(get_session),
):
    """
    Price a custom line item (staff only).

    Returns the item and the order's recomputed total.
    """
    try:
        return service.set_custom_item_price(session, item_id, payload.unit_price)
    except OrderingError as e:
        _raise_http_error(e)


@router.get(
    "/{order_id}",
    response_model=OrderWithItemsRead,
    dependencies=[Depends(require_admin)],
)
def get_order_admin(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get any order with items and readiness (staff only).
    """
    try:
        return service.get_order_admin(session, order_id)
    except OrderingError as e:
        _raise_http_error(e)


@router.patch(
    "/{order_id}",
    response_model=OrderUpdateResponse,
    dependencies=[Depends(require_admin)],
)
def update_order(
    order_id: uuid.UUID,
    payload: OrderPatch,
    session: Session = Depends(get_session),
):
    """
    Update status, delivery price and/or delivery date (staff only).

      pending    -> any later status, only once delivery price, delivery
                    date and all custom item prices are set
      confirmed  -> processing, shipped, delivered
      processing -> shipped, delivered
      shipped    -> delivered
      any non-terminal -> cancelled (always allowed)
      delivered, cancelled -> (no change)

    A blocked move out of pending answers 409 with the unmet conditions.
    """
    try:
        return service.update_order(session, order_id, payload)
    except OrderingError as e:
        _raise_http_error(e)


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Delete an order and its items (staff only).
    """
    try:
        service.delete_order(session, order_id)
    except OrderingError as e:
        _raise_http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
