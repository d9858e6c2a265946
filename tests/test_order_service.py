from __future__ import annotations

import smtplib
import uuid
from datetime import date

import pytest
from sqlmodel import Session, select

from app.core import email_client
from app.core.errors import (
    ConcurrencyConflict,
    InvalidTransition,
    NotFound,
    TransitionBlocked,
    ValidationError,
)
from app.models.order import Order
from app.models.user import User
from app.repositories.cart_repo import InMemoryCartBackend
from app.schemas.cart import CartLineItem, CustomSpecs
from app.schemas.order import CheckoutRequest, OrderPatch, OrderSubmit, OrderSubmitItem
from app.services.cart_store import CartStore
from app.services.order_service import OrderService


def _submission(**overrides) -> OrderSubmit:
    data = {
        "items": [
            OrderSubmitItem(
                product_id="gma-48x40-a",
                product_name="48x40 Grade A",
                unit_price=20.0,
                quantity=2,
            ),
            OrderSubmitItem(
                product_id="custom-pallet",
                product_name="Custom Pallet",
                unit_price=0,
                quantity=5,
                is_custom=True,
                custom_specs=CustomSpecs(length="42", width="42", grade_type="heat-treated"),
            ),
        ],
        "total": 40.0,
        "delivery_notes": "Dock 3, forklift on site",
    }
    data.update(overrides)
    return OrderSubmit(**data)


@pytest.fixture()
def submitted(session: Session, customer: User, order_service: OrderService):
    return order_service.submit_order(session, customer, _submission()).order


def _custom_item_id(order) -> uuid.UUID:
    return next(it.id for it in order.items if it.is_custom)


# -------- Submission --------


def test_submit_creates_pending_order_with_unresolved_delivery(submitted) -> None:
    assert submitted.status == "pending"
    assert submitted.delivery_price is None
    assert submitted.delivery_date is None
    assert submitted.total == 40.0
    assert submitted.subtotal == 40.0
    assert submitted.delivery_notes == "Dock 3, forklift on site"
    assert [it.unit_price for it in submitted.items] == [20.0, 0.0]


def test_submission_round_trip_reproduces_line_items(
    session: Session,
    customer: User,
    order_service: OrderService,
    submitted,
) -> None:
    read_back = order_service.get_user_order(session, customer.id, submitted.id)

    expected = [
        (it.product_id, it.product_name, it.quantity, it.unit_price, it.is_custom, it.custom_specs)
        for it in _submission().items
    ]
    actual = [
        (it.product_id, it.product_name, it.quantity, it.unit_price, it.is_custom, it.custom_specs)
        for it in read_back.items
    ]
    assert actual == expected
    assert read_back.delivery_price is None
    assert read_back.delivery_date is None


def test_submit_ignores_client_total(session: Session, customer: User, order_service: OrderService) -> None:
    order = order_service.submit_order(session, customer, _submission(total=9999.0)).order

    assert order.total == 40.0


def test_submit_rejects_empty_cart(session: Session, customer: User, order_service: OrderService) -> None:
    with pytest.raises(ValidationError, match="Cart is empty"):
        order_service.submit_order(session, customer, _submission(items=[]))

    assert session.exec(select(Order)).all() == []


def test_submit_rejects_bad_quantity_and_negative_price(
    session: Session,
    customer: User,
    order_service: OrderService,
) -> None:
    items = [
        OrderSubmitItem(product_id="a", product_name="A", unit_price=10.0, quantity=0),
        OrderSubmitItem(product_id="b", product_name="B", unit_price=-1.0, quantity=1),
        OrderSubmitItem(product_id="c", product_name="C", unit_price=5.0, quantity=1),
    ]
    with pytest.raises(ValidationError) as exc:
        order_service.submit_order(session, customer, _submission(items=items))

    assert [e["product_id"] for e in exc.value.items] == ["a", "b"]
    assert session.exec(select(Order)).all() == []


def test_submit_notifies_customer_and_staff(sent_emails, submitted) -> None:
    recipients = [m["to"] for m in sent_emails]

    assert "buyer@acme-logistics.com" in recipients
    assert "orders@grungepallets.com" in recipients
    admin_mail = next(m for m in sent_emails if m["to"] == "orders@grungepallets.com")
    assert "[Custom Items]" in admin_mail["subject"]


def test_client_price_on_custom_item_is_not_stored(
    session: Session,
    customer: User,
    order_service: OrderService,
) -> None:
    items = [
        OrderSubmitItem(
            product_id="custom-pallet",
            product_name="Custom Pallet",
            unit_price=0.01,
            quantity=100,
            is_custom=True,
            custom_specs=CustomSpecs(length="48", width="40"),
        ),
    ]
    order = order_service.submit_order(session, customer, _submission(items=items, total=1.0)).order

    assert order.items[0].unit_price == 0
    assert order.total == 0
    assert not order.readiness.custom_prices_set

    with pytest.raises(TransitionBlocked) as exc:
        order_service.update_order(
            session,
            order.id,
            OrderPatch(status="confirmed", delivery_price=10.0, delivery_date=date(2026, 11, 1)),
        )
    assert exc.value.missing == ["custom_item_prices"]


def test_checkout_stores_custom_items_unpriced(
    session: Session,
    customer: User,
    order_service: OrderService,
) -> None:
    cart = CartStore.load(InMemoryCartBackend(), "grunge-pallets-cart:y")
    cart.add_to_cart(
        CartLineItem(
            product_id="custom-pallet",
            product_name="Custom Pallet",
            unit_price=9.0,
            is_custom=True,
            custom_specs=CustomSpecs(length="36", width="36"),
        ),
        4,
    )

    order = order_service.checkout_cart(session, customer, CheckoutRequest(), cart).order

    assert order.items[0].unit_price == 0
    assert order.readiness.missing[-1] == "custom_item_prices"

def test_checkout_submits_stored_cart_and_clears_it(
    session: Session,
    customer: User,
    order_service: OrderService,
) -> None:
    cart = CartStore.load(InMemoryCartBackend(), "grunge-pallets-cart:x")
    cart.add_to_cart(CartLineItem(product_id="p", product_name="P", unit_price=12.0), 3)

    order = order_service.checkout_cart(session, customer, CheckoutRequest(), cart).order

    assert order.total == 36.0
    assert cart.is_empty()


# -------- Readiness gate --------


def test_confirm_blocked_then_allowed_after_pricing(
    session: Session,
    order_service: OrderService,
    submitted,
) -> None:
    with pytest.raises(TransitionBlocked) as exc:
        order_service.update_order(session, submitted.id, OrderPatch(status="confirmed"))
    assert exc.value.missing == ["delivery_price", "delivery_date", "custom_item_prices"]

    order_service.set_custom_item_price(session, _custom_item_id(submitted), 12.5)
    order_service.set_delivery_price(session, submitted.id, 75.0)
    order_service.update_order(session, submitted.id, OrderPatch(delivery_date=date(2026, 11, 2)))

    result = order_service.update_order(session, submitted.id, OrderPatch(status="confirmed")).order

    assert result.status == "confirmed"
    assert result.total == 177.5
    assert result.readiness.ready


def test_blocked_patch_leaves_order_untouched(
    session: Session,
    order_service: OrderService,
    submitted,
) -> None:
    with pytest.raises(TransitionBlocked) as exc:
        order_service.update_order(
            session,
            submitted.id,
            OrderPatch(status="confirmed", delivery_price=50.0),
        )
    assert exc.value.missing == ["delivery_date", "custom_item_prices"]

    order = order_service.get_order_admin(session, submitted.id)
    assert order.delivery_price is None
    assert order.version == submitted.version


def test_single_patch_can_complete_pricing_and_advance(
    session: Session,
    order_service: OrderService,
    submitted,
) -> None:
    order_service.set_custom_item_price(session, _custom_item_id(submitted), 10.0)

    result = order_service.update_order(
        session,
        submitted.id,
        OrderPatch(status="confirmed", delivery_price=60.0, delivery_date=date(2026, 11, 5)),
    ).order

    assert result.status == "confirmed"
    assert result.delivery_date == "2026-11-05"
    assert result.total == 40.0 + 50.0 + 60.0


def test_cancel_allowed_without_pricing(session: Session, order_service: OrderService, submitted) -> None:
    result = order_service.update_order(session, submitted.id, OrderPatch(status="cancelled")).order

    assert result.status == "cancelled"
    with pytest.raises(InvalidTransition):
        order_service.update_order(session, submitted.id, OrderPatch(status="pending"))


def _make_ready(session: Session, order_service: OrderService, order) -> None:
    order_service.set_custom_item_price(session, _custom_item_id(order), 12.5)
    order_service.update_order(
        session,
        order.id,
        OrderPatch(delivery_price=75.0, delivery_date=date(2026, 11, 2)),
    )


def test_status_is_monotonic_after_shipping(session: Session, order_service: OrderService, submitted) -> None:
    _make_ready(session, order_service, submitted)
    order_service.update_order(session, submitted.id, OrderPatch(status="shipped"))

    for target in ("pending", "confirmed", "processing"):
        with pytest.raises(InvalidTransition):
            order_service.update_order(session, submitted.id, OrderPatch(status=target))

    result = order_service.update_order(session, submitted.id, OrderPatch(status="cancelled")).order
    assert result.status == "cancelled"


def test_delivered_is_terminal(session: Session, order_service: OrderService, submitted) -> None:
    _make_ready(session, order_service, submitted)
    order_service.update_order(session, submitted.id, OrderPatch(status="delivered"))

    with pytest.raises(InvalidTransition):
        order_service.update_order(session, submitted.id, OrderPatch(status="cancelled"))


def test_prices_editable_after_confirmation_without_blocking(
    session: Session,
    order_service: OrderService,
    submitted,
) -> None:
    _make_ready(session, order_service, submitted)
    order_service.update_order(session, submitted.id, OrderPatch(status="confirmed"))

    priced = order_service.set_custom_item_price(session, _custom_item_id(submitted), 0)
    assert priced.order_total == 40.0 + 75.0

    result = order_service.update_order(session, submitted.id, OrderPatch(status="processing")).order
    assert result.status == "processing"


# -------- Pricing --------


def test_custom_item_price_recomputes_total(session: Session, order_service: OrderService, submitted) -> None:
    result = order_service.set_custom_item_price(session, _custom_item_id(submitted), 12.5)

    assert result.item.unit_price == 12.5
    assert result.item.line_total == 62.5
    assert result.order_total == 102.5
    assert result.order_version == submitted.version + 1


def test_set_delivery_price_is_idempotent(session: Session, order_service: OrderService, submitted) -> None:
    once = order_service.set_delivery_price(session, submitted.id, 75.0).order
    twice = order_service.set_delivery_price(session, submitted.id, 75.0).order

    assert once.total == twice.total == 115.0


def test_unchanged_patch_releases_order_lock(
    session: Session,
    order_service: OrderService,
    submitted,
) -> None:
    order_service.set_delivery_price(session, submitted.id, 75.0)

    result = order_service.set_delivery_price(session, submitted.id, 75.0).order

    assert result.delivery_price == 75.0
    assert not session.in_transaction()


def test_catalog_item_price_cannot_change(session: Session, order_service: OrderService, submitted) -> None:
    catalog_id = next(it.id for it in submitted.items if not it.is_custom)

    with pytest.raises(ValidationError):
        order_service.set_custom_item_price(session, catalog_id, 1.0)


def test_negative_prices_rejected(session: Session, order_service: OrderService, submitted) -> None:
    with pytest.raises(ValidationError):
        order_service.set_custom_item_price(session, _custom_item_id(submitted), -5)
    with pytest.raises(ValidationError):
        order_service.set_delivery_price(session, submitted.id, -1)


def test_unknown_ids_raise_not_found(session: Session, order_service: OrderService) -> None:
    with pytest.raises(NotFound):
        order_service.set_custom_item_price(session, uuid.uuid4(), 10.0)
    with pytest.raises(NotFound):
        order_service.update_order(session, uuid.uuid4(), OrderPatch(status="cancelled"))


def test_stale_version_is_rejected(session: Session, order_service: OrderService, submitted) -> None:
    order_service.set_delivery_price(session, submitted.id, 30.0)

    with pytest.raises(ConcurrencyConflict) as exc:
        order_service.update_order(
            session,
            submitted.id,
            OrderPatch(delivery_price=99.0, version=submitted.version),
        )
    assert exc.value.actual == submitted.version + 1

    assert order_service.get_order_admin(session, submitted.id).delivery_price == 30.0


# -------- Notifications --------


def test_notification_failure_does_not_undo_change(
    monkeypatch: pytest.MonkeyPatch,
    session: Session,
    order_service: OrderService,
    submitted,
) -> None:
    def _broken(*args, **kwargs) -> None:
        raise smtplib.SMTPException("relay down")

    monkeypatch.setattr(email_client, "send_email", _broken)

    result = order_service.update_order(session, submitted.id, OrderPatch(status="cancelled"))

    assert result.order.status == "cancelled"
    assert result.warnings and "relay down" in result.warnings[0]
    assert order_service.get_order_admin(session, submitted.id).status == "cancelled"


def test_delivery_date_change_notifies_customer(
    sent_emails,
    session: Session,
    order_service: OrderService,
    submitted,
) -> None:
    sent_emails.clear()

    order_service.update_order(session, submitted.id, OrderPatch(delivery_date=date(2026, 11, 2)))

    assert len(sent_emails) == 1
    assert "2026-11-02" in sent_emails[0]["text"]


def test_delivery_price_alone_sends_nothing(
    sent_emails,
    session: Session,
    order_service: OrderService,
    submitted,
) -> None:
    sent_emails.clear()

    order_service.set_delivery_price(session, submitted.id, 40.0)

    assert sent_emails == []
