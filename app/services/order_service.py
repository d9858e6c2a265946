# app/services/order_service.py
import json
import logging
import uuid
from datetime import datetime, timezone

from sqlmodel import Session

from app.core.errors import ConcurrencyConflict, NotFound, OrderingError, ValidationError
from app.core.notifications import NotificationDispatcher
from app.models.order import Order, OrderItem
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.repositories.user_repo import UserRepository
from app.schemas.cart import CustomSpecs
from app.schemas.order import (
    CheckoutRequest,
    OrderItemPriceResponse,
    OrderItemRead,
    OrderPatch,
    OrderSubmit,
    OrderSubmitItem,
    OrderSubmitResponse,
    OrderUpdateResponse,
    OrderWithItemsRead,
    ReadinessRead,
)
from app.services.cart_store import CartStore
from app.services.order_lifecycle import (
    check_transition,
    compute_order_total,
    evaluate_readiness,
    priced_subtotal,
    readiness,
    validate_price,
    validate_submission_lines,
)

logger = logging.getLogger(__name__)


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Create an order from a cart snapshot (items frozen, status pending)
      - Staff pricing: custom item prices, delivery price, delivery date
      - Status changes through the transition table + readiness gate
      - Recompute the stored total inside every mutating transaction
      - Fire notifications after commit
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        user_repo: UserRepository,
        notifier: NotificationDispatcher,
    ):
        self.order_repo = order_repo
        self.user_repo = user_repo
        self.notifier = notifier

    # -------- Customer operations --------

    def submit_order(
        self,
        session: Session,
        user: User,
        payload: OrderSubmit,
    ) -> OrderSubmitResponse:
        """
        Convert a submitted cart into an Order.

        Steps:
          1. Reject an empty cart and any bad quantity/price (no partial orders).
          2. Freeze the lines (custom items stored unpriced) and recompute
             the total from them.
          3. Create the Order (pending, delivery unpriced/unscheduled).
          4. Create one OrderItem per cart row, in cart order.
          5. Commit, then notify customer and staff.
        """
        # 1) Validate
        if not payload.items:
            raise ValidationError("Cart is empty")

        errors = validate_submission_lines(payload.items)
        if errors:
            raise ValidationError("Cart validation failed", items=errors)

        # 2) Freeze the lines. Custom items stay unpriced until staff quote them,
        #    whatever price the client sent.
        frozen = [
            OrderItem(
                position=position,
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=0.0 if line.is_custom else line.unit_price,
                is_custom=line.is_custom,
                custom_specs=(
                    line.custom_specs.canonical()
                    if line.is_custom and line.custom_specs
                    else None
                ),
            )
            for position, line in enumerate(payload.items)
        ]
        if any(line.is_custom and line.unit_price > 0 for line in payload.items):
            logger.warning("Ignoring client prices on custom items for user %s", user.id)

        # Total is never trusted from the client
        subtotal = priced_subtotal(frozen)
        if payload.total is not None and abs(payload.total - subtotal) > 0.005:
            logger.warning(
                "Submitted total %.2f differs from computed %.2f for user %s",
                payload.total,
                subtotal,
                user.id,
            )

        # 3) Order
        order = Order(
            user_id=user.id,
            status="pending",
            delivery_price=None,
            delivery_date=None,
            delivery_notes=payload.delivery_notes or "",
            total=subtotal,
        )
        order = self.order_repo.create_order(session, order)

        # 4) Items
        for item in frozen:
            item.order_id = order.id
        order_items = self.order_repo.create_items(session, frozen)

        # 5) Commit
        session.commit()
        session.refresh(order)
        logger.info("Order %s created with %d items", order.id, len(order_items))

        warnings = self.notifier.order_submitted(order, order_items, user)
        return OrderSubmitResponse(
            order=self._build_order_with_items_dto(order, order_items),
            warnings=warnings,
        )

    def checkout_cart(
        self,
        session: Session,
        user: User,
        payload: CheckoutRequest,
        cart: CartStore,
    ) -> OrderSubmitResponse:
        """
        Submit the customer's stored cart and clear it on success.
        """
        if cart.is_empty():
            raise ValidationError("Cart is empty")

        submission = OrderSubmit(
            items=[OrderSubmitItem.model_validate(it.model_dump()) for it in cart.items],
            total=cart.get_total()["total"],
            delivery_notes=payload.delivery_notes,
        )
        response = self.submit_order(session, user, submission)
        cart.clear_cart()
        return response

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderWithItemsRead]:
        orders = self.order_repo.list_for_user(session, user_id, skip, limit)
        return [self._load_dto(session, o) for o in orders]

    def get_user_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get a single order for the customer, including items.

        Someone else's order is reported as not found.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order or order.user_id != user_id:
            raise NotFound("Order", order_id)
        return self._load_dto(session, order)

    # -------- Staff operations --------

    def list_all_orders(
        self,
        session: Session,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderWithItemsRead]:
        if status == "all":
            status = None
        orders = self.order_repo.list_all(session, status, skip, limit)
        return [self._load_dto(session, o) for o in orders]

    def get_order_admin(self, session: Session, order_id: uuid.UUID) -> OrderWithItemsRead:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFound("Order", order_id)
        return self._load_dto(session, order)

    def delete_order(self, session: Session, order_id: uuid.UUID) -> None:
        order = self.order_repo.get_for_update(session, order_id)
        if not order:
            raise NotFound("Order", order_id)
        self.order_repo.delete_order(session, order)
        session.commit()
        logger.info("Order %s deleted", order_id)

    def update_order(
        self,
        session: Session,
        order_id: uuid.UUID,
        patch: OrderPatch,
    ) -> OrderUpdateResponse:
        """
        Apply a staff patch {status?, delivery_price?, delivery_date?} atomically.

        Prices and date are applied first, so a single patch can complete
        pricing and advance the status together. The readiness gate is
        evaluated against that patched state.
        """
        try:
            order = self._lock_order(session, order_id, patch.version)

            delivery_price = order.delivery_price
            if patch.delivery_price is not None:
                delivery_price = validate_price(patch.delivery_price, "delivery price")

            delivery_date = order.delivery_date
            if patch.delivery_date is not None:
                delivery_date = patch.delivery_date.isoformat()

            items = self.order_repo.list_items_for_order(session, order.id)

            new_status = order.status
            if patch.status is not None and patch.status != order.status:
                check_transition(
                    order.status,
                    patch.status,
                    evaluate_readiness(delivery_price, delivery_date, items),
                )
                new_status = patch.status
        except OrderingError:
            session.rollback()
            raise

        status_changed = new_status != order.status
        date_changed = delivery_date != order.delivery_date
        price_changed = delivery_price != order.delivery_price

        if not (status_changed or date_changed or price_changed):
            unchanged = self._build_order_with_items_dto(order, items)
            # Release the row lock
            session.rollback()
            return OrderUpdateResponse(order=unchanged)

        previous_status = order.status
        order.status = new_status
        order.delivery_price = delivery_price
        order.delivery_date = delivery_date
        self._commit_recomputed(session, order, items)

        if status_changed:
            logger.info("Order %s status %s -> %s", order.id, previous_status, new_status)

        warnings: list[str] = []
        if status_changed or date_changed:
            warnings = self._notify_customer(session, order, self.notifier.order_updated)

        return OrderUpdateResponse(
            order=self._build_order_with_items_dto(order, items),
            warnings=warnings,
        )

    def set_delivery_price(
        self,
        session: Session,
        order_id: uuid.UUID,
        price: float,
    ) -> OrderUpdateResponse:
        return self.update_order(session, order_id, OrderPatch(delivery_price=price))

    def set_custom_item_price(
        self,
        session: Session,
        item_id: uuid.UUID,
        price: float,
    ) -> OrderItemPriceResponse:
        """
        Price one custom line item and recompute the order total.

        Catalog items keep the price they were submitted with.
        """
        try:
            price = validate_price(price, "unit price")

            item = self.order_repo.get_item(session, item_id)
            if not item:
                raise NotFound("Order item", item_id)

            order = self._lock_order(session, item.order_id)

            if not item.is_custom:
                raise ValidationError(
                    "Only custom item prices can be changed; catalog prices are fixed at submission"
                )
        except OrderingError:
            session.rollback()
            raise

        changed = item.unit_price != price
        item.unit_price = price
        session.add(item)
        items = self.order_repo.list_items_for_order(session, order.id)
        self._commit_recomputed(session, order, items)
        session.refresh(item)

        warnings: list[str] = []
        if changed and price > 0:
            warnings = self._notify_customer(
                session,
                order,
                lambda o, customer: self.notifier.custom_price_set(o, item, customer),
            )

        return OrderItemPriceResponse(
            item=self._build_item_dto(item),
            order_total=order.total,
            order_version=order.version,
            warnings=warnings,
        )

    # -------- Transaction helpers --------

    def _lock_order(
        self,
        session: Session,
        order_id: uuid.UUID,
        expected_version: int | None = None,
    ) -> Order:
        order = self.order_repo.get_for_update(session, order_id)
        if not order:
            raise NotFound("Order", order_id)
        if expected_version is not None and expected_version != order.version:
            raise ConcurrencyConflict(expected_version, order.version)
        return order

    def _commit_recomputed(self, session: Session, order: Order, items: list[OrderItem]) -> None:
        """
        Recompute total from the rows read under the lock, bump version, commit.
        """
        order.total = compute_order_total(items, order.delivery_price)
        order.version += 1
        order.updated_at = datetime.now(timezone.utc)
        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)

    def _notify_customer(self, session: Session, order: Order, send) -> list[str]:
        customer = self.user_repo.get_by_id(session, order.user_id)
        if customer is None:
            logger.warning("Order %s has no customer profile; notification skipped", order.id)
            return [f"Customer for order {order.id} not found; notification skipped"]
        return send(order, customer)

    # -------- Helper DTO builders --------

    def _load_dto(self, session: Session, order: Order) -> OrderWithItemsRead:
        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    @staticmethod
    def _build_item_dto(item: OrderItem) -> OrderItemRead:
        specs = (
            CustomSpecs.model_validate(json.loads(item.custom_specs))
            if item.custom_specs
            else None
        )
        return OrderItemRead(
            id=item.id,
            order_id=item.order_id,
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            is_custom=item.is_custom,
            custom_specs=specs,
            line_total=round(item.quantity * item.unit_price, 2),
        )

    def _build_order_with_items_dto(
        self,
        order: Order,
        items: list[OrderItem],
    ) -> OrderWithItemsRead:
        """
        Compose OrderWithItemsRead from ORM models, including subtotal + readiness.
        """
        state = readiness(order, items)
        return OrderWithItemsRead(
            id=order.id,
            user_id=order.user_id,
            status=order.status,  # Literal
            delivery_price=order.delivery_price,
            delivery_date=order.delivery_date,
            delivery_notes=order.delivery_notes,
            total=order.total,
            version=order.version,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[self._build_item_dto(it) for it in items],
            subtotal=priced_subtotal(items),
            readiness=ReadinessRead(
                delivery_price_set=state.delivery_price_set,
                delivery_date_set=state.delivery_date_set,
                custom_prices_set=state.custom_prices_set,
                ready=state.ready,
                missing=state.missing,
            ),
        )
