# app/repositories/order_repo.py
import uuid

from sqlmodel import Session, select

from app.models.order import Order, OrderItem


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - No commits here; every order mutation is one transaction and the
        service is responsible for calling session.commit().
    """

    # ---- Orders ----

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(session.exec(stmt).all())

    def list_all(
        self,
        session: Session,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = select(Order)
        if status is not None:
            stmt = stmt.where(Order.status == status)
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def get_for_update(self, session: Session, order_id: uuid.UUID) -> Order | None:
        """
        Load an order with a row lock held until commit/rollback.

        populate_existing makes sure a copy already in the identity map is
        refreshed from the locked row.
        """
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return session.exec(stmt).first()

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.flush()
        return order

    def delete_order(self, session: Session, order: Order) -> None:
        for item in self.list_items_for_order(session, order.id):
            session.delete(item)
        session.flush()
        session.delete(order)
        session.flush()

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = (
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.position)
        )
        return list(session.exec(stmt).all())

    def get_item(self, session: Session, item_id: uuid.UUID) -> OrderItem | None:
        return session.get(OrderItem, item_id)

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        for item in items:
            session.refresh(item)
        return items
