# app/core/notifications.py
"""
Order notification trigger points.

Every notification is fire-and-forget: it runs after the order change is
committed, and a delivery failure is logged and handed back as a warning
string instead of an exception.
"""

from __future__ import annotations

import logging
from html import escape

from app.core import email_client
from app.core.config import Settings
from app.models.order import Order, OrderItem
from app.models.user import User

logger = logging.getLogger(__name__)

STATUS_MESSAGES: dict[str, str] = {
    "pending": "Your order has been updated.",
    "confirmed": "Your order has been confirmed and is being prepared.",
    "processing": "Your order is now being processed.",
    "shipped": "Your order has been shipped and is on its way!",
    "delivered": "Your order has been delivered. Thank you for your business!",
    "cancelled": "Your order has been cancelled. Please contact us if you have questions.",
}


def order_ref(order: Order) -> str:
    """Short reference shown to humans: first UUID block, upper-cased."""
    return str(order.id).split("-")[0].upper()


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _price_label(item: OrderItem) -> str:
    if item.is_custom and not item.unit_price > 0:
        return "TBD"
    return _money(item.unit_price)


class NotificationDispatcher:
    def __init__(self, settings: Settings):
        self.settings = settings

    def _send(self, event: str, to_email: str, subject: str, text_body: str, html_body: str) -> str | None:
        if not self.settings.NOTIFICATIONS_ENABLED:
            logger.info("Notifications disabled; skipping %s to %s", event, to_email)
            return None
        try:
            email_client.send_email(
                to_email=to_email,
                subject=subject,
                text_body=text_body,
                html_body=html_body,
            )
        except Exception as e:
            logger.warning("Notification %s to %s failed: %s", event, to_email, e)
            return f"Notification '{event}' to {to_email} failed: {e}"
        logger.info("Notification %s sent to %s", event, to_email)
        return None

    @staticmethod
    def _collect(*results: str | None) -> list[str]:
        return [r for r in results if r]

    # ---- trigger points ----

    def order_submitted(self, order: Order, items: list[OrderItem], customer: User) -> list[str]:
        """New order: confirmation to the customer, heads-up to staff."""
        ref = order_ref(order)
        has_custom = any(it.is_custom for it in items)
        item_count = sum(it.quantity for it in items)
        total_label = "TBD" if has_custom else _money(order.total)

        lines = [f"- {it.product_name} x{it.quantity} @ {_price_label(it)}" for it in items]
        customer_text = "\n".join(
            [
                f"Hi {customer.name},",
                "",
                "Thank you for your order. We've received it and will process it shortly.",
                f"Order #: {ref}",
                *lines,
                f"Total: {total_label}",
            ]
            + (["", "Your order contains custom items. We will contact you with pricing shortly."] if has_custom else [])
        )
        rows = "".join(
            f"<tr><td>{escape(it.product_name)}</td><td>{it.quantity}</td><td>{_price_label(it)}</td></tr>"
            for it in items
        )
        customer_html = (
            f"<h2>Order Confirmed</h2><p>Hi {escape(customer.name)},</p>"
            f"<p><strong>Order #:</strong> {ref}</p>"
            f"<table>{rows}</table><p><strong>Total:</strong> {total_label}</p>"
            f'<p><a href="{self.settings.SITE_URL}/portal/orders">View Order</a></p>'
        )

        company = customer.company_name or customer.name
        admin_subject = f"New Order #{ref} from {company}" + (" [Custom Items]" if has_custom else "")
        admin_text = "\n".join(
            [
                f"Order #: {ref}",
                f"Customer: {company}",
                f"Email: {customer.email}",
                f"Items: {item_count}",
                f"Total: {'Contains custom items (TBD)' if has_custom else _money(order.total)}",
            ]
            + (["Action required: custom items need pricing"] if has_custom else [])
        )
        admin_html = "<br>".join(escape(line) for line in admin_text.splitlines()) + (
            f'<p><a href="{self.settings.SITE_URL}/admin">View in Admin Panel</a></p>'
        )

        return self._collect(
            self._send(
                "order_confirmation",
                customer.email,
                f"Order Confirmed #{ref}",
                customer_text,
                customer_html,
            ),
            self._send(
                "new_order_admin",
                self.settings.ADMIN_EMAIL,
                admin_subject,
                admin_text,
                admin_html,
            ),
        )

    def order_updated(self, order: Order, customer: User) -> list[str]:
        """Status change or new delivery date."""
        ref = order_ref(order)
        status_title = order.status.capitalize()
        text_lines = [
            f"Hi {customer.name},",
            "",
            f"Order #: {ref}",
            f"Status: {status_title}",
        ]
        if order.delivery_date:
            text_lines.append(f"Expected Delivery: {order.delivery_date}")
        text_lines += ["", STATUS_MESSAGES.get(order.status, "Your order status has been updated.")]
        text_body = "\n".join(text_lines)
        html_body = "<br>".join(escape(line) for line in text_lines) + (
            f'<p><a href="{self.settings.SITE_URL}/portal/orders">View Order Details</a></p>'
        )
        return self._collect(
            self._send(
                "order_status_update",
                customer.email,
                f"Order #{ref} - {status_title}",
                text_body,
                html_body,
            )
        )

    def custom_price_set(self, order: Order, item: OrderItem, customer: User) -> list[str]:
        """Staff priced a custom pallet."""
        ref = order_ref(order)
        text_lines = [
            f"Hi {customer.name},",
            "",
            "We've reviewed your custom pallet request and have finalized the pricing:",
            f"Order #: {ref}",
            f"Item: {item.product_name}",
            f"Quantity: {item.quantity}",
            f"Unit Price: {_money(item.unit_price)}",
            f"Line Total: {_money(item.unit_price * item.quantity)}",
            "",
            f"New Order Total: {_money(order.total)}",
        ]
        return self._collect(
            self._send(
                "custom_price_set",
                customer.email,
                f"Custom Quote Ready - Order #{ref}",
                "\n".join(text_lines),
                "<br>".join(escape(line) for line in text_lines),
            )
        )
