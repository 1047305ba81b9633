"""Customer emails for order events.

Runs after the order's unit of work commits. A failed delivery is logged and
never propagates: the order has already been placed, paid or cancelled.
"""

import json

import structlog
from protean.utils.mixins import handle

from orders.domain import orders
from orders.notifications import get_email_channel
from orders.notifications.email_port import OrderEmail
from orders.order.events import OrderCancelled, OrderPaid, OrderPlaced
from orders.order.order import Order

logger = structlog.get_logger(__name__)


def _send(kind: str, order_number: str, to: str | None, subject: str, body: str) -> None:
    if not to:
        logger.info("order_email_skipped", kind=kind, order_number=order_number, reason="no_recipient")
        return

    receipt = get_email_channel().deliver(
        OrderEmail(kind=kind, order_number=order_number, to=to, subject=subject, body=body)
    )
    if not receipt.delivered:
        logger.warning("order_email_failed", kind=kind, order_number=order_number, error=receipt.error)
        return
    logger.info("order_email_sent", kind=kind, order_number=order_number, message_id=receipt.message_id)


@orders.event_handler(part_of=Order)
class OrderEmailsHandler:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        items = json.loads(event.items) if event.items else []
        lines = "\n".join(f"  {item['quantity']} x {item['name']} ({item['sku']})" for item in items)
        _send(
            "placed",
            event.order_number,
            event.contact_email,
            subject=f"Order {event.order_number} received",
            body=f"Thank you for your order.\n\n{lines}\n\nTotal: {event.total_amount:.2f} {event.currency}",
        )

    @handle(OrderPaid)
    def on_order_paid(self, event: OrderPaid) -> None:
        _send(
            "paid",
            event.order_number,
            event.contact_email,
            subject=f"Payment received for order {event.order_number}",
            body=f"We received your payment of {event.total_amount:.2f}. Your order is being prepared.",
        )

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        reason = f"\n\nReason: {event.reason}" if event.reason else ""
        _send(
            "cancelled",
            event.order_number,
            event.contact_email,
            subject=f"Order {event.order_number} cancelled",
            body=f"Your order {event.order_number} has been cancelled.{reason}",
        )
