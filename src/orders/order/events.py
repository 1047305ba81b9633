"""Domain events for the Order aggregate.

Raised by the aggregate and dispatched when the unit of work commits, so
subscribers only ever see facts that were actually persisted.
"""

from protean.fields import DateTime, Float, Identifier, String, Text

from orders.domain import orders


@orders.event(part_of="Order")
class OrderPlaced:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier()
    contact_email = String()
    total_amount = Float(required=True)
    currency = String(default="EUR")
    items = Text()  # JSON: list of {sku, name, quantity, subtotal}
    placed_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderPaid:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    contact_email = String()
    total_amount = Float(required=True)
    payment_reference = String()
    paid_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderPaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    payment_reference = String()
    reason = String()
    failed_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    contact_email = String()
    reason = String()
    cancelled_by = Identifier()
    cancelled_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderStatusChanged:
    """Admin-driven fulfillment progress (shipped, delivered)."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    changed_by = Identifier()
    changed_at = DateTime(required=True)
