"""PlaceOrder command and its handler."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text

from orders.domain import orders
from orders.fulfillment.coordinator import Buyer, FulfillmentCoordinator, OrderRequest
from orders.order.order import Order
from orders.pricing.engine import CartLine


@orders.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier()
    guest_email = String(max_length=255)
    items = Text(required=True)  # JSON: list of {product_id, variant_id?, quantity}
    billing_address = Text(required=True)  # JSON: address dict
    shipping_address = Text(required=True)  # JSON: address dict
    coupon_code = String(max_length=50)
    customer_note = Text()
    shipping_method = String(max_length=50)
    cart_id = Identifier()


def _lines(raw) -> list[CartLine]:
    items = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(items, list):
        raise ValidationError({"items": ["Items must be a list"]})
    try:
        return [
            CartLine(
                product_id=str(item["product_id"]),
                variant_id=str(item["variant_id"]) if item.get("variant_id") else None,
                quantity=int(item["quantity"]),
            )
            for item in items
        ]
    except (KeyError, TypeError, ValueError):
        raise ValidationError({"items": ["Each item needs a product_id and an integer quantity"]}) from None


@orders.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        request = OrderRequest(
            lines=_lines(command.items),
            billing_address=json.loads(command.billing_address),
            shipping_address=json.loads(command.shipping_address),
            buyer=Buyer(customer_id=command.customer_id, guest_email=command.guest_email),
            coupon_code=command.coupon_code,
            customer_note=command.customer_note,
            shipping_method=command.shipping_method,
            cart_id=command.cart_id,
        )
        order = FulfillmentCoordinator().create_order(request)
        return {
            "order_id": str(order.id),
            "order_number": order.order_number,
            "total_amount": order.total_amount,
            "status": order.status,
            "payment_status": order.payment_status,
        }
