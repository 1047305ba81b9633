"""Order cancellation and admin status changes."""

from protean import handle
from protean.fields import Boolean, Identifier, String, Text

from orders.domain import orders
from orders.fulfillment.coordinator import Actor, FulfillmentCoordinator
from orders.order.order import Order, OrderStatus


@orders.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = Text()
    actor_id = Identifier()
    actor_is_admin = Boolean(default=False)


@orders.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    comment = Text()
    actor_id = Identifier()
    actor_is_admin = Boolean(default=False)


@orders.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = FulfillmentCoordinator().cancel_order(
            command.order_id,
            Actor(user_id=command.actor_id, is_admin=bool(command.actor_is_admin)),
            reason=command.reason,
        )
        return order.status

    @handle(UpdateOrderStatus)
    def update_status(self, command):
        order = FulfillmentCoordinator().update_status(
            command.order_id,
            command.status,
            Actor(user_id=command.actor_id, is_admin=bool(command.actor_is_admin)),
            comment=command.comment,
        )
        return order.status
