"""Manual stock adjustment by an admin."""

from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from orders.catalogue.product import Product
from orders.domain import orders
from orders.inventory.ledger import InventoryLedger
from orders.inventory.movement import InventoryMovement


@orders.command(part_of="InventoryMovement")
class AdjustStock:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)  # signed delta
    note = Text(required=True)
    reference = String(max_length=100)
    actor_id = Identifier()


@orders.command_handler(part_of=InventoryMovement)
class AdjustStockHandler:
    @handle(AdjustStock)
    def adjust_stock(self, command):
        products = current_domain.repository_for(Product)
        product = products.get(command.product_id)

        movement = InventoryLedger().adjust(
            product,
            variant_id=command.variant_id,
            delta=command.quantity,
            note=command.note,
            actor_id=command.actor_id,
            reference=command.reference,
        )
        products.add(product)
        return str(movement.id)
