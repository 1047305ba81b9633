"""Inventory ledger — every stock change paired 1:1 with an InventoryMovement.

The ledger mutates Product aggregates handed to it by the caller and stages
the movement in the current unit of work; the caller adds each product it
passed in to the repository once it is done with it. Nothing is
visible to other transactions until the enclosing command handler returns;
an exception anywhere in the handler discards stock changes and movements
together.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from orders.catalogue.product import Product
from orders.inventory.movement import InventoryMovement, MovementType

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockBalance:
    """Reconciliation of one stock holder: what changed versus what was recorded."""

    product_id: str
    variant_id: str | None
    sku: str
    initial_stock: int
    stock_quantity: int
    recorded_delta: int

    @property
    def expected_delta(self) -> int:
        return self.stock_quantity - self.initial_stock

    @property
    def balanced(self) -> bool:
        return self.expected_delta == self.recorded_delta


class InventoryLedger:
    def __init__(self):
        self.movements = current_domain.repository_for(InventoryMovement)

    def _record(self, product, variant_id, movement_type, quantity, reference=None, note=None, actor_id=None):
        movement = InventoryMovement.record(
            product_id=product.id,
            variant_id=variant_id,
            movement_type=movement_type,
            quantity=quantity,
            reference=reference,
            note=note,
            actor_id=actor_id,
        )
        self.movements.add(movement)
        return movement

    def reserve(self, product: Product, variant_id, quantity: int, reference: str) -> bool:
        """Take ``quantity`` out of stock for a sale.

        Returns whether stock was actually reserved: products that do not
        track inventory only count the sale.
        """
        product.record_sale(quantity)
        if not product.track_inventory:
            return False

        product.take_stock(quantity, variant_id)
        self._record(product, variant_id, MovementType.SALE, -quantity, reference=reference)
        logger.debug(
            "stock_reserved",
            product_id=str(product.id),
            variant_id=variant_id,
            quantity=quantity,
            reference=reference,
        )
        return True

    def release(self, product: Product, variant_id, quantity: int, reference: str, reason: str, reserved=True) -> None:
        """Return stock taken by ``reserve``; unreserved lines only reverse the sale count."""
        product.reverse_sale(quantity)
        if not reserved:
            return

        product.return_stock(quantity, variant_id)
        self._record(product, variant_id, MovementType.RETURN, quantity, reference=reference, note=reason)
        logger.debug(
            "stock_released",
            product_id=str(product.id),
            variant_id=variant_id,
            quantity=quantity,
            reference=reference,
        )

    def adjust(self, product: Product, variant_id, delta: int, note: str, actor_id=None, reference=None):
        """Manual correction by an administrator."""
        if delta == 0:
            raise ValidationError({"quantity": ["Adjustment quantity cannot be zero"]})
        if not product.track_inventory:
            raise ValidationError({"product_id": [f"Product {product.sku} does not track inventory"]})

        product.correct_stock(delta, variant_id)
        movement = self._record(
            product, variant_id, MovementType.ADJUSTMENT, delta, reference=reference, note=note, actor_id=actor_id
        )
        logger.info(
            "stock_adjusted",
            product_id=str(product.id),
            variant_id=variant_id,
            delta=delta,
            actor_id=actor_id,
        )
        return movement

    def reconcile(self, product: Product) -> list[StockBalance]:
        """Compare each holder's stock drift with the sum of its recorded movements."""
        movements = self.movements.for_product(product.id)
        recorded: dict[str | None, int] = {}
        for movement in movements:
            key = str(movement.variant_id) if movement.variant_id else None
            recorded[key] = recorded.get(key, 0) + movement.quantity

        balances = [
            StockBalance(
                product_id=str(product.id),
                variant_id=None,
                sku=product.sku,
                initial_stock=product.initial_stock or 0,
                stock_quantity=product.stock_quantity or 0,
                recorded_delta=recorded.get(None, 0),
            )
        ]
        for variant in product.variants:
            balances.append(
                StockBalance(
                    product_id=str(product.id),
                    variant_id=str(variant.id),
                    sku=variant.sku,
                    initial_stock=variant.initial_stock or 0,
                    stock_quantity=variant.stock_quantity or 0,
                    recorded_delta=recorded.get(str(variant.id), 0),
                )
            )

        for balance in balances:
            if not balance.balanced:
                logger.warning(
                    "stock_out_of_balance",
                    product_id=balance.product_id,
                    variant_id=balance.variant_id,
                    expected_delta=balance.expected_delta,
                    recorded_delta=balance.recorded_delta,
                )
        return balances
