"""Append-only audit record of a stock change."""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, Integer, String, Text

from orders.domain import orders


class MovementType(Enum):
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"


@orders.aggregate
class InventoryMovement:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    movement_type = String(required=True, choices=MovementType)
    quantity = Integer(required=True)  # signed: negative takes stock out
    reference = String(max_length=100)  # order number, weakly referenced
    note = Text()
    actor_id = Identifier()
    created_at = DateTime()

    @classmethod
    def record(cls, product_id, variant_id, movement_type, quantity, reference=None, note=None, actor_id=None):
        return cls(
            product_id=str(product_id),
            variant_id=str(variant_id) if variant_id else None,
            movement_type=movement_type.value,
            quantity=quantity,
            reference=reference,
            note=note,
            actor_id=actor_id,
            created_at=datetime.now(UTC),
        )


@orders.repository(part_of=InventoryMovement)
class InventoryMovementRepository:
    def for_product(self, product_id, variant_id=None) -> list[InventoryMovement]:
        """Movements for a product, optionally narrowed to one variant, newest first."""
        movements = self._drain(self._dao.query.filter(product_id=str(product_id)))
        if variant_id:
            movements = [m for m in movements if str(m.variant_id) == str(variant_id)]
        return sorted(movements, key=lambda m: m.created_at, reverse=True)

    def for_reference(self, reference: str) -> list[InventoryMovement]:
        return self._drain(self._dao.query.filter(reference=reference))

    @staticmethod
    def _drain(query, page_size=100) -> list[InventoryMovement]:
        # Query results are paged; the ledger audit needs every row
        items = []
        while True:
            page = query.offset(len(items)).limit(page_size).all()
            items.extend(page.items)
            if not page.items or len(items) >= page.total:
                return items
