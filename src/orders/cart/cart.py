"""Shopping cart aggregate — lines a customer or guest intends to buy.

A cart only holds ``(product, variant?, quantity)`` lines; prices are
resolved by the pricing engine when the cart is ordered. Placing an order
from a cart clears its lines inside the same unit of work.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from orders.domain import orders
from orders.pricing.engine import CartLine


@orders.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@orders.aggregate
class ShoppingCart:
    customer_id = Identifier()  # Nullable for guest carts
    session_id = String(max_length=255)  # For guest cart identification
    items = HasMany(CartItem)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, customer_id=None, session_id=None):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            session_id=session_id,
            created_at=now,
            updated_at=now,
        )

    def _find(self, product_id, variant_id):
        return next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id) and str(i.variant_id or "") == str(variant_id or "")
            ),
            None,
        )

    def add_item(self, product_id, quantity, variant_id=None):
        """Add an item to the cart (or increase quantity if already present)."""
        now = datetime.now(UTC)
        existing = self._find(product_id, variant_id)
        if existing:
            existing.quantity += quantity
            item = existing
        else:
            item = CartItem(product_id=product_id, variant_id=variant_id, quantity=quantity, added_at=now)
            self.add_items(item)

        self.updated_at = now
        return item

    def remove_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})

        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

    def clear(self):
        for item in list(self.items):
            self.remove_items(item)
        self.updated_at = datetime.now(UTC)

    def lines(self) -> list[CartLine]:
        return [
            CartLine(
                product_id=str(item.product_id),
                variant_id=str(item.variant_id) if item.variant_id else None,
                quantity=item.quantity,
            )
            for item in self.items
        ]
