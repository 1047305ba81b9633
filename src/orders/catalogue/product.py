"""Product aggregate with Variant entities — the sellable catalogue and its stock.

Price, stock and availability flags live here. Stock is only ever changed
through the inventory ledger, which pairs every change with an
``InventoryMovement``.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Integer, String

from orders.domain import orders
from orders.errors import InsufficientStock, ProductUnavailable


class ProductStatus(Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


@orders.entity(part_of="Product")
class Variant:
    """A sellable configuration of a product (size, colour) with its own stock."""

    sku = String(required=True, max_length=100)
    name = String(required=True, max_length=255)
    price_adjustment = Float(default=0.0)
    stock_quantity = Integer(default=0)
    initial_stock = Integer(default=0)
    is_active = Boolean(default=True)


@orders.aggregate
class Product:
    sku = String(required=True, max_length=100)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="EUR")
    status = String(choices=ProductStatus, default=ProductStatus.DRAFT.value)
    track_inventory = Boolean(default=True)
    allow_backorder = Boolean(default=False)
    stock_quantity = Integer(default=0)
    initial_stock = Integer(default=0)
    low_stock_threshold = Integer(default=10)
    sales_count = Integer(default=0)
    variants = HasMany(Variant)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def stock_cannot_go_negative_without_backorder(self):
        if not self.track_inventory or self.allow_backorder:
            return
        if (self.stock_quantity or 0) < 0:
            raise ValidationError({"stock_quantity": ["Stock cannot go negative"]})
        for variant in self.variants:
            if (variant.stock_quantity or 0) < 0:
                raise ValidationError({"stock_quantity": [f"Stock for variant {variant.sku} cannot go negative"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def register(
        cls,
        sku,
        name,
        price,
        currency="EUR",
        stock_quantity=0,
        track_inventory=True,
        allow_backorder=False,
        low_stock_threshold=10,
        status=ProductStatus.ACTIVE.value,
    ):
        now = datetime.now(UTC)
        return cls(
            sku=sku,
            name=name,
            price=price,
            currency=currency,
            stock_quantity=stock_quantity,
            initial_stock=stock_quantity,
            track_inventory=track_inventory,
            allow_backorder=allow_backorder,
            low_stock_threshold=low_stock_threshold,
            status=status,
            created_at=now,
            updated_at=now,
        )

    def add_variant(self, sku, name, price_adjustment=0.0, stock_quantity=0, is_active=True):
        if any(v.sku == sku for v in self.variants):
            raise ValidationError({"sku": [f"Variant {sku} already exists"]})

        variant = Variant(
            sku=sku,
            name=name,
            price_adjustment=price_adjustment,
            stock_quantity=stock_quantity,
            initial_stock=stock_quantity,
            is_active=is_active,
        )
        self.add_variants(variant)
        self.updated_at = datetime.now(UTC)
        return variant

    def change_status(self, status):
        if status not in {s.value for s in ProductStatus}:
            raise ValidationError({"status": [f"Unknown product status {status}"]})
        self.status = status
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    @property
    def is_sellable(self) -> bool:
        return self.status == ProductStatus.ACTIVE.value

    def variant(self, variant_id, active_only=True) -> Variant:
        """Return the variant with ``variant_id`` or raise ProductUnavailable."""
        variant = next((v for v in self.variants if str(v.id) == str(variant_id)), None)
        if variant is None or (active_only and not variant.is_active):
            raise ProductUnavailable({"variant_id": [f"Variant {variant_id} is unavailable"]})
        return variant

    def stock_holder(self, variant_id=None, active_only=True):
        """The product itself, or the variant when one is referenced, holds the stock."""
        return self.variant(variant_id, active_only=active_only) if variant_id else self

    def available(self, variant_id=None) -> int:
        return self.stock_holder(variant_id).stock_quantity or 0

    @property
    def enforces_stock(self) -> bool:
        return bool(self.track_inventory) and not self.allow_backorder

    @property
    def is_low_on_stock(self) -> bool:
        return bool(self.track_inventory) and (self.stock_quantity or 0) <= (self.low_stock_threshold or 0)

    # -------------------------------------------------------------------
    # Stock mutations; only the inventory ledger calls these
    # -------------------------------------------------------------------
    def take_stock(self, quantity: int, variant_id=None) -> None:
        holder = self.stock_holder(variant_id)
        available = holder.stock_quantity or 0
        if self.enforces_stock and quantity > available:
            raise InsufficientStock(holder.sku, quantity, available)

        holder.stock_quantity = available - quantity
        self.updated_at = datetime.now(UTC)

    def return_stock(self, quantity: int, variant_id=None) -> None:
        holder = self.stock_holder(variant_id, active_only=False)
        holder.stock_quantity = (holder.stock_quantity or 0) + quantity
        self.updated_at = datetime.now(UTC)

    def correct_stock(self, delta: int, variant_id=None) -> None:
        holder = self.stock_holder(variant_id, active_only=False)
        new_quantity = (holder.stock_quantity or 0) + delta
        if self.enforces_stock and new_quantity < 0:
            raise ValidationError(
                {"quantity": [f"Adjustment would leave {holder.sku} at {new_quantity}, below zero"]}
            )

        holder.stock_quantity = new_quantity
        self.updated_at = datetime.now(UTC)

    def record_sale(self, quantity: int) -> None:
        self.sales_count = (self.sales_count or 0) + quantity

    def reverse_sale(self, quantity: int) -> None:
        self.sales_count = max((self.sales_count or 0) - quantity, 0)


@orders.repository(part_of=Product)
class ProductRepository:
    def low_stock(self) -> list[Product]:
        """Tracked products at or below their low-stock threshold."""
        products = self._dao.query.filter(track_inventory=True).all().items
        return [product for product in products if product.is_low_on_stock]
