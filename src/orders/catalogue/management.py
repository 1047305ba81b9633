"""Catalogue management — commands and handler used by the admin collaborator."""

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from orders.catalogue.product import Product, ProductStatus
from orders.domain import orders


@orders.command(part_of="Product")
class RegisterProduct:
    sku = String(required=True, max_length=100)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="EUR")
    stock_quantity = Integer(default=0)
    track_inventory = Boolean(default=True)
    allow_backorder = Boolean(default=False)
    low_stock_threshold = Integer(default=10, min_value=0)
    status = String(choices=ProductStatus, default=ProductStatus.ACTIVE.value)


@orders.command(part_of="Product")
class AddVariant:
    product_id = Identifier(required=True)
    sku = String(required=True, max_length=100)
    name = String(required=True, max_length=255)
    price_adjustment = Float(default=0.0)
    stock_quantity = Integer(default=0)
    is_active = Boolean(default=True)


@orders.command(part_of="Product")
class SetProductStatus:
    product_id = Identifier(required=True)
    status = String(required=True, choices=ProductStatus)


@orders.command_handler(part_of=Product)
class ManageCatalogueHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        product = Product.register(
            sku=command.sku,
            name=command.name,
            price=command.price,
            currency=command.currency,
            stock_quantity=command.stock_quantity,
            track_inventory=command.track_inventory,
            allow_backorder=command.allow_backorder,
            low_stock_threshold=command.low_stock_threshold,
            status=command.status,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(AddVariant)
    def add_variant(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        variant = product.add_variant(
            sku=command.sku,
            name=command.name,
            price_adjustment=command.price_adjustment,
            stock_quantity=command.stock_quantity,
            is_active=command.is_active,
        )
        repo.add(product)
        return str(variant.id)

    @handle(SetProductStatus)
    def set_status(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.change_status(command.status)
        repo.add(product)
