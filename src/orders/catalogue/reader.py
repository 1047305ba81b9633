"""Catalogue reader — read-only snapshots of products and variants for pricing."""

from collections.abc import Iterable

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from orders.catalogue.product import Product
from orders.errors import ProductUnavailable
from orders.pricing.engine import CartLine, CatalogueEntry, as_decimal

logger = structlog.get_logger(__name__)


class CatalogueReader:
    def __init__(self):
        self.products = current_domain.repository_for(Product)

    def product(self, product_id) -> Product:
        """Load a sellable product, treating inactive products as missing."""
        try:
            product = self.products.get(product_id)
        except ObjectNotFoundError:
            raise ProductUnavailable({"items": [f"Product {product_id} is unavailable"]}) from None

        if not product.is_sellable:
            logger.info("product_not_sellable", product_id=str(product_id), status=product.status)
            raise ProductUnavailable({"items": [f"Product {product_id} is unavailable"]})
        return product

    @staticmethod
    def entry_for(product: Product, variant_id=None) -> CatalogueEntry:
        variant = product.variant(variant_id) if variant_id else None
        price = as_decimal(product.price)
        if variant is not None:
            price += as_decimal(variant.price_adjustment)

        holder = variant or product
        return CatalogueEntry(
            product_id=str(product.id),
            variant_id=str(variant.id) if variant else None,
            product_name=product.name,
            variant_name=variant.name if variant else None,
            sku=holder.sku,
            unit_price=price,
            currency=product.currency,
            stock_quantity=holder.stock_quantity or 0,
            track_inventory=bool(product.track_inventory),
            allow_backorder=bool(product.allow_backorder),
        )

    def entry(self, product_id, variant_id=None) -> CatalogueEntry:
        return self.entry_for(self.product(product_id), variant_id)

    def snapshot(self, lines: Iterable[CartLine], products: dict | None = None) -> dict:
        """Build the ``(product_id, variant_id) -> CatalogueEntry`` map the pricing engine expects.

        ``products`` may carry aggregates already loaded by the caller so that
        the snapshot reflects exactly the instances that will be mutated.
        """
        products = products if products is not None else {}
        catalogue = {}
        for line in lines:
            if line.key in catalogue:
                continue
            product_id = line.key[0]
            if product_id not in products:
                products[product_id] = self.product(product_id)
            catalogue[line.key] = self.entry_for(products[product_id], line.variant_id)
        return catalogue
