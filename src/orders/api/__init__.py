"""Orders HTTP API package."""

from orders.api.routes import (
    cart_router,
    coupon_router,
    inventory_router,
    order_router,
    payment_router,
    product_router,
)

__all__ = [
    "order_router",
    "payment_router",
    "inventory_router",
    "cart_router",
    "coupon_router",
    "product_router",
]
