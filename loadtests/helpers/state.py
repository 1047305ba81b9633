"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance keeps its own state. The only thing users share
is the catalogue seeded when the test starts.
"""

from dataclasses import dataclass, field


@dataclass
class Catalogue:
    """Products created once at test start and shared by every user."""

    product_ids: list[str] = field(default_factory=list)
    scarce_product_id: str | None = None
    scarce_stock: int = 0


CATALOGUE = Catalogue()


@dataclass
class CheckoutState:
    """Tracks a single customer's cart-to-paid-order journey."""

    customer_id: str | None = None
    cart_id: str | None = None
    lines: list[tuple[str, int]] = field(default_factory=list)
    order_id: str | None = None
    order_number: str | None = None
