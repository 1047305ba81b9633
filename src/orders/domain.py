"""Orders bounded context — order placement and payment-driven fulfillment.

Owns the order aggregate, the inventory ledger, coupons and the shopping
cart in a single domain so that one unit of work covers stock reservation,
order persistence and coupon redemption.
"""

import structlog
from protean.domain import Domain

orders = Domain(name="orders")

logger = structlog.get_logger(__name__)
