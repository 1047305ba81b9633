"""Payment gateway factory.

``get_gateway`` is the FastAPI dependency the webhook route declares, so
tests swap adapters with ``app.dependency_overrides``. The adapter is
picked from the environment:

- ``PAYMENT_GATEWAY=stripe`` → StripeGateway with ``STRIPE_WEBHOOK_SECRET``
- anything else → FakeGateway, outside production and staging only

Production and staging refuse to start on the fake adapter, whose signature
is a public constant.
"""

import os
from functools import lru_cache

from orders.errors import ExternalServiceError
from orders.payments.gateway.fake_adapter import FakeGateway
from orders.payments.gateway.port import PaymentGateway
from orders.payments.gateway.stripe_adapter import DEFAULT_TOLERANCE, StripeGateway
from orders.utils.logging import deployment_environment

LIVE_ENVIRONMENTS = ("production", "staging")


def build_gateway() -> PaymentGateway:
    if os.getenv("PAYMENT_GATEWAY", "fake").lower() == "stripe":
        return StripeGateway(
            webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
            tolerance=int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", str(DEFAULT_TOLERANCE))),
        )

    environment = deployment_environment()
    if environment in LIVE_ENVIRONMENTS:
        raise ExternalServiceError(f"Payment gateway is not configured: set PAYMENT_GATEWAY=stripe in {environment}")
    return FakeGateway()


@lru_cache(maxsize=1)
def get_gateway() -> PaymentGateway:
    return build_gateway()


def reset_gateway() -> None:
    """Forget the cached adapter (after changing the environment in tests)."""
    get_gateway.cache_clear()
