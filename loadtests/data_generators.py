"""Faker-based data generators for Locust load test scenarios.

Payloads use the camelCase field names of the Orders API request schemas
and pass its validation rules (two-letter country, 1..N items, quantity
of at least one).
"""

import json
import random
import uuid

from faker import Faker

fake = Faker()

ADMIN_HEADERS = {"X-User-Id": "loadtest-admin", "X-User-Role": "admin"}
TEST_SIGNATURE = "test-signature"


def customer_headers(customer_id: str | None = None) -> dict:
    return {"X-User-Id": customer_id or f"cust-lt-{uuid.uuid4().hex[:8]}"}


def valid_email() -> str:
    local = fake.user_name()[:20]
    return f"{local}.{uuid.uuid4().hex[:4]}@{fake.free_email_domain()}"


def valid_sku(prefix: str = "LT") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


# ---------- Catalogue ----------


def product_data(stock_quantity: int | None = None, sku: str | None = None) -> dict:
    """Generate a RegisterProductRequest payload."""
    return {
        "sku": sku or valid_sku("PROD"),
        "name": f"{fake.word().capitalize()} {fake.word().capitalize()}"[:255],
        "price": round(random.uniform(4.99, 89.99), 2),
        "stockQuantity": stock_quantity if stock_quantity is not None else random.randint(500, 5000),
        "lowStockThreshold": 5,
    }


def coupon_data(usage_limit: int | None = None) -> dict:
    data = {
        "code": f"LT{uuid.uuid4().hex[:6].upper()}",
        "discountType": random.choice(["percentage", "fixed_amount"]),
        "discountValue": random.choice([5, 10, 15]),
        "usageLimitPerUser": 1,
    }
    if usage_limit is not None:
        data["usageLimit"] = usage_limit
    return data


# ---------- Orders ----------


def address_data() -> dict:
    return {
        "firstName": fake.first_name()[:100],
        "lastName": fake.last_name()[:100],
        "email": valid_email(),
        "addressLine1": fake.street_address()[:255],
        "city": fake.city()[:100],
        "postalCode": fake.postcode()[:20],
        "country": random.choice(["GB", "DE", "FR", "NL", "IE"]),
    }


def order_data(lines: list[tuple[str, int]], coupon_code: str | None = None, cart_id: str | None = None) -> dict:
    """Generate a CreateOrderRequest payload for ``(product_id, quantity)`` lines."""
    address = address_data()
    data = {
        "items": [{"productId": product_id, "quantity": quantity} for product_id, quantity in lines],
        "billingAddress": address,
        "shippingAddress": address,
        "shippingMethod": random.choice(["standard", "express"]),
    }
    if coupon_code:
        data["couponCode"] = coupon_code
    if cart_id:
        data["cartId"] = cart_id
    if random.random() < 0.2:
        data["customerNote"] = fake.sentence()[:200]
    return data


# ---------- Payments ----------


def webhook_payment_succeeded(order_id: str) -> bytes:
    """A Stripe-shaped ``payment_intent.succeeded`` body for the fake gateway."""
    return json.dumps(
        {
            "id": f"evt_{uuid.uuid4().hex}",
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": f"pi_{uuid.uuid4().hex[:16]}", "metadata": {"order_id": order_id}}},
        }
    ).encode()


def webhook_payment_failed(order_id: str) -> bytes:
    return json.dumps(
        {
            "id": f"evt_{uuid.uuid4().hex}",
            "type": "payment_intent.payment_failed",
            "data": {
                "object": {
                    "id": f"pi_{uuid.uuid4().hex[:16]}",
                    "metadata": {"order_id": order_id},
                    "last_payment_error": {"message": "Your card was declined."},
                }
            },
        }
    ).encode()
