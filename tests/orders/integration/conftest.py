import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from orders.api import cart_router, coupon_router, inventory_router, order_router, payment_router, product_router
from orders.api.errors import register_error_handlers
from orders.payments.gateway import get_gateway
from orders.payments.gateway.fake_adapter import FakeGateway

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}

ADDRESS = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "ada@example.com",
    "addressLine1": "12 Analytical Row",
    "city": "London",
    "postalCode": "N1 9GU",
    "country": "GB",
}


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def client(gateway):
    app = FastAPI()
    for router in (order_router, payment_router, inventory_router, cart_router, coupon_router, product_router):
        app.include_router(router)
    register_error_handlers(app)
    app.dependency_overrides[get_gateway] = lambda: gateway
    return TestClient(app)


@pytest.fixture()
def product(client):
    """A tracked, active product with 10 units at 25.00."""
    response = client.post(
        "/products",
        json={"sku": "SKU-001", "name": "Widget", "price": 25.0, "stockQuantity": 10},
        headers=ADMIN,
    )
    assert response.status_code == 201
    return response.json()["productId"]


@pytest.fixture()
def order_body():
    def _body(product_id, quantity=2, **extra):
        body = {
            "items": [{"productId": product_id, "quantity": quantity}],
            "billingAddress": dict(ADDRESS),
            "shippingAddress": dict(ADDRESS),
        }
        body.update(extra)
        return body

    return _body
