"""Integration tests for the cart, coupon and product endpoints via TestClient."""

from orders.catalogue.product import Product
from orders.coupon.coupon import Coupon
from protean import current_domain

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
CUSTOMER = {"X-User-Id": "cust-001"}


class TestProducts:
    def test_register_requires_admin(self, client):
        response = client.post("/products", json={"sku": "SKU-9", "name": "Gadget", "price": 5.0}, headers=CUSTOMER)

        assert response.status_code == 403

    def test_add_variant(self, client, product):
        response = client.post(
            f"/products/{product}/variants",
            json={"sku": "SKU-001-L", "name": "Large", "priceAdjustment": 5.0, "stockQuantity": 4},
            headers=ADMIN,
        )

        assert response.status_code == 201
        variant_id = response.json()["variantId"]
        assert current_domain.repository_for(Product).get(product).variant(variant_id).stock_quantity == 4

    def test_duplicate_variant_sku(self, client, product):
        body = {"sku": "SKU-001-L", "name": "Large"}
        client.post(f"/products/{product}/variants", json=body, headers=ADMIN)

        response = client.post(f"/products/{product}/variants", json=body, headers=ADMIN)

        assert response.status_code == 400

    def test_archived_product_cannot_be_ordered(self, client, product, order_body):
        response = client.put(f"/products/{product}/status", json={"status": "archived"}, headers=ADMIN)
        assert response.status_code == 200

        response = client.post("/orders", json=order_body(product), headers=CUSTOMER)

        assert response.status_code == 404
        assert response.json()["error"] == "product_unavailable"


class TestCoupons:
    def test_create_and_deactivate(self, client):
        response = client.post(
            "/coupons",
            json={"code": "spring", "discountType": "fixed_amount", "discountValue": 5, "usageLimit": 100},
            headers=ADMIN,
        )
        assert response.status_code == 201
        coupon_id = response.json()["couponId"]

        response = client.post(f"/coupons/{coupon_id}/deactivate", headers=ADMIN)

        assert response.status_code == 200
        coupon = current_domain.repository_for(Coupon).get(coupon_id)
        assert coupon.code == "SPRING"
        assert coupon.is_active is False

    def test_requires_admin(self, client):
        response = client.post(
            "/coupons", json={"code": "SPRING", "discountType": "percentage", "discountValue": 5}, headers=CUSTOMER
        )

        assert response.status_code == 403

    def test_percentage_over_hundred(self, client):
        response = client.post(
            "/coupons", json={"code": "HUGE", "discountType": "percentage", "discountValue": 150}, headers=ADMIN
        )

        assert response.status_code == 400


class TestCarts:
    def test_cart_lifecycle(self, client, product):
        response = client.post("/carts", json={"sessionId": "sess-1"})
        assert response.status_code == 201
        cart_id = response.json()["cartId"]

        response = client.post(f"/carts/{cart_id}/items", json={"productId": product, "quantity": 2})
        assert response.status_code == 201
        item_id = response.json()["itemId"]

        cart = client.get(f"/carts/{cart_id}").json()
        assert cart["sessionId"] == "sess-1"
        assert cart["items"] == [{"id": item_id, "productId": product, "variantId": None, "quantity": 2}]

        response = client.delete(f"/carts/{cart_id}/items/{item_id}")
        assert response.json() == {"status": "ok"}
        assert client.get(f"/carts/{cart_id}").json()["items"] == []

    def test_customer_cart(self, client):
        cart_id = client.post("/carts", json={}, headers=CUSTOMER).json()["cartId"]

        assert client.get(f"/carts/{cart_id}").json()["customerId"] == "cust-001"

    def test_unknown_cart(self, client):
        assert client.get("/carts/no-such-cart").status_code == 404

    def test_order_from_cart_clears_it(self, client, product, order_body):
        cart_id = client.post("/carts", json={}, headers=CUSTOMER).json()["cartId"]
        client.post(f"/carts/{cart_id}/items", json={"productId": product, "quantity": 2})

        response = client.post("/orders", json=order_body(product, cartId=cart_id), headers=CUSTOMER)

        assert response.status_code == 201
        assert client.get(f"/carts/{cart_id}").json()["items"] == []

    def test_order_from_another_customers_cart(self, client, product, order_body):
        cart_id = client.post("/carts", json={}, headers={"X-User-Id": "alice"}).json()["cartId"]
        client.post(f"/carts/{cart_id}/items", json={"productId": product, "quantity": 2})

        response = client.post("/orders", json=order_body(product, cartId=cart_id), headers={"X-User-Id": "bob"})

        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"
        assert len(client.get(f"/carts/{cart_id}").json()["items"]) == 1
