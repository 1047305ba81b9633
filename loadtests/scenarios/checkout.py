"""Checkout load test scenarios.

A SequentialTaskSet journey from cart to paid order, plus a lighter user
that only browses its own order history.
"""

import random

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import (
    TEST_SIGNATURE,
    customer_headers,
    order_data,
    webhook_payment_failed,
    webhook_payment_succeeded,
)
from loadtests.helpers.response import extract_error_detail, is_retryable
from loadtests.helpers.state import CATALOGUE, CheckoutState


class CheckoutJourney(SequentialTaskSet):
    """Create Cart -> Add Items -> Place Order -> Payment Webhook -> Read Order.

    One in ten payments is declined. Orders refused for stock or coupon
    contention are counted as expected outcomes, not failures.
    """

    def on_start(self):
        self.state = CheckoutState()
        self.headers = customer_headers()
        self.state.customer_id = self.headers["X-User-Id"]

    @task
    def create_cart(self):
        with self.client.post(
            "/carts", json={}, headers=self.headers, catch_response=True, name="POST /carts"
        ) as resp:
            if resp.status_code == 201:
                self.state.cart_id = resp.json()["cartId"]
            else:
                resp.failure(f"Create cart failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def add_items(self):
        if not CATALOGUE.product_ids:
            self.interrupt()
        for product_id in random.sample(CATALOGUE.product_ids, k=min(3, len(CATALOGUE.product_ids))):
            quantity = random.randint(1, 3)
            with self.client.post(
                f"/carts/{self.state.cart_id}/items",
                json={"productId": product_id, "quantity": quantity},
                catch_response=True,
                name="POST /carts/{id}/items",
            ) as resp:
                if resp.status_code == 201:
                    self.state.lines.append((product_id, quantity))
                else:
                    resp.failure(f"Add cart item failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def place_order(self):
        with self.client.post(
            "/orders",
            json=order_data(self.state.lines, cart_id=self.state.cart_id),
            headers=self.headers,
            catch_response=True,
            name="POST /orders",
        ) as resp:
            if resp.status_code == 201:
                body = resp.json()
                self.state.order_id = body["orderId"]
                self.state.order_number = body["orderNumber"]
            elif resp.status_code == 400 and is_retryable(resp):
                resp.success()
                self.interrupt()
            else:
                resp.failure(f"Place order failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def pay(self):
        declined = random.random() < 0.1
        payload = (webhook_payment_failed if declined else webhook_payment_succeeded)(self.state.order_id)
        with self.client.post(
            "/webhooks/stripe",
            data=payload,
            headers={"Stripe-Signature": TEST_SIGNATURE, "Content-Type": "application/json"},
            catch_response=True,
            name="POST /webhooks/stripe",
        ) as resp:
            if resp.status_code != 200 or resp.json().get("outcome") != "applied":
                resp.failure(f"Webhook not applied: {resp.status_code} — {resp.text[:200]}")

    @task
    def read_order(self):
        with self.client.get(
            f"/orders/{self.state.order_number}",
            headers=self.headers,
            catch_response=True,
            name="GET /orders/{number}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Read order failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class CheckoutUser(HttpUser):
    """Customers buying from the seeded catalogue."""

    wait_time = between(1, 3)
    tasks = [CheckoutJourney]


class OrderHistoryUser(HttpUser):
    """Returning customers checking their orders."""

    wait_time = between(2, 5)

    def on_start(self):
        self.headers = customer_headers()

    @task
    def list_orders(self):
        self.client.get("/orders", headers=self.headers, name="GET /orders")
