"""Application tests for payment reconciliation from gateway events."""

import json

import pytest
from orders.cart.cart import ShoppingCart
from orders.cart.items import AddToCart, CreateCart
from orders.catalogue.product import Product
from orders.fulfillment.cancellation import CancelOrder
from orders.fulfillment.payment_events import ProcessedPaymentEvent
from orders.order.order import Order, OrderStatus, PaymentStatus
from protean import current_domain
from protean.exceptions import ObjectNotFoundError


@pytest.fixture()
def pending_order(register_product, place_order):
    product_id = register_product(stock_quantity=10)
    result = place_order([{"product_id": product_id, "quantity": 2}])
    return result


def _order(order_id) -> Order:
    return current_domain.repository_for(Order).get(order_id)


def _orders() -> list[Order]:
    return current_domain.repository_for(Order)._dao.query.all().items


class TestConfirmExistingOrder:
    def test_by_order_id(self, pending_order, payment_event):
        outcome = payment_event("evt_1", {"order_id": pending_order["order_id"]}, reference="pi_100")

        assert outcome == "applied"
        order = _order(pending_order["order_id"])
        assert order.payment_status == PaymentStatus.PAID.value
        assert order.status == OrderStatus.PROCESSING.value
        assert order.payment_reference == "pi_100"

    def test_by_order_number(self, pending_order, payment_event):
        outcome = payment_event(
            "evt_1",
            {"order_number": pending_order["order_number"]},
            event_type="checkout.session.completed",
            reference="pi_100",
        )

        assert outcome == "applied"
        assert _order(pending_order["order_id"]).payment_status == PaymentStatus.PAID.value

    def test_event_is_recorded(self, pending_order, payment_event):
        payment_event("evt_1", {"order_id": pending_order["order_id"]})

        record = current_domain.repository_for(ProcessedPaymentEvent).get("evt_1")
        assert record.outcome == "applied"
        assert str(record.order_id) == pending_order["order_id"]

    def test_redelivery_is_a_no_op(self, pending_order, payment_event):
        payment_event("evt_1", {"order_id": pending_order["order_id"]})
        history = len(_order(pending_order["order_id"]).status_history)

        assert payment_event("evt_1", {"order_id": pending_order["order_id"]}) == "duplicate"
        assert len(_order(pending_order["order_id"]).status_history) == history

    def test_same_payment_under_new_event_id(self, pending_order, payment_event):
        payment_event("evt_1", {"order_id": pending_order["order_id"]}, reference="pi_100")

        outcome = payment_event("evt_2", {"order_id": pending_order["order_id"]}, reference="pi_100")

        assert outcome == "duplicate"
        assert len(_order(pending_order["order_id"]).status_history) == 3

    def test_cancelled_order_is_not_paid(self, pending_order, payment_event):
        current_domain.process(
            CancelOrder(order_id=pending_order["order_id"], actor_id="cust-001"), asynchronous=False
        )

        outcome = payment_event("evt_1", {"order_id": pending_order["order_id"]})

        assert outcome == "rejected"
        order = _order(pending_order["order_id"])
        assert order.status == OrderStatus.CANCELLED.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert current_domain.repository_for(ProcessedPaymentEvent).get("evt_1").outcome == "rejected"

    def test_unknown_order_id_is_ignored(self, payment_event):
        assert payment_event("evt_1", {"order_id": "missing"}) == "ignored"


class TestPaymentFailure:
    def test_failure_is_recorded(self, pending_order, payment_event):
        outcome = payment_event(
            "evt_1",
            {"order_id": pending_order["order_id"]},
            event_type="payment_intent.payment_failed",
            failure_reason="Your card was declined.",
        )

        assert outcome == "applied"
        order = _order(pending_order["order_id"])
        assert order.payment_status == PaymentStatus.FAILED.value
        assert order.status == OrderStatus.PENDING.value
        assert order.timeline()[-1].comment == "Your card was declined."

    def test_failure_after_payment_is_rejected(self, pending_order, payment_event):
        payment_event("evt_1", {"order_id": pending_order["order_id"]})

        outcome = payment_event(
            "evt_2", {"order_id": pending_order["order_id"]}, event_type="payment_intent.payment_failed"
        )

        assert outcome == "rejected"
        assert _order(pending_order["order_id"]).payment_status == PaymentStatus.PAID.value


class TestUnhandledEvents:
    def test_other_types_are_acknowledged_but_not_recorded(self, pending_order, payment_event):
        assert payment_event("evt_1", {"order_id": pending_order["order_id"]}, event_type="charge.refunded") == "ignored"

        with pytest.raises(ObjectNotFoundError):
            current_domain.repository_for(ProcessedPaymentEvent).get("evt_1")
        assert _order(pending_order["order_id"]).payment_status == PaymentStatus.PENDING.value

    def test_unmatched_confirmation(self, payment_event):
        assert payment_event("evt_1", {}) == "ignored"


class TestPaidCheckout:
    @pytest.fixture()
    def cart(self, register_product):
        product_id = register_product(stock_quantity=3)
        cart_id = current_domain.process(CreateCart(session_id="sess-1"), asynchronous=False)
        current_domain.process(AddToCart(cart_id=cart_id, product_id=product_id, quantity=2), asynchronous=False)
        return {"cart_id": cart_id, "product_id": product_id}

    @pytest.fixture()
    def metadata(self, cart, address):
        return {
            "cart_id": cart["cart_id"],
            "customer_email": "guest@example.com",
            "billing_address": json.dumps(address),
            "shipping_address": json.dumps(address),
        }

    def test_creates_paid_order_from_cart(self, cart, metadata, payment_event):
        outcome = payment_event("evt_1", metadata, event_type="checkout.session.completed", reference="pi_200")

        assert outcome == "created"
        [order] = _orders()
        assert order.guest_email == "guest@example.com"
        assert order.payment_status == PaymentStatus.PAID.value
        assert order.status == OrderStatus.PROCESSING.value
        assert order.payment_reference == "pi_200"
        assert current_domain.repository_for(Product).get(cart["product_id"]).stock_quantity == 1
        assert len(current_domain.repository_for(ShoppingCart).get(cart["cart_id"]).items) == 0

    def test_redelivery_creates_one_order(self, cart, metadata, payment_event):
        payment_event("evt_1", metadata, event_type="checkout.session.completed", reference="pi_200")

        assert payment_event("evt_1", metadata, event_type="checkout.session.completed", reference="pi_200") == (
            "duplicate"
        )
        assert payment_event("evt_2", metadata, event_type="checkout.session.completed", reference="pi_200") == (
            "duplicate"
        )
        assert len(_orders()) == 1
        assert current_domain.repository_for(Product).get(cart["product_id"]).stock_quantity == 1

    def test_out_of_stock_is_rejected(self, cart, metadata, payment_event):
        repo = current_domain.repository_for(Product)
        product = repo.get(cart["product_id"])
        product.stock_quantity = 1
        repo.add(product)

        outcome = payment_event("evt_1", metadata, event_type="checkout.session.completed")

        assert outcome == "rejected"
        assert _orders() == []
        assert repo.get(cart["product_id"]).stock_quantity == 1
        assert len(current_domain.repository_for(ShoppingCart).get(cart["cart_id"]).items) == 1

    def test_missing_address_is_rejected(self, cart, payment_event):
        outcome = payment_event(
            "evt_1",
            {"cart_id": cart["cart_id"], "customer_email": "guest@example.com"},
            event_type="checkout.session.completed",
        )

        assert outcome == "rejected"
        assert _orders() == []

    def test_missing_cart_is_rejected(self, metadata, payment_event):
        metadata["cart_id"] = "no-such-cart"

        assert payment_event("evt_1", metadata, event_type="checkout.session.completed") == "rejected"

    def test_cart_of_another_customer_is_rejected(self, register_product, address, payment_event):
        product_id = register_product()
        cart_id = current_domain.process(CreateCart(customer_id="alice"), asynchronous=False)
        current_domain.process(AddToCart(cart_id=cart_id, product_id=product_id, quantity=1), asynchronous=False)
        metadata = {
            "cart_id": cart_id,
            "user_id": "bob",
            "billing_address": json.dumps(address),
            "shipping_address": json.dumps(address),
        }

        assert payment_event("evt_1", metadata, event_type="checkout.session.completed") == "rejected"
        assert _orders() == []
        assert len(current_domain.repository_for(ShoppingCart).get(cart_id).items) == 1
