"""Application tests for cancellation and admin-driven status changes."""

import pytest
from orders.catalogue.product import Product
from orders.errors import AuthorizationError, IllegalTransition, OrderNotCancellable, OrderNotFound
from orders.fulfillment.cancellation import CancelOrder, UpdateOrderStatus
from orders.inventory.ledger import InventoryLedger
from orders.inventory.movement import InventoryMovement, MovementType
from orders.order.order import Order, OrderStatus
from protean import current_domain


@pytest.fixture()
def product_id(register_product):
    return register_product(stock_quantity=10)


@pytest.fixture()
def order(product_id, place_order):
    return place_order([{"product_id": product_id, "quantity": 3}])


def _cancel(order_id, actor_id="cust-001", admin=False, reason=None):
    return current_domain.process(
        CancelOrder(order_id=order_id, actor_id=actor_id, actor_is_admin=admin, reason=reason), asynchronous=False
    )


def _set_status(order_id, status, actor_id="admin-1", admin=True, comment=None):
    return current_domain.process(
        UpdateOrderStatus(order_id=order_id, status=status, actor_id=actor_id, actor_is_admin=admin, comment=comment),
        asynchronous=False,
    )


def _product(product_id) -> Product:
    return current_domain.repository_for(Product).get(product_id)


class TestCancelOrder:
    def test_owner_cancels_and_stock_returns(self, order, product_id):
        assert _cancel(order["order_id"], reason="Changed my mind") == OrderStatus.CANCELLED.value

        product = _product(product_id)
        assert product.stock_quantity == 10
        assert product.sales_count == 0

        movements = current_domain.repository_for(InventoryMovement).for_reference(order["order_number"])
        assert sorted((m.movement_type, m.quantity) for m in movements) == [
            (MovementType.RETURN.value, 3),
            (MovementType.SALE.value, -3),
        ]
        assert all(balance.balanced for balance in InventoryLedger().reconcile(product))

    def test_paid_order_can_be_cancelled(self, order, payment_event):
        payment_event("evt_1", {"order_id": order["order_id"]})

        assert _cancel(order["order_id"]) == OrderStatus.CANCELLED.value

    def test_other_customer_cannot_cancel(self, order, product_id):
        with pytest.raises(AuthorizationError):
            _cancel(order["order_id"], actor_id="cust-999")

        assert _product(product_id).stock_quantity == 7

    def test_admin_can_cancel(self, order):
        assert _cancel(order["order_id"], actor_id="admin-1", admin=True) == OrderStatus.CANCELLED.value

    def test_delivered_order_cannot_be_cancelled(self, order, product_id, payment_event):
        payment_event("evt_1", {"order_id": order["order_id"]})
        _set_status(order["order_id"], "shipped")
        _set_status(order["order_id"], "delivered")

        with pytest.raises(OrderNotCancellable):
            _cancel(order["order_id"])

        assert _product(product_id).stock_quantity == 7
        assert len(current_domain.repository_for(InventoryMovement).for_product(product_id)) == 1

    def test_cancelling_twice(self, order, product_id):
        _cancel(order["order_id"])

        with pytest.raises(OrderNotCancellable):
            _cancel(order["order_id"])
        assert _product(product_id).stock_quantity == 10

    def test_unknown_order(self):
        with pytest.raises(OrderNotFound):
            _cancel("does-not-exist")

    def test_variant_stock_returns_to_variant(self, product_id, add_variant, place_order):
        variant_id = add_variant(product_id, stock_quantity=4)
        result = place_order([{"product_id": product_id, "variant_id": variant_id, "quantity": 3}])

        _cancel(result["order_id"])

        product = _product(product_id)
        assert product.variant(variant_id).stock_quantity == 4
        assert product.stock_quantity == 10

    def test_untracked_lines_only_reverse_the_sale(self, register_product, place_order):
        untracked = register_product(sku="SKU-DIGITAL", track_inventory=False, stock_quantity=0)
        result = place_order([{"product_id": untracked, "quantity": 2}])

        _cancel(result["order_id"])

        product = _product(untracked)
        assert product.stock_quantity == 0
        assert product.sales_count == 0
        assert current_domain.repository_for(InventoryMovement).for_product(untracked) == []


class TestUpdateStatus:
    def test_ship_and_deliver(self, order, payment_event):
        payment_event("evt_1", {"order_id": order["order_id"]})

        assert _set_status(order["order_id"], "shipped", comment="DHL 123") == OrderStatus.SHIPPED.value
        assert _set_status(order["order_id"], "delivered") == OrderStatus.DELIVERED.value

        saved = current_domain.repository_for(Order).get(order["order_id"])
        assert saved.shipped_at is not None
        assert saved.delivered_at is not None
        assert [entry.to_status for entry in saved.timeline()] == [
            "pending",
            "paid",
            "processing",
            "shipped",
            "delivered",
        ]

    def test_requires_admin(self, order):
        with pytest.raises(AuthorizationError):
            _set_status(order["order_id"], "shipped", actor_id="cust-001", admin=False)

    def test_unpaid_order_cannot_ship(self, order):
        with pytest.raises(IllegalTransition):
            _set_status(order["order_id"], "shipped")

    def test_cancel_through_status_restores_stock(self, order, product_id):
        assert _set_status(order["order_id"], "cancelled", comment="Fraud check") == OrderStatus.CANCELLED.value

        assert _product(product_id).stock_quantity == 10
        saved = current_domain.repository_for(Order).get(order["order_id"])
        assert saved.admin_note == "Fraud check"
        assert str(saved.timeline()[-1].actor_id) == "admin-1"
