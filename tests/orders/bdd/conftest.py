"""Shared BDD fixtures and step definitions for the Orders domain."""

import pytest
from orders.catalogue.product import Product
from orders.errors import OrderingError
from orders.fulfillment.cancellation import CancelOrder, UpdateOrderStatus
from orders.order.order import Order
from protean import current_domain
from pytest_bdd import given, parsers, then


# ---------------------------------------------------------------------------
# State shared between steps
# ---------------------------------------------------------------------------
@pytest.fixture()
def catalogue():
    """SKU -> product id for products created in Given steps."""
    return {}


@pytest.fixture()
def error():
    """Container for the domain error raised by the last When step."""
    return {"exc": None}


@pytest.fixture()
def outcomes():
    return []


@pytest.fixture()
def attempt(error):
    """Run an action and record a domain error instead of raising it."""

    def _attempt(action):
        try:
            return action()
        except OrderingError as exc:
            error["exc"] = exc
            return None

    return _attempt


def _order(placed) -> Order:
    return current_domain.repository_for(Order).get(placed["order_id"])


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{sku}" priced at {price:f} with {stock:d} units in stock'))
def _(catalogue, register_product, sku, price, stock):
    catalogue[sku] = register_product(sku=sku, name=f"Product {sku}", price=price, stock_quantity=stock)


@given(parsers.cfparse('a coupon "{code}" for {percent:d} percent off'))
def _(create_coupon, code, percent):
    create_coupon(code=code, discount_type="percentage", discount_value=float(percent))


@given(
    parsers.cfparse('customer "{customer}" has placed an order for {quantity:d} units of "{sku}"'),
    target_fixture="placed",
)
def _(catalogue, place_order, customer, quantity, sku):
    return place_order([{"product_id": catalogue[sku], "quantity": quantity}], customer_id=customer)


@given(parsers.cfparse('the order has been paid with "{reference}"'))
def _(placed, payment_event, reference):
    payment_event(f"evt_{reference}", {"order_id": placed["order_id"]}, reference=reference)


@given(parsers.cfparse('the order has been moved to "{status}"'))
def _(placed, status):
    current_domain.process(
        UpdateOrderStatus(order_id=placed["order_id"], status=status, actor_id="admin-1", actor_is_admin=True),
        asynchronous=False,
    )


@given(parsers.cfparse('the order has been cancelled by "{customer}"'))
def _(placed, customer):
    current_domain.process(CancelOrder(order_id=placed["order_id"], actor_id=customer), asynchronous=False)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the stock of "{sku}" is {stock:d}'))
def _(catalogue, sku, stock):
    assert current_domain.repository_for(Product).get(catalogue[sku]).stock_quantity == stock


@then(parsers.cfparse('the order status is "{status}"'))
def _(placed, status):
    assert _order(placed).status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def _(placed, status):
    assert _order(placed).payment_status == status


@then(parsers.cfparse("the order total is {total:f}"))
def _(placed, total):
    assert _order(placed).total_amount == pytest.approx(total)


@then(parsers.cfparse("the order history has {count:d} entries"))
def _(placed, count):
    assert len(_order(placed).timeline()) == count


@then(parsers.cfparse('the request is refused with "{code}"'))
def _(error, code):
    assert error["exc"] is not None
    assert error["exc"].code == code
