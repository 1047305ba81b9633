"""BDD tests for checkout."""

from orders.errors import InsufficientStock
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/checkout.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(
    parsers.cfparse('customer "{customer}" orders {quantity:d} units of "{sku}"'),
    target_fixture="placed",
)
def _(catalogue, place_order, attempt, customer, quantity, sku):
    return attempt(
        lambda: place_order([{"product_id": catalogue[sku], "quantity": quantity}], customer_id=customer)
    )


@when(
    parsers.cfparse('customer "{customer}" uses coupon "{code}" to order {quantity:d} units of "{sku}"'),
    target_fixture="placed",
)
def _(catalogue, place_order, attempt, customer, code, quantity, sku):
    return attempt(
        lambda: place_order(
            [{"product_id": catalogue[sku], "quantity": quantity}], customer_id=customer, coupon_code=code
        ),
    )


@when(parsers.cfparse('{count:d} customers each order 1 unit of "{sku}"'))
def _(catalogue, place_order, outcomes, count, sku):
    for n in range(count):
        try:
            outcomes.append(place_order([{"product_id": catalogue[sku], "quantity": 1}], customer_id=f"cust-{n}"))
        except InsufficientStock as exc:
            outcomes.append(exc)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("{count:d} orders are placed"))
def _(outcomes, count):
    assert sum(1 for outcome in outcomes if isinstance(outcome, dict)) == count


@then(parsers.cfparse('{count:d} orders are refused with "{code}"'))
def _(outcomes, count, code):
    refused = [outcome for outcome in outcomes if not isinstance(outcome, dict)]
    assert len(refused) == count
    assert all(exc.code == code for exc in refused)
