"""BDD tests for order cancellation."""

from orders.fulfillment.cancellation import CancelOrder
from protean import current_domain
from pytest_bdd import parsers, scenarios, when

scenarios("features/order_cancellation.feature")


@when(parsers.cfparse('"{customer}" cancels the order'))
def _(placed, attempt, customer):
    attempt(
        lambda: current_domain.process(
            CancelOrder(order_id=placed["order_id"], actor_id=customer, reason="No longer needed"),
            asynchronous=False,
        ),
    )
