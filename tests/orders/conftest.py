import json

import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def orders_bed():
    from orders.domain import orders
    from orders.utils.db import drop_db, setup_db

    bed = DomainFixture(orders)
    bed.setup()
    setup_db(orders)
    yield bed
    drop_db(orders)
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(orders_bed):
    with orders_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()

        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Catalogue, coupons and orders set up through their commands
# ---------------------------------------------------------------------------
ADDRESS = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "email": "ada@example.com",
    "address_line1": "12 Analytical Row",
    "city": "London",
    "postal_code": "N1 9GU",
    "country": "GB",
}


@pytest.fixture()
def address():
    return dict(ADDRESS)


@pytest.fixture()
def register_product():
    from orders.catalogue.management import RegisterProduct
    from protean import current_domain

    def _register(**overrides):
        defaults = {
            "sku": "SKU-001",
            "name": "Widget",
            "price": 25.0,
            "stock_quantity": 10,
        }
        defaults.update(overrides)
        return current_domain.process(RegisterProduct(**defaults), asynchronous=False)

    return _register


@pytest.fixture()
def add_variant():
    from orders.catalogue.management import AddVariant
    from protean import current_domain

    def _add(product_id, **overrides):
        defaults = {"sku": "SKU-001-L", "name": "Large", "price_adjustment": 5.0, "stock_quantity": 4}
        defaults.update(overrides)
        return current_domain.process(AddVariant(product_id=product_id, **defaults), asynchronous=False)

    return _add


@pytest.fixture()
def create_coupon():
    from orders.coupon.management import CreateCoupon
    from protean import current_domain

    def _create(**overrides):
        defaults = {"code": "SAVE10", "discount_type": "percentage", "discount_value": 10.0}
        defaults.update(overrides)
        return current_domain.process(CreateCoupon(**defaults), asynchronous=False)

    return _create


@pytest.fixture()
def place_order(address):
    from orders.fulfillment.placement import PlaceOrder
    from protean import current_domain

    def _place(items, customer_id="cust-001", guest_email=None, **overrides):
        command = PlaceOrder(
            customer_id=None if guest_email else customer_id,
            guest_email=guest_email,
            items=json.dumps(items),
            billing_address=json.dumps(overrides.pop("billing_address", address)),
            shipping_address=json.dumps(overrides.pop("shipping_address", address)),
            **overrides,
        )
        return current_domain.process(command, asynchronous=False)

    return _place


@pytest.fixture()
def payment_event():
    from orders.fulfillment.payment_events import ProcessPaymentEvent
    from protean import current_domain

    def _deliver(event_id, metadata=None, event_type="payment_intent.succeeded", reference="pi_001", **extra):
        command = ProcessPaymentEvent(
            event_id=event_id,
            event_type=event_type,
            payment_reference=reference,
            metadata=json.dumps(metadata or {}),
            **extra,
        )
        return current_domain.process(command, asynchronous=False)

    return _deliver
