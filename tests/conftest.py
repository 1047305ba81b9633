import os
from pathlib import Path

import pytest

_ORDERS_SETTINGS = (
    "ORDERS_CURRENCY",
    "ORDERS_SHIPPING_FEE",
    "ORDERS_FREE_SHIPPING_THRESHOLD",
    "ORDERS_FREE_SHIPPING_BASIS",
    "ORDERS_TAX_RATE",
    "ORDERS_TAX_BASE",
    "ORDERS_NUMBER_ATTEMPTS",
    "ORDERS_COMMIT_RETRIES",
    "ORDERS_EMAIL_CHANNEL",
    "PAYMENT_GATEWAY",
    "STRIPE_WEBHOOK_SECRET",
)


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the protean config overlay before any domain is imported."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    """Every test starts from the built-in pricing, gateway and email defaults."""
    for name in _ORDERS_SETTINGS:
        monkeypatch.delenv(name, raising=False)

    from orders.notifications import reset_email_channel
    from orders.payments.gateway import reset_gateway

    reset_gateway()
    reset_email_channel()
    yield
    reset_gateway()
    reset_email_channel()
