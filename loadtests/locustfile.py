"""Orders Load Testing — Locust entry point.

Seeds a catalogue when the test starts, then discovers all user classes
from the scenarios package. When the test stops, the inventory ledger of
the contended product is reconciled and printed.

Usage:
    # All scenarios (web UI):
    locust -f loadtests/locustfile.py --host http://localhost:8000

    # Flash-sale contention only:
    locust -f loadtests/locustfile.py ScarceStockUser

    # Headless (CI mode):
    locust -f loadtests/locustfile.py CheckoutUser --headless \
           -u 50 -r 5 -t 300s --csv=results/loadtest

The server must run with the default fake payment gateway
(``PAYMENT_GATEWAY`` unset) so that webhook deliveries are accepted.
"""

import logging
import time

import requests
from locust import events

from loadtests.data_generators import ADMIN_HEADERS, product_data
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import CATALOGUE

# Import all user classes so Locust discovers them
from loadtests.scenarios.checkout import CheckoutUser, OrderHistoryUser  # noqa: F401
from loadtests.scenarios.contention import ScarceStockUser  # noqa: F401

logger = logging.getLogger("loadtest")

CATALOGUE_SIZE = 20
SCARCE_STOCK = 25


def _register(host: str, payload: dict) -> str:
    resp = requests.post(f"{host}/products", json=payload, headers=ADMIN_HEADERS, timeout=10)
    resp.raise_for_status()
    return resp.json()["productId"]


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    """Log error details for every failed request."""
    if exception:
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code >= 400:
        detail = extract_error_detail(response)
        logger.error("[%s] %s %s: %s", response.status_code, request_type, name, detail)


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    """Seed the shared catalogue and the contended product."""
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')}")
    print(f"[LOADTEST] Target host: {environment.host}")

    CATALOGUE.product_ids = [_register(environment.host, product_data()) for _ in range(CATALOGUE_SIZE)]
    CATALOGUE.scarce_product_id = _register(environment.host, product_data(stock_quantity=SCARCE_STOCK))
    CATALOGUE.scarce_stock = SCARCE_STOCK
    print(f"[LOADTEST] Seeded {CATALOGUE_SIZE} products and 1 product with {SCARCE_STOCK} units\n")


@events.test_stop.add_listener
def on_test_stop(environment, **_kwargs):
    """Reconcile the contended product: stock must never go below zero or drift from the ledger."""
    print(f"\n[LOADTEST] Stopped at {time.strftime('%H:%M:%S')}")
    if CATALOGUE.scarce_product_id is None:
        return
    try:
        resp = requests.get(
            f"{environment.host}/inventory/{CATALOGUE.scarce_product_id}/reconciliation",
            headers=ADMIN_HEADERS,
            timeout=10,
        )
        resp.raise_for_status()
    except requests.RequestException as e:
        print(f"[LOADTEST] Could not reconcile stock: {e}\n")
        return

    report = resp.json()
    for holder in report["holders"]:
        print(
            f"[LOADTEST] {holder['sku']}: stock {holder['stockQuantity']} of {holder['initialStock']}, "
            f"ledger {holder['recordedDelta']:+d}, balanced={holder['balanced']}"
        )
    if not report["balanced"] or any(holder["stockQuantity"] < 0 for holder in report["holders"]):
        environment.process_exit_code = 1
        print("[LOADTEST] Inventory invariant violated\n")
