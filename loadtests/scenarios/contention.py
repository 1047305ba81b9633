"""Scarce-stock contention scenario.

Every user races for the same low-stock product seeded at test start.
Exactly ``CATALOGUE.scarce_stock`` units may be sold no matter how many
users run; the locustfile checks the ledger when the test stops.
"""

from locust import HttpUser, constant_pacing, task

from loadtests.data_generators import customer_headers, order_data
from loadtests.helpers.response import extract_error_detail, is_retryable
from loadtests.helpers.state import CATALOGUE


class ScarceStockUser(HttpUser):
    """Flash-sale buyers: one unit each, as fast as possible."""

    wait_time = constant_pacing(0.2)

    @task
    def buy_last_units(self):
        if CATALOGUE.scarce_product_id is None:
            return
        with self.client.post(
            "/orders",
            json=order_data([(CATALOGUE.scarce_product_id, 1)]),
            headers=customer_headers(),
            catch_response=True,
            name="[CONTENTION] POST /orders",
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 400 and is_retryable(resp):
                # Sold out or lost a race: the expected answer once stock is gone
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code} — {extract_error_detail(resp)}")
