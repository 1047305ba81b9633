"""Fake payment gateway for development and testing.

Accepts deliveries signed with the literal ``test-signature`` and records
every verification attempt so tests can assert on them.
"""

from orders.payments.gateway.port import PaymentGateway

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGateway):
    def __init__(self, signature: str = TEST_SIGNATURE) -> None:
        self.signature = signature
        self.calls: list[dict] = []

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        self.calls.append({"method": "verify_webhook_signature", "payload": payload, "signature": signature})
        return signature == self.signature
