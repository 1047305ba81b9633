"""Tests for webhook verification and event decoding."""

import json
import time

import pytest
import stripe
from orders.errors import ExternalServiceError, WebhookSignatureError
from orders.payments.gateway import build_gateway, get_gateway, reset_gateway
from orders.payments.gateway.fake_adapter import TEST_SIGNATURE, FakeGateway
from orders.payments.gateway.port import event_from_payload, gateway_event
from orders.payments.gateway.stripe_adapter import StripeGateway
from protean.exceptions import ValidationError

SECRET = "whsec_test"


def _payload(event_type="payment_intent.succeeded", obj=None, event_id="evt_001"):
    return json.dumps(
        {"id": event_id, "type": event_type, "data": {"object": obj or {"id": "pi_001", "metadata": {}}}}
    ).encode()


def _signature(payload, timestamp, secret=SECRET):
    return stripe.WebhookSignature._compute_signature(f"{timestamp}.{payload.decode('utf-8')}", secret)


def _header(payload, timestamp=None, secret=SECRET):
    timestamp = int(time.time()) if timestamp is None else timestamp
    return f"t={timestamp},v1={_signature(payload, timestamp, secret)}"


def _decode(payload):
    return gateway_event(event_from_payload(payload))


class TestStripeSignature:
    def test_valid_signature(self):
        payload = _payload()

        assert StripeGateway(SECRET).verify_webhook_signature(payload, _header(payload))

    def test_tampered_payload(self):
        header = _header(_payload())

        assert not StripeGateway(SECRET).verify_webhook_signature(_payload(event_id="evt_forged"), header)

    def test_wrong_secret(self):
        payload = _payload()

        assert not StripeGateway(SECRET).verify_webhook_signature(payload, _header(payload, secret="whsec_other"))

    def test_any_matching_v1_accepted(self):
        payload = _payload()
        timestamp = int(time.time())
        header = f"t={timestamp},v1=deadbeef,v1={_signature(payload, timestamp)}"

        assert StripeGateway(SECRET).verify_webhook_signature(payload, header)

    def test_outside_tolerance(self):
        payload = _payload()
        stale = int(time.time()) - 400

        assert not StripeGateway(SECRET, tolerance=300).verify_webhook_signature(payload, _header(payload, stale))

    def test_malformed_header(self):
        assert not StripeGateway(SECRET).verify_webhook_signature(_payload(), "garbage")

    def test_missing_secret(self):
        with pytest.raises(ExternalServiceError):
            StripeGateway(None).verify_webhook_signature(_payload(), "t=1,v1=abc")
        with pytest.raises(ExternalServiceError):
            StripeGateway("").parse_webhook(_payload(), "t=1,v1=abc")

    def test_parse_webhook_fails_closed(self):
        gateway = StripeGateway(SECRET)

        with pytest.raises(WebhookSignatureError):
            gateway.parse_webhook(_payload(), None)
        with pytest.raises(WebhookSignatureError):
            gateway.parse_webhook(_payload(), "t=1,v1=abc")

    def test_parse_signed_delivery(self):
        payload = _payload(obj={"id": "pi_042", "metadata": {"order_number": "ORD-20260314-000001"}})

        event = StripeGateway(SECRET).parse_webhook(payload, _header(payload))

        assert event.event_id == "evt_001"
        assert event.event_type == "payment_intent.succeeded"
        assert event.payment_reference == "pi_042"
        assert event.metadata == {"order_number": "ORD-20260314-000001"}

    def test_signed_garbage_is_a_validation_error(self):
        payload = b"{not json"

        with pytest.raises(ValidationError):
            StripeGateway(SECRET).parse_webhook(payload, _header(payload))


class TestFakeGateway:
    def test_accepts_test_signature(self):
        gateway = FakeGateway()
        event = gateway.parse_webhook(_payload(), TEST_SIGNATURE)

        assert event.event_id == "evt_001"
        assert gateway.calls[0]["signature"] == TEST_SIGNATURE

    def test_rejects_anything_else(self):
        with pytest.raises(WebhookSignatureError):
            FakeGateway().parse_webhook(_payload(), "nope")


class TestGatewayEvent:
    def test_checkout_session_uses_payment_intent(self):
        event = _decode(
            _payload(
                "checkout.session.completed",
                {
                    "id": "cs_001",
                    "payment_intent": "pi_777",
                    "customer_email": "guest@example.com",
                    "metadata": {"cart_id": "cart-1"},
                },
            )
        )

        assert event.payment_reference == "pi_777"
        assert event.metadata == {"cart_id": "cart-1", "customer_email": "guest@example.com"}

    def test_checkout_session_without_intent_uses_session_id(self):
        event = _decode(_payload("checkout.session.completed", {"id": "cs_001"}))

        assert event.payment_reference == "cs_001"

    def test_failure_reason(self):
        event = _decode(
            _payload(
                "payment_intent.payment_failed",
                {"id": "pi_001", "last_payment_error": {"message": "Your card was declined."}},
            )
        )

        assert event.failure_reason == "Your card was declined."

    def test_builds_a_stripe_event(self):
        assert isinstance(event_from_payload(_payload()), stripe.Event)

    def test_malformed_payload(self):
        with pytest.raises(ValidationError):
            _decode(b"not json")
        with pytest.raises(ValidationError):
            _decode(b"[]")
        with pytest.raises(ValidationError):
            _decode(json.dumps({"type": "x"}).encode())


class TestGatewaySelection:
    @pytest.fixture(autouse=True)
    def _environment(self, monkeypatch):
        for name in ("ENV", "ENVIRONMENT"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("PROTEAN_ENV", "test")

    def test_fake_by_default(self):
        assert isinstance(build_gateway(), FakeGateway)

    def test_stripe_from_environment(self, monkeypatch):
        monkeypatch.setenv("PAYMENT_GATEWAY", "stripe")
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", SECRET)
        reset_gateway()

        gateway = get_gateway()

        assert isinstance(gateway, StripeGateway)
        assert gateway.webhook_secret == SECRET
        assert get_gateway() is gateway

    @pytest.mark.parametrize("environment", ["production", "staging"])
    def test_live_environments_refuse_the_fake(self, monkeypatch, environment):
        monkeypatch.setenv("PROTEAN_ENV", environment)

        with pytest.raises(ExternalServiceError):
            build_gateway()

        monkeypatch.setenv("PAYMENT_GATEWAY", "fake")
        with pytest.raises(ExternalServiceError):
            build_gateway()

    def test_live_environment_with_stripe(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("PAYMENT_GATEWAY", "stripe")
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", SECRET)

        assert isinstance(build_gateway(), StripeGateway)
