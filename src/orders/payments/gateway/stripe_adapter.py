"""Stripe webhook adapter.

The ``Stripe-Signature`` header is checked with the Stripe SDK against the
endpoint's signing secret. Deliveries older than the tolerance are rejected
to block replays.
"""

import stripe
import structlog
from protean.exceptions import ValidationError

from orders.errors import ExternalServiceError, WebhookSignatureError
from orders.payments.gateway.port import GatewayEvent, PaymentGateway, gateway_event

logger = structlog.get_logger(__name__)

DEFAULT_TOLERANCE = 300


class StripeGateway(PaymentGateway):
    def __init__(self, webhook_secret: str | None, tolerance: int = DEFAULT_TOLERANCE) -> None:
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    def _secret(self) -> str:
        if not self.webhook_secret:
            raise ExternalServiceError("Stripe webhook secret is not configured")
        return self.webhook_secret

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        secret = self._secret()
        try:
            stripe.WebhookSignature.verify_header(payload.decode("utf-8"), signature, secret, self.tolerance)
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
            logger.warning("webhook_signature_rejected", reason=str(exc))
            return False
        return True

    def parse_webhook(self, payload: bytes, signature: str | None) -> GatewayEvent:
        secret = self._secret()
        if not signature:
            raise WebhookSignatureError("Webhook signature verification failed")

        try:
            event = stripe.Webhook.construct_event(payload, signature, secret, tolerance=self.tolerance)
        except stripe.SignatureVerificationError as exc:
            logger.warning("webhook_signature_rejected", reason=str(exc))
            raise WebhookSignatureError("Webhook signature verification failed") from exc
        except ValueError:
            raise ValidationError({"payload": ["Webhook payload is not a gateway event"]}) from None

        return gateway_event(event)
