"""Payment gateway port (abstract interface).

Adapters verify that an inbound webhook really came from the gateway and
translate its payload into a ``GatewayEvent``. Nothing downstream of the
port sees raw gateway JSON.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import stripe
from protean.exceptions import ValidationError

from orders.errors import WebhookSignatureError


@dataclass(frozen=True)
class GatewayEvent:
    """A verified, normalised gateway notification."""

    event_id: str
    event_type: str
    payment_reference: str | None = None
    metadata: dict = field(default_factory=dict)
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...

    def parse_webhook(self, payload: bytes, signature: str | None) -> GatewayEvent:
        """Verify, then decode, a webhook delivery. Fails closed."""
        if not signature or not self.verify_webhook_signature(payload, signature):
            raise WebhookSignatureError("Webhook signature verification failed")
        return gateway_event(event_from_payload(payload))


def _malformed() -> ValidationError:
    return ValidationError({"payload": ["Webhook payload is not a gateway event"]})


def event_from_payload(payload: bytes) -> stripe.Event:
    """Build a ``stripe.Event`` from a raw delivery body."""
    try:
        data = json.loads(payload)
    except ValueError:
        raise _malformed() from None
    if not isinstance(data, dict):
        raise _malformed()
    return stripe.Event.construct_from(data, None)


def _metadata(obj) -> dict:
    metadata = getattr(obj, "metadata", None)
    if not metadata:
        return {}
    return metadata.to_dict() if isinstance(metadata, stripe.StripeObject) else dict(metadata)


def gateway_event(event: stripe.Event) -> GatewayEvent:
    """Normalise a Stripe event: ``{id, type, data: {object: {...}}}``."""
    event_id = getattr(event, "id", None)
    event_type = getattr(event, "type", None)
    if not event_id or not isinstance(event_type, str):
        raise _malformed()

    obj = getattr(getattr(event, "data", None), "object", None)

    if event_type.startswith("checkout.session."):
        reference = getattr(obj, "payment_intent", None) or getattr(obj, "id", None)
    else:
        reference = getattr(obj, "id", None)

    metadata = _metadata(obj)
    customer_email = getattr(obj, "customer_email", None)
    if customer_email and "customer_email" not in metadata:
        metadata["customer_email"] = customer_email

    failure = getattr(getattr(obj, "last_payment_error", None), "message", None)
    return GatewayEvent(
        event_id=str(event_id),
        event_type=event_type,
        payment_reference=str(reference) if reference else None,
        metadata=metadata,
        failure_reason=failure,
    )
