"""Payment-gateway events — idempotent reconciliation of verified webhook deliveries.

Gateways deliver at least once. Each external event id is recorded in a
``ProcessedPaymentEvent`` inside the same unit of work as its effects, so a
redelivery finds the record and is acknowledged without touching any order,
stock or coupon. Unhandled event types are acknowledged and not recorded.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.fulfillment.coordinator import FulfillmentCoordinator, PaymentOutcome

logger = structlog.get_logger(__name__)

CONFIRMING_EVENTS = {"checkout.session.completed", "payment_intent.succeeded"}
FAILING_EVENTS = {"payment_intent.payment_failed"}


@orders.aggregate
class ProcessedPaymentEvent:
    event_id = String(identifier=True, max_length=255)
    event_type = String(required=True, max_length=100)
    payment_reference = String(max_length=255)
    order_id = Identifier()
    outcome = String(required=True, max_length=20)
    processed_at = DateTime()


@orders.command(part_of="ProcessedPaymentEvent")
class ProcessPaymentEvent:
    event_id = String(required=True, max_length=255)
    event_type = String(required=True, max_length=100)
    payment_reference = String(max_length=255)
    metadata = Text()  # JSON object
    failure_reason = String(max_length=255)


def _metadata(raw) -> dict:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError({"metadata": ["Event metadata is not valid JSON"]}) from None
    return value if isinstance(value, dict) else {}


@orders.command_handler(part_of=ProcessedPaymentEvent)
class PaymentEventHandler:
    @handle(ProcessPaymentEvent)
    def process(self, command):
        repo = current_domain.repository_for(ProcessedPaymentEvent)
        log = logger.bind(event_id=command.event_id, event_type=command.event_type)

        try:
            previous = repo.get(command.event_id)
        except ObjectNotFoundError:
            previous = None
        if previous is not None:
            log.info("payment_event_duplicate", outcome=previous.outcome)
            return PaymentOutcome.DUPLICATE.value

        if command.event_type not in CONFIRMING_EVENTS | FAILING_EVENTS:
            log.info("payment_event_ignored")
            return PaymentOutcome.IGNORED.value

        metadata = _metadata(command.metadata)
        coordinator = FulfillmentCoordinator()
        if command.event_type in FAILING_EVENTS:
            outcome, order = coordinator.record_payment_failure(
                command.payment_reference, metadata, reason=command.failure_reason
            )
        else:
            outcome, order = coordinator.confirm_payment(command.payment_reference, metadata)

        repo.add(
            ProcessedPaymentEvent(
                event_id=command.event_id,
                event_type=command.event_type,
                payment_reference=command.payment_reference,
                order_id=str(order.id) if order is not None else None,
                outcome=outcome.value,
                processed_at=datetime.now(UTC),
            )
        )
        log.info("payment_event_processed", outcome=outcome.value, payment_reference=command.payment_reference)
        return outcome.value
