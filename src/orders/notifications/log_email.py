"""Email channel that writes messages to the structured log instead of sending them."""

from uuid import uuid4

import structlog

from orders.notifications.email_port import EmailPort, OrderEmail, Receipt

logger = structlog.get_logger(__name__)


class LogEmailAdapter(EmailPort):
    def deliver(self, message: OrderEmail) -> Receipt:
        message_id = f"log-{uuid4().hex[:12]}"
        logger.info(
            "email_logged",
            message_id=message_id,
            kind=message.kind,
            order_number=message.order_number,
            recipient=message.to,
            subject=message.subject,
        )
        return Receipt(delivered=True, message_id=message_id)
