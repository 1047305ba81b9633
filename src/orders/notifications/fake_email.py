"""In-memory email channel; the default outside production."""

from uuid import uuid4

from orders.notifications.email_port import EmailPort, OrderEmail, Receipt


class FakeEmailAdapter(EmailPort):
    def __init__(self):
        self.outbox: list[OrderEmail] = []
        self.error: str | None = None

    def fail_with(self, error: str = "Email delivery failed") -> None:
        """Make every following delivery fail with ``error``."""
        self.error = error

    def deliver(self, message: OrderEmail) -> Receipt:
        if self.error:
            return Receipt(delivered=False, error=self.error)

        self.outbox.append(message)
        return Receipt(delivered=True, message_id=f"email-{uuid4().hex[:12]}")

    def reset(self) -> None:
        self.outbox.clear()
        self.error = None
