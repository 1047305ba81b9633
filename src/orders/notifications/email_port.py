"""Outbound email port used by the order notification handler."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class OrderEmail:
    kind: str
    order_number: str
    to: str
    subject: str
    body: str


@dataclass(frozen=True)
class Receipt:
    delivered: bool
    message_id: str | None = None
    error: str | None = None


class EmailPort(ABC):
    @abstractmethod
    def deliver(self, message: OrderEmail) -> Receipt:
        """Hand one message to the channel.

        Adapters report delivery problems in the returned ``Receipt``
        instead of raising.
        """
