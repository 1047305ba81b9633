"""Order numbers — ``ORD-YYYYMMDD-NNNN`` from a per-day counter aggregate.

The counter row is read and written inside the placing unit of work, so two
concurrent placements on the same day conflict on the counter's version
(or on the unique ``order_number`` column) and one of them is retried,
instead of both formatting the same number. Numbers already taken by an
existing order are skipped.
"""

import os
from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Integer, String
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.errors import PersistenceError
from orders.order.order import Order

logger = structlog.get_logger(__name__)

PREFIX = "ORD"


def max_attempts() -> int:
    return int(os.getenv("ORDERS_NUMBER_ATTEMPTS", "5"))


def format_order_number(day: str, value: int) -> str:
    return f"{PREFIX}-{day}-{value:04d}"


@orders.aggregate
class OrderSequence:
    day = String(identifier=True, max_length=8)  # YYYYMMDD, UTC
    last_value = Integer(default=0)
    updated_at = DateTime()

    def next_value(self) -> int:
        self.last_value = (self.last_value or 0) + 1
        self.updated_at = datetime.now(UTC)
        return self.last_value


def allocate_order_number(now: datetime | None = None) -> str:
    day = (now or datetime.now(UTC)).astimezone(UTC).strftime("%Y%m%d")
    sequences = current_domain.repository_for(OrderSequence)
    order_repo = current_domain.repository_for(Order)

    try:
        sequence = sequences.get(day)
    except ObjectNotFoundError:
        sequence = OrderSequence(day=day, last_value=0)

    for _ in range(max_attempts()):
        number = format_order_number(day, sequence.next_value())
        if order_repo.find_by_number(number) is None:
            sequences.add(sequence)
            return number
        logger.warning("order_number_taken", order_number=number)

    raise PersistenceError({"order_number": [f"Could not allocate an order number for {day}"]})
