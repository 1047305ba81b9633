"""Error taxonomy for order placement and fulfillment.

Every error carries a ``messages`` mapping shaped like protean's
``ValidationError.messages`` so the HTTP layer can render all of them the
same way. ``status_code`` is the HTTP status the boundary maps the error to,
and ``retryable`` tells callers whether re-reading state and retrying can
succeed.
"""

from enum import Enum


class OrderingError(Exception):
    status_code = 500
    code = "ordering_error"
    retryable = False

    def __init__(self, messages: dict[str, list[str]] | str, code: str | None = None) -> None:
        if isinstance(messages, str):
            messages = {"_entity": [messages]}
        super().__init__(messages)
        self.messages = messages
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return "; ".join(msg for msgs in self.messages.values() for msg in msgs)

    def to_dict(self) -> dict:
        return {"error": self.code, "messages": self.messages, "retryable": self.retryable}


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------
class NotFoundError(OrderingError):
    status_code = 404
    code = "not_found"


class ProductUnavailable(NotFoundError):
    code = "product_unavailable"


class OrderNotFound(NotFoundError):
    code = "order_not_found"


# ---------------------------------------------------------------------------
# Coupon eligibility
# ---------------------------------------------------------------------------
class CouponRejection(Enum):
    UNKNOWN_CODE = "unknown_code"
    INACTIVE = "inactive"
    NOT_STARTED = "not_started"
    EXPIRED = "expired"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    PER_USER_LIMIT_REACHED = "per_user_limit_reached"
    BELOW_MINIMUM_PURCHASE = "below_minimum_purchase"


class CouponInvalid(OrderingError):
    status_code = 400
    code = "coupon_invalid"

    def __init__(self, reason: CouponRejection, detail: str) -> None:
        super().__init__({"coupon_code": [detail]})
        self.reason = reason

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reason": self.reason.value}


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------
class ConflictError(OrderingError):
    status_code = 400
    code = "conflict"
    retryable = True


class InsufficientStock(ConflictError):
    code = "insufficient_stock"

    def __init__(self, sku: str, requested: int, available: int) -> None:
        super().__init__({"items": [f"Insufficient stock for {sku}: requested {requested}, available {available}"]})
        self.sku = sku
        self.requested = requested
        self.available = available


class CouponExhausted(ConflictError):
    code = "coupon_exhausted"


class PriceChanged(ConflictError):
    code = "price_changed"


class OrderNotCancellable(ConflictError):
    code = "order_not_cancellable"
    retryable = False


class IllegalTransition(ConflictError):
    code = "illegal_transition"
    retryable = False


class PaymentAlreadySettled(ConflictError):
    code = "payment_already_settled"
    retryable = False


class ConcurrentUpdate(ConflictError):
    code = "concurrent_update"


# ---------------------------------------------------------------------------
# Everything else
# ---------------------------------------------------------------------------
class AuthorizationError(OrderingError):
    status_code = 403
    code = "forbidden"


class ExternalServiceError(OrderingError):
    status_code = 502
    code = "external_service_error"
    retryable = True


class WebhookSignatureError(ExternalServiceError):
    status_code = 400
    code = "invalid_signature"
    retryable = False


class PersistenceError(OrderingError):
    status_code = 500
    code = "persistence_error"
    retryable = True
