"""Coupon aggregate with its append-only usage log."""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from orders.domain import orders
from orders.errors import CouponExhausted
from orders.pricing.engine import CouponTerms, DiscountType, as_decimal


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


@orders.entity(part_of="Coupon")
class CouponUsage:
    customer_key = String(required=True, max_length=255)
    order_id = Identifier(required=True)
    order_number = String(max_length=50)
    discount_amount = Float(default=0.0)
    used_at = DateTime()


@orders.aggregate
class Coupon:
    code = String(required=True, unique=True, max_length=50)
    description = String(max_length=255)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0.0)
    min_purchase_amount = Float(min_value=0.0)
    max_discount_amount = Float(min_value=0.0)
    usage_limit = Integer(min_value=0)
    usage_count = Integer(default=0)
    usage_limit_per_user = Integer(default=1, min_value=0)
    valid_from = DateTime()
    valid_until = DateTime()
    is_active = Boolean(default=True)
    usages = HasMany(CouponUsage)
    created_at = DateTime()

    @invariant.post
    def usage_count_within_limit(self):
        if self.usage_limit is not None and (self.usage_count or 0) > self.usage_limit:
            raise ValidationError({"usage_count": ["Coupon usage cannot exceed its usage limit"]})

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and (self.discount_value or 0) > 100:
            raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100"]})

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.valid_from and self.valid_until and self.valid_until < self.valid_from:
            raise ValidationError({"valid_until": ["Validity window ends before it starts"]})

    @classmethod
    def create(
        cls,
        code,
        discount_type,
        discount_value,
        description=None,
        min_purchase_amount=None,
        max_discount_amount=None,
        usage_limit=None,
        usage_limit_per_user=1,
        valid_from=None,
        valid_until=None,
    ):
        return cls(
            code=normalize_code(code),
            description=description,
            discount_type=discount_type,
            discount_value=discount_value,
            min_purchase_amount=min_purchase_amount,
            max_discount_amount=max_discount_amount,
            usage_limit=usage_limit,
            usage_limit_per_user=usage_limit_per_user,
            valid_from=valid_from,
            valid_until=valid_until,
            is_active=True,
            usage_count=0,
            created_at=datetime.now(UTC),
        )

    def deactivate(self):
        self.is_active = False

    def usage_by(self, customer_key: str) -> int:
        return sum(1 for usage in self.usages if usage.customer_key == customer_key)

    def terms(self, customer_key: str | None = None) -> CouponTerms:
        return CouponTerms(
            code=self.code,
            discount_type=DiscountType(self.discount_type),
            discount_value=as_decimal(self.discount_value),
            is_active=bool(self.is_active),
            min_purchase_amount=as_decimal(self.min_purchase_amount) if self.min_purchase_amount is not None else None,
            max_discount_amount=as_decimal(self.max_discount_amount) if self.max_discount_amount is not None else None,
            usage_limit=self.usage_limit,
            usage_count=self.usage_count or 0,
            usage_limit_per_user=self.usage_limit_per_user,
            customer_usage_count=self.usage_by(customer_key) if customer_key else 0,
            valid_from=self.valid_from,
            valid_until=self.valid_until,
        )

    def redeem(self, customer_key: str, order_id, order_number: str, discount_amount: float) -> None:
        """Count one use against the limits, failing if they were exhausted in the meantime."""
        if self.usage_limit is not None and (self.usage_count or 0) >= self.usage_limit:
            raise CouponExhausted({"coupon_code": [f"Coupon {self.code} has no uses left"]})
        if self.usage_limit_per_user is not None and self.usage_by(customer_key) >= self.usage_limit_per_user:
            raise CouponExhausted({"coupon_code": [f"Coupon {self.code} was already used by this customer"]})

        self.usage_count = (self.usage_count or 0) + 1
        self.add_usages(
            CouponUsage(
                customer_key=customer_key,
                order_id=order_id,
                order_number=order_number,
                discount_amount=discount_amount,
                used_at=datetime.now(UTC),
            )
        )


@orders.repository(part_of=Coupon)
class CouponRepository:
    def find_by_code(self, code: str) -> Coupon | None:
        """Case-insensitive lookup; codes are stored upper-case."""
        return self._dao.query.filter(code=normalize_code(code)).all().first