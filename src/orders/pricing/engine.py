"""Pricing engine — turns cart lines and a catalogue snapshot into a priced quote.

Pure functions over immutable inputs: nothing here reads or writes storage.
Amounts are carried as unrounded ``Decimal`` values and each component
(subtotal, discount, shipping, tax) is rounded half-up to cents exactly
once. The total is the sum of the rounded components, so
``total == subtotal - discount + shipping + tax`` always holds to the cent.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from protean.exceptions import ValidationError

from orders.errors import CouponInvalid, CouponRejection, InsufficientStock, ProductUnavailable
from orders.pricing.policy import ZERO, PricingPolicy

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


def to_money(value) -> Decimal:
    return as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    variant_id: str | None = None

    @property
    def key(self) -> tuple[str, str | None]:
        return (str(self.product_id), str(self.variant_id) if self.variant_id else None)


@dataclass(frozen=True)
class CatalogueEntry:
    """Read snapshot of one product, or one variant of a product."""

    product_id: str
    variant_id: str | None
    product_name: str
    variant_name: str | None
    sku: str
    unit_price: Decimal
    currency: str
    stock_quantity: int
    track_inventory: bool
    allow_backorder: bool

    @property
    def enforces_stock(self) -> bool:
        return self.track_inventory and not self.allow_backorder


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


@dataclass(frozen=True)
class CouponTerms:
    """Read snapshot of a coupon, including how often the current customer has used it."""

    code: str
    discount_type: DiscountType
    discount_value: Decimal
    is_active: bool = True
    min_purchase_amount: Decimal | None = None
    max_discount_amount: Decimal | None = None
    usage_limit: int | None = None
    usage_count: int = 0
    usage_limit_per_user: int | None = None
    customer_usage_count: int = 0
    valid_from: datetime | None = None
    valid_until: datetime | None = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class QuotedLine:
    product_id: str
    variant_id: str | None
    product_name: str
    variant_name: str | None
    sku: str
    unit_price: Decimal
    quantity: int
    subtotal: Decimal
    tracks_stock: bool


@dataclass(frozen=True)
class Quote:
    lines: tuple[QuotedLine, ...]
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    coupon_code: str | None = None

    def same_totals(self, other: "Quote") -> bool:
        return (self.subtotal, self.discount, self.shipping, self.tax, self.total) == (
            other.subtotal,
            other.discount,
            other.shipping,
            other.tax,
            other.total,
        )


# ---------------------------------------------------------------------------
# Coupon rules
# ---------------------------------------------------------------------------
def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def check_coupon(terms: CouponTerms, subtotal: Decimal, now: datetime) -> None:
    """Raise ``CouponInvalid`` with the first rule the coupon fails."""
    if not terms.is_active:
        raise CouponInvalid(CouponRejection.INACTIVE, f"Coupon {terms.code} is not active")
    if terms.valid_from and _aware(now) < _aware(terms.valid_from):
        raise CouponInvalid(CouponRejection.NOT_STARTED, f"Coupon {terms.code} is not valid yet")
    if terms.valid_until and _aware(now) > _aware(terms.valid_until):
        raise CouponInvalid(CouponRejection.EXPIRED, f"Coupon {terms.code} has expired")
    if terms.usage_limit is not None and terms.usage_count >= terms.usage_limit:
        raise CouponInvalid(CouponRejection.USAGE_LIMIT_REACHED, f"Coupon {terms.code} has reached its usage limit")
    if terms.usage_limit_per_user is not None and terms.customer_usage_count >= terms.usage_limit_per_user:
        raise CouponInvalid(
            CouponRejection.PER_USER_LIMIT_REACHED, f"Coupon {terms.code} was already used the maximum number of times"
        )
    if terms.min_purchase_amount is not None and subtotal < terms.min_purchase_amount:
        raise CouponInvalid(
            CouponRejection.BELOW_MINIMUM_PURCHASE,
            f"Coupon {terms.code} requires a minimum purchase of {to_money(terms.min_purchase_amount)}",
        )


def compute_discount(terms: CouponTerms, subtotal: Decimal) -> Decimal:
    """Unrounded discount: capped by ``max_discount_amount`` and never above the subtotal."""
    if terms.discount_type is DiscountType.PERCENTAGE:
        discount = subtotal * terms.discount_value / HUNDRED
        if terms.max_discount_amount is not None:
            discount = min(discount, terms.max_discount_amount)
    else:
        discount = terms.discount_value
    return min(max(discount, ZERO), subtotal)


# ---------------------------------------------------------------------------
# Quote
# ---------------------------------------------------------------------------
def _resolve(line: CartLine, catalogue: Mapping) -> CatalogueEntry:
    entry = catalogue.get(line.key)
    if entry is None:
        raise ProductUnavailable({"items": [f"Product {line.product_id} is unavailable"]})
    return entry


def check_stock(lines: Sequence[CartLine], catalogue: Mapping) -> None:
    """Lines naming the same product/variant are summed before comparing to stock."""
    requested: dict[tuple, int] = {}
    for line in lines:
        requested[line.key] = requested.get(line.key, 0) + line.quantity

    for key, quantity in requested.items():
        entry = catalogue[key]
        if entry.enforces_stock and quantity > entry.stock_quantity:
            raise InsufficientStock(entry.sku, quantity, entry.stock_quantity)


def price_cart(
    lines: Sequence[CartLine],
    catalogue: Mapping[tuple[str, str | None], CatalogueEntry],
    policy: PricingPolicy,
    coupon: CouponTerms | None = None,
    now: datetime | None = None,
) -> Quote:
    if not lines:
        raise ValidationError({"items": ["At least one item is required"]})
    for line in lines:
        if line.quantity is None or line.quantity < 1:
            raise ValidationError({"items": [f"Quantity for {line.product_id} must be at least 1"]})

    entries = [_resolve(line, catalogue) for line in lines]
    for entry in entries:
        if entry.currency != policy.currency:
            raise ValidationError(
                {"items": [f"{entry.sku} is priced in {entry.currency}, orders are taken in {policy.currency}"]}
            )
    check_stock(lines, catalogue)

    quoted = tuple(
        QuotedLine(
            product_id=entry.product_id,
            variant_id=entry.variant_id,
            product_name=entry.product_name,
            variant_name=entry.variant_name,
            sku=entry.sku,
            unit_price=to_money(entry.unit_price),
            quantity=line.quantity,
            subtotal=to_money(entry.unit_price * line.quantity),
            tracks_stock=entry.track_inventory,
        )
        for line, entry in zip(lines, entries, strict=True)
    )
    raw_subtotal = sum((entry.unit_price * line.quantity for line, entry in zip(lines, entries, strict=True)), ZERO)

    raw_discount = ZERO
    if coupon is not None:
        check_coupon(coupon, raw_subtotal, now or datetime.now(UTC))
        raw_discount = compute_discount(coupon, raw_subtotal)

    shipping = policy.shipping_cost(raw_subtotal, raw_discount)
    raw_tax = policy.taxable_amount(raw_subtotal, raw_discount, shipping) * policy.tax_rate

    subtotal = to_money(raw_subtotal)
    discount = min(to_money(raw_discount), subtotal)
    shipping = to_money(shipping)
    tax = to_money(raw_tax)

    return Quote(
        lines=quoted,
        subtotal=subtotal,
        discount=discount,
        shipping=shipping,
        tax=tax,
        total=subtotal - discount + shipping + tax,
        currency=policy.currency,
        coupon_code=coupon.code if coupon else None,
    )
