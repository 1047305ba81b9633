"""Pricing policy — shipping and tax rules handed to the pricing engine.

The engine never hardcodes a fee, threshold or rate; it reads them from a
``PricingPolicy``. ``PricingPolicy.from_env()`` builds one from ``ORDERS_*``
environment variables so deployments can change jurisdiction rules without
code changes.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

from protean.exceptions import ValidationError

ZERO = Decimal("0")


class ShippingBasis(Enum):
    """Which subtotal is compared against the free-shipping threshold."""

    DISCOUNTED = "discounted"
    GROSS = "gross"


class TaxBase(Enum):
    """Which amount the tax rate is applied to."""

    DISCOUNTED_PLUS_SHIPPING = "discounted_plus_shipping"
    DISCOUNTED = "discounted"
    GROSS_PLUS_SHIPPING = "gross_plus_shipping"


@dataclass(frozen=True)
class PricingPolicy:
    currency: str = "EUR"
    shipping_fee: Decimal = Decimal("5.99")
    free_shipping_threshold: Decimal | None = Decimal("50.00")
    free_shipping_basis: ShippingBasis = ShippingBasis.DISCOUNTED
    tax_rate: Decimal = Decimal("0.20")
    tax_base: TaxBase = TaxBase.DISCOUNTED_PLUS_SHIPPING

    def __post_init__(self):
        errors = {}
        if self.shipping_fee < ZERO:
            errors["shipping_fee"] = ["Shipping fee cannot be negative"]
        if self.free_shipping_threshold is not None and self.free_shipping_threshold < ZERO:
            errors["free_shipping_threshold"] = ["Free-shipping threshold cannot be negative"]
        if self.tax_rate < ZERO:
            errors["tax_rate"] = ["Tax rate cannot be negative"]
        if errors:
            raise ValidationError(errors)

    def shipping_cost(self, subtotal: Decimal, discount: Decimal) -> Decimal:
        """Flat fee, waived when the basis amount reaches the threshold (inclusive)."""
        if self.free_shipping_threshold is None:
            return self.shipping_fee

        basis = subtotal - discount if self.free_shipping_basis is ShippingBasis.DISCOUNTED else subtotal
        return ZERO if basis >= self.free_shipping_threshold else self.shipping_fee

    def taxable_amount(self, subtotal: Decimal, discount: Decimal, shipping: Decimal) -> Decimal:
        if self.tax_base is TaxBase.DISCOUNTED:
            amount = subtotal - discount
        elif self.tax_base is TaxBase.GROSS_PLUS_SHIPPING:
            amount = subtotal + shipping
        else:
            amount = subtotal - discount + shipping
        return max(amount, ZERO)

    # -------------------------------------------------------------------
    # Environment loading
    # -------------------------------------------------------------------
    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PricingPolicy":
        env = os.environ if environ is None else environ
        defaults = cls()

        threshold_raw = env.get("ORDERS_FREE_SHIPPING_THRESHOLD")
        if threshold_raw is None:
            threshold = defaults.free_shipping_threshold
        elif threshold_raw.strip() == "":
            threshold = None
        else:
            threshold = _decimal("ORDERS_FREE_SHIPPING_THRESHOLD", threshold_raw)

        return cls(
            currency=env.get("ORDERS_CURRENCY", defaults.currency).upper(),
            shipping_fee=_decimal("ORDERS_SHIPPING_FEE", env.get("ORDERS_SHIPPING_FEE"), defaults.shipping_fee),
            free_shipping_threshold=threshold,
            free_shipping_basis=_choice(
                ShippingBasis, "ORDERS_FREE_SHIPPING_BASIS", env.get("ORDERS_FREE_SHIPPING_BASIS")
            )
            or defaults.free_shipping_basis,
            tax_rate=_decimal("ORDERS_TAX_RATE", env.get("ORDERS_TAX_RATE"), defaults.tax_rate),
            tax_base=_choice(TaxBase, "ORDERS_TAX_BASE", env.get("ORDERS_TAX_BASE")) or defaults.tax_base,
        )


def _decimal(name: str, raw: str | None, default: Decimal | None = None) -> Decimal | None:
    if raw is None:
        return default
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        raise ValidationError({name: [f"'{raw}' is not a decimal amount"]}) from None


def _choice(enum_cls, name: str, raw: str | None):
    if raw is None:
        return None
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError({name: [f"'{raw}' is not one of: {allowed}"]}) from None


def load_pricing_policy() -> PricingPolicy:
    return PricingPolicy.from_env()
