"""Fulfillment coordinator — order placement, payment reconciliation and cancellation.

The coordinator runs inside the unit of work of the command handler that
created it. Every flow is split into a checking phase that only reads and
a writing phase that only stages changes:

    quote     read the catalogue and coupon, price the cart
    prepare   re-read products and coupon, re-price, compare with the quote
    apply     allocate the order number, reserve stock, persist the order,
              redeem the coupon, clear the cart

Conflicts are only ever raised while preparing, so a caller that decides to
swallow one (the webhook path) never leaves half-staged writes behind. Any
exception raised while applying propagates and rolls the whole unit back.
"""

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from orders.cart.cart import ShoppingCart
from orders.catalogue.product import Product
from orders.catalogue.reader import CatalogueReader
from orders.coupon.coupon import Coupon
from orders.errors import (
    AuthorizationError,
    ConflictError,
    CouponExhausted,
    CouponInvalid,
    CouponRejection,
    NotFoundError,
    OrderNotCancellable,
    OrderNotFound,
    PriceChanged,
)
from orders.inventory.ledger import InventoryLedger
from orders.order.numbering import allocate_order_number
from orders.order.order import Address, Order, OrderStatus, PaymentStatus
from orders.pricing.engine import CartLine, Quote, price_cart
from orders.pricing.policy import PricingPolicy, load_pricing_policy

logger = structlog.get_logger(__name__)

CANCELLATION_NOTE = "Order cancelled"

_EXHAUSTION_REASONS = {CouponRejection.USAGE_LIMIT_REACHED, CouponRejection.PER_USER_LIMIT_REACHED}


class PaymentOutcome(Enum):
    APPLIED = "applied"
    CREATED = "created"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Buyer:
    """The identity an order is placed for: a registered customer or a guest email."""

    customer_id: str | None = None
    guest_email: str | None = None

    def __post_init__(self):
        if bool(self.customer_id) == bool(self.guest_email):
            raise ValidationError({"customer": ["Provide either a signed-in customer or a guest email"]})

    @property
    def key(self) -> str:
        return str(self.customer_id) if self.customer_id else self.guest_email.strip().lower()


@dataclass(frozen=True)
class Actor:
    user_id: str | None = None
    is_admin: bool = False


@dataclass(frozen=True)
class OrderRequest:
    lines: Sequence[CartLine]
    billing_address: dict
    shipping_address: dict
    buyer: Buyer
    coupon_code: str | None = None
    customer_note: str | None = None
    shipping_method: str | None = None
    cart_id: str | None = None


@dataclass(frozen=True)
class PaymentConfirmation:
    reference: str | None
    method: str | None = "card"


@dataclass
class _Plan:
    """Everything the writing phase needs, fully validated."""

    request: OrderRequest
    quote: Quote
    products: dict[str, Product]
    billing_address: Address
    shipping_address: Address
    coupon: Coupon | None = None
    payment: PaymentConfirmation | None = None
    cart: ShoppingCart | None = None


def _address(data, name: str) -> Address:
    if not isinstance(data, dict) or not data:
        raise ValidationError({name: ["Address is required"]})
    return Address(**data)


class FulfillmentCoordinator:
    def __init__(self, policy: PricingPolicy | None = None, clock: Callable[[], datetime] | None = None):
        self.policy = policy or load_pricing_policy()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.catalogue = CatalogueReader()
        self.ledger = InventoryLedger()
        self.orders = current_domain.repository_for(Order)
        self.products = current_domain.repository_for(Product)
        self.coupons = current_domain.repository_for(Coupon)
        self.carts = current_domain.repository_for(ShoppingCart)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def _coupon(self, code: str | None) -> Coupon | None:
        if not code:
            return None
        coupon = self.coupons.find_by_code(code)
        if coupon is None:
            raise CouponInvalid(CouponRejection.UNKNOWN_CODE, f"Coupon {code.strip().upper()} does not exist")
        return coupon

    def _price(self, lines, coupon: Coupon | None, buyer: Buyer | None, products: dict | None = None) -> Quote:
        catalogue = self.catalogue.snapshot(lines, products)
        terms = coupon.terms(buyer.key if buyer else None) if coupon else None
        return price_cart(lines, catalogue, self.policy, terms, now=self.clock())

    def quote(self, lines, coupon_code: str | None = None, buyer: Buyer | None = None) -> Quote:
        return self._price(lines, self._coupon(coupon_code), buyer)

    def load_order(self, order_id) -> Order:
        try:
            return self.orders.get(order_id)
        except ObjectNotFoundError:
            raise OrderNotFound({"order_id": [f"Order {order_id} does not exist"]}) from None

    # -------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------
    def prepare(self, request: OrderRequest, quote: Quote, payment: PaymentConfirmation | None = None) -> _Plan:
        """Re-read everything the writes depend on and re-check it against ``quote``."""
        billing = _address(request.billing_address, "billing_address")
        shipping = _address(request.shipping_address, "shipping_address")
        cart = self._source_cart(request)

        products: dict[str, Product] = {}
        coupon = self._coupon(request.coupon_code)
        try:
            fresh = self._price(request.lines, coupon, request.buyer, products)
        except CouponInvalid as exc:
            if exc.reason in _EXHAUSTION_REASONS:
                raise CouponExhausted(exc.messages) from exc
            raise

        if not fresh.same_totals(quote):
            logger.info(
                "order_prices_changed",
                quoted_total=str(quote.total),
                current_total=str(fresh.total),
            )
            raise PriceChanged({"items": ["Prices changed while the order was being placed; review the cart"]})

        return _Plan(
            request=request,
            quote=fresh,
            products=products,
            billing_address=billing,
            shipping_address=shipping,
            coupon=coupon,
            payment=payment,
            cart=cart,
        )

    def apply(self, plan: _Plan) -> Order:
        request, quote = plan.request, plan.quote
        order_number = allocate_order_number(self.clock())

        for line in quote.lines:
            self.ledger.reserve(plan.products[line.product_id], line.variant_id, line.quantity, reference=order_number)
        for product in plan.products.values():
            self.products.add(product)

        order = Order.place(
            order_number=order_number,
            quote=quote,
            billing_address=plan.billing_address,
            shipping_address=plan.shipping_address,
            customer_id=request.buyer.customer_id,
            guest_email=request.buyer.guest_email,
            shipping_method=request.shipping_method,
            customer_note=request.customer_note,
            cart_id=request.cart_id,
            placed_by=request.buyer.customer_id,
        )
        if plan.payment is not None:
            order.mark_paid(payment_reference=plan.payment.reference, payment_method=plan.payment.method)
        self.orders.add(order)

        if plan.coupon is not None:
            plan.coupon.redeem(request.buyer.key, order.id, order_number, float(quote.discount))
            self.coupons.add(plan.coupon)

        if plan.cart is not None:
            plan.cart.clear()
            self.carts.add(plan.cart)

        logger.info(
            "order_placed",
            order_number=order_number,
            total_amount=order.total_amount,
            items=len(quote.lines),
            coupon_code=quote.coupon_code,
            paid=plan.payment is not None,
        )
        return order

    def create_order(self, request: OrderRequest) -> Order:
        quote = self.quote(request.lines, request.coupon_code, request.buyer)
        return self.apply(self.prepare(request, quote))

    def _source_cart(self, request: OrderRequest) -> ShoppingCart | None:
        """The cart the order is placed from, if it still exists and belongs to the buyer."""
        if not request.cart_id:
            return None
        try:
            cart = self.carts.get(request.cart_id)
        except ObjectNotFoundError:
            logger.info("source_cart_missing", cart_id=str(request.cart_id))
            return None
        if cart.customer_id and str(cart.customer_id) != str(request.buyer.customer_id or ""):
            logger.warning("source_cart_not_owned", cart_id=str(request.cart_id))
            raise AuthorizationError({"cart_id": ["Cart belongs to another customer"]})
        return cart

    # -------------------------------------------------------------------
    # Payment reconciliation
    # -------------------------------------------------------------------
    def _order_from_metadata(self, metadata: dict) -> Order | None:
        if metadata.get("order_id"):
            try:
                return self.orders.get(metadata["order_id"])
            except ObjectNotFoundError:
                logger.warning("payment_event_unknown_order", order_id=metadata["order_id"])
                return None
        if metadata.get("order_number"):
            return self.orders.find_by_number(metadata["order_number"])
        return None

    def confirm_payment(self, payment_reference: str | None, metadata: dict) -> tuple[PaymentOutcome, Order | None]:
        already_paid = self.orders.find_by_payment_reference(payment_reference)
        if already_paid is not None and already_paid.payment_status == PaymentStatus.PAID.value:
            return PaymentOutcome.DUPLICATE, already_paid

        order = self._order_from_metadata(metadata)
        if order is not None:
            if order.payment_status == PaymentStatus.PAID.value:
                return PaymentOutcome.DUPLICATE, order
            try:
                order.mark_paid(payment_reference=payment_reference, payment_method=metadata.get("payment_method"))
            except ConflictError as exc:
                logger.warning(
                    "payment_confirmation_rejected",
                    order_number=order.order_number,
                    status=order.status,
                    payment_status=order.payment_status,
                    error=exc.code,
                )
                return PaymentOutcome.REJECTED, order
            self.orders.add(order)
            logger.info("order_paid", order_number=order.order_number, payment_reference=payment_reference)
            return PaymentOutcome.APPLIED, order

        if metadata.get("cart_id"):
            return self._materialize_paid_checkout(payment_reference, metadata)

        logger.info("payment_event_unmatched", payment_reference=payment_reference)
        return PaymentOutcome.IGNORED, None

    def _materialize_paid_checkout(self, payment_reference, metadata: dict) -> tuple[PaymentOutcome, Order | None]:
        """Create an already-paid order from the cart named in the payment metadata."""
        cart_id = metadata["cart_id"]
        try:
            cart = self.carts.get(cart_id)
        except ObjectNotFoundError:
            logger.error("paid_checkout_rejected", cart_id=cart_id, payment_reference=payment_reference, error="cart_missing")
            return PaymentOutcome.REJECTED, None

        try:
            customer_id = metadata.get("user_id") or (str(cart.customer_id) if cart.customer_id else None)
            request = OrderRequest(
                lines=cart.lines(),
                billing_address=_json_field(metadata.get("billing_address")),
                shipping_address=_json_field(metadata.get("shipping_address")),
                buyer=Buyer(
                    customer_id=customer_id,
                    guest_email=None if customer_id else metadata.get("customer_email"),
                ),
                coupon_code=metadata.get("coupon_code"),
                customer_note=metadata.get("customer_note"),
                shipping_method=metadata.get("shipping_method"),
                cart_id=str(cart.id),
            )
            quote = self.quote(request.lines, request.coupon_code, request.buyer)
            plan = self.prepare(
                request,
                quote,
                payment=PaymentConfirmation(reference=payment_reference, method=metadata.get("payment_method") or "card"),
            )
        except (ConflictError, NotFoundError, CouponInvalid, AuthorizationError, ValidationError) as exc:
            # Payment was captured but no order can be created; needs manual follow-up
            logger.error(
                "paid_checkout_rejected",
                cart_id=cart_id,
                payment_reference=payment_reference,
                error=getattr(exc, "code", "validation_error"),
                messages=exc.messages,
            )
            return PaymentOutcome.REJECTED, None

        return PaymentOutcome.CREATED, self.apply(plan)

    def record_payment_failure(
        self, payment_reference: str | None, metadata: dict, reason: str | None = None
    ) -> tuple[PaymentOutcome, Order | None]:
        order = self._order_from_metadata(metadata)
        if order is None:
            logger.info("payment_failure_unmatched", payment_reference=payment_reference)
            return PaymentOutcome.IGNORED, None

        try:
            order.mark_payment_failed(payment_reference=payment_reference, reason=reason)
        except ConflictError as exc:
            logger.warning("payment_failure_rejected", order_number=order.order_number, error=exc.code)
            return PaymentOutcome.REJECTED, order

        self.orders.add(order)
        logger.info("order_payment_failed", order_number=order.order_number, reason=reason)
        return PaymentOutcome.APPLIED, order

    # -------------------------------------------------------------------
    # Cancellation and admin progress
    # -------------------------------------------------------------------
    def cancel_order(self, order_id, actor: Actor, reason: str | None = None) -> Order:
        order = self.load_order(order_id)
        if not actor.is_admin and not order.owned_by(customer_id=actor.user_id):
            raise AuthorizationError({"order_id": ["Only the customer who placed the order can cancel it"]})
        if not order.is_cancellable:
            raise OrderNotCancellable({"status": [f"Order {order.order_number} is {order.status} and cannot be cancelled"]})

        products: dict[str, Product] = {}
        for item in order.items:
            product_id = str(item.product_id)
            if product_id not in products:
                products[product_id] = self.products.get(product_id)
            self.ledger.release(
                products[product_id],
                str(item.variant_id) if item.variant_id else None,
                item.quantity,
                reference=order.order_number,
                reason=CANCELLATION_NOTE,
                reserved=item.stock_reserved,
            )
        for product in products.values():
            self.products.add(product)

        order.cancel(reason=reason, actor_id=actor.user_id)
        self.orders.add(order)
        logger.info("order_cancelled", order_number=order.order_number, actor_id=actor.user_id, admin=actor.is_admin)
        return order

    def update_status(self, order_id, status: str, actor: Actor, comment: str | None = None) -> Order:
        if not actor.is_admin:
            raise AuthorizationError({"status": ["Only administrators can change order status"]})
        if status == OrderStatus.CANCELLED.value:
            return self.cancel_order(order_id, actor, reason=comment)

        order = self.load_order(order_id)
        order.advance(status, actor_id=actor.user_id, comment=comment)
        self.orders.add(order)
        logger.info("order_status_changed", order_number=order.order_number, status=status, actor_id=actor.user_id)
        return order


def _json_field(value):
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            raise ValidationError({"metadata": ["Address metadata is not valid JSON"]}) from None
    return value
