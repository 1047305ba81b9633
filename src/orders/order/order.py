"""Order aggregate — items, addresses and status history as one consistency boundary.

An order tracks two semi-independent axes:

    payment:      pending -> paid | failed
    fulfillment:  pending -> processing -> shipped -> delivered
                  pending | processing -> cancelled

Every transition on either axis appends an ``OrderStatusHistory`` row.
Items and addresses are snapshots taken when the order is placed and are
never re-read from the catalogue afterwards.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from orders.domain import orders
from orders.errors import IllegalTransition, OrderNotCancellable, PaymentAlreadySettled
from orders.order.events import (
    OrderCancelled,
    OrderPaid,
    OrderPaymentFailed,
    OrderPlaced,
    OrderStatusChanged,
)


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class StatusAxis(Enum):
    PAYMENT = "payment"
    FULFILLMENT = "fulfillment"


CANCELLABLE_STATUSES = {OrderStatus.PENDING.value, OrderStatus.PROCESSING.value}

# Admin-driven fulfillment progress; cancellation has its own path
_ADMIN_TRANSITIONS = {
    OrderStatus.PROCESSING.value: {OrderStatus.SHIPPED.value},
    OrderStatus.SHIPPED.value: {OrderStatus.DELIVERED.value},
}


@orders.value_object(part_of="Order")
class Address:
    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    email = String(max_length=255)
    company = String(max_length=255)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=2)
    phone = String(max_length=50)


@orders.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    product_name = String(required=True, max_length=255)
    variant_name = String(max_length=255)
    sku = String(required=True, max_length=100)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    subtotal = Float(required=True, min_value=0.0)
    stock_reserved = Boolean(default=False)


@orders.entity(part_of="Order")
class OrderStatusHistory:
    sequence = Integer(required=True)
    axis = String(required=True, choices=StatusAxis)
    from_status = String(max_length=20)
    to_status = String(required=True, max_length=20)
    comment = Text()
    actor_id = Identifier()
    created_at = DateTime()


@orders.aggregate
class Order:
    order_number = String(required=True, unique=True, max_length=50)
    customer_id = Identifier()
    guest_email = String(max_length=255)
    billing_address = ValueObject(Address, required=True)
    shipping_address = ValueObject(Address, required=True)
    items = HasMany(OrderItem)
    status_history = HasMany(OrderStatusHistory)
    subtotal = Float(default=0.0)
    discount_amount = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    tax_amount = Float(default=0.0)
    total_amount = Float(default=0.0)
    currency = String(max_length=3, default="EUR")
    coupon_code = String(max_length=50)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(max_length=50)
    payment_reference = String(max_length=255)
    shipping_method = String(max_length=50, default="standard")
    customer_note = Text()
    admin_note = Text()
    cart_id = Identifier()
    created_at = DateTime()
    updated_at = DateTime()
    paid_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()

    @invariant.post
    def must_have_exactly_one_owner(self):
        if bool(self.customer_id) == bool(self.guest_email):
            raise ValidationError({"customer_id": ["An order belongs to a registered customer or a guest email, not both"]})

    @invariant.post
    def amounts_cannot_be_negative(self):
        for name in ("subtotal", "discount_amount", "shipping_cost", "tax_amount", "total_amount"):
            if (getattr(self, name) or 0.0) < 0:
                raise ValidationError({name: [f"{name} cannot be negative"]})

    @invariant.post
    def discount_cannot_exceed_subtotal(self):
        if (self.discount_amount or 0.0) > (self.subtotal or 0.0) + 0.005:
            raise ValidationError({"discount_amount": ["Discount cannot exceed the subtotal"]})

    @invariant.post
    def total_must_balance(self):
        expected = (self.subtotal or 0.0) - (self.discount_amount or 0.0) + (self.shipping_cost or 0.0)
        expected += self.tax_amount or 0.0
        if abs((self.total_amount or 0.0) - expected) > 0.005:
            raise ValidationError({"total_amount": ["Total must equal subtotal - discount + shipping + tax"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        quote,
        billing_address,
        shipping_address,
        customer_id=None,
        guest_email=None,
        shipping_method=None,
        customer_note=None,
        cart_id=None,
        placed_by=None,
    ):
        """Create a pending order from a priced ``Quote``."""
        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            guest_email=guest_email.strip().lower() if guest_email else None,
            billing_address=billing_address,
            shipping_address=shipping_address,
            subtotal=float(quote.subtotal),
            discount_amount=float(quote.discount),
            shipping_cost=float(quote.shipping),
            tax_amount=float(quote.tax),
            total_amount=float(quote.total),
            currency=quote.currency,
            coupon_code=quote.coupon_code,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            shipping_method=shipping_method or "standard",
            customer_note=customer_note,
            cart_id=cart_id,
            created_at=now,
            updated_at=now,
        )
        for line in quote.lines:
            order.add_items(
                OrderItem(
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    product_name=line.product_name,
                    variant_name=line.variant_name,
                    sku=line.sku,
                    unit_price=float(line.unit_price),
                    quantity=line.quantity,
                    subtotal=float(line.subtotal),
                    stock_reserved=line.tracks_stock,
                )
            )
        order._log(StatusAxis.FULFILLMENT, None, OrderStatus.PENDING.value, actor_id=placed_by, comment="Order created")

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=str(customer_id) if customer_id else None,
                contact_email=order.contact_email,
                total_amount=order.total_amount,
                currency=order.currency,
                items=json.dumps(
                    [
                        {"sku": i.sku, "name": i.product_name, "quantity": i.quantity, "subtotal": i.subtotal}
                        for i in order.items
                    ]
                ),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def contact_email(self) -> str | None:
        if self.guest_email:
            return self.guest_email
        return self.billing_address.email if self.billing_address else None

    @property
    def is_cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    def owned_by(self, customer_id=None, guest_email=None) -> bool:
        if customer_id and self.customer_id:
            return str(self.customer_id) == str(customer_id)
        if guest_email and self.guest_email:
            return self.guest_email == guest_email.strip().lower()
        return False

    def timeline(self) -> list[OrderStatusHistory]:
        return sorted(self.status_history, key=lambda entry: entry.sequence)

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def _log(self, axis, from_status, to_status, actor_id=None, comment=None):
        self.add_status_history(
            OrderStatusHistory(
                sequence=len(self.status_history) + 1,
                axis=axis.value,
                from_status=from_status,
                to_status=to_status,
                comment=comment,
                actor_id=actor_id,
                created_at=datetime.now(UTC),
            )
        )

    def mark_paid(self, payment_reference=None, payment_method=None, actor_id=None):
        """Record a verified payment; only a pending payment on a live order can settle."""
        if self.status == OrderStatus.CANCELLED.value:
            raise IllegalTransition({"status": [f"Order {self.order_number} is cancelled and cannot be paid"]})
        if self.payment_status != PaymentStatus.PENDING.value:
            raise PaymentAlreadySettled(
                {"payment_status": [f"Payment for order {self.order_number} is already {self.payment_status}"]}
            )

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.PAID.value
        self.payment_reference = payment_reference or self.payment_reference
        self.payment_method = payment_method or self.payment_method
        self.paid_at = now
        self.updated_at = now
        self._log(
            StatusAxis.PAYMENT,
            PaymentStatus.PENDING.value,
            PaymentStatus.PAID.value,
            actor_id=actor_id,
            comment="Payment confirmed",
        )

        if self.status == OrderStatus.PENDING.value:
            self.status = OrderStatus.PROCESSING.value
            self._log(StatusAxis.FULFILLMENT, OrderStatus.PENDING.value, OrderStatus.PROCESSING.value, actor_id=actor_id)

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                order_number=self.order_number,
                contact_email=self.contact_email,
                total_amount=self.total_amount,
                payment_reference=self.payment_reference,
                paid_at=now,
            )
        )

    def mark_payment_failed(self, payment_reference=None, reason=None, actor_id=None):
        if self.payment_status != PaymentStatus.PENDING.value:
            raise PaymentAlreadySettled(
                {"payment_status": [f"Payment for order {self.order_number} is already {self.payment_status}"]}
            )

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.FAILED.value
        self.payment_reference = payment_reference or self.payment_reference
        self.updated_at = now
        self._log(
            StatusAxis.PAYMENT,
            PaymentStatus.PENDING.value,
            PaymentStatus.FAILED.value,
            actor_id=actor_id,
            comment=reason,
        )

        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                order_number=self.order_number,
                payment_reference=self.payment_reference,
                reason=reason,
                failed_at=now,
            )
        )

    def cancel(self, reason=None, actor_id=None):
        if not self.is_cancellable:
            raise OrderNotCancellable({"status": [f"Order {self.order_number} is {self.status} and cannot be cancelled"]})

        now = datetime.now(UTC)
        previous = self.status
        self.status = OrderStatus.CANCELLED.value
        self.cancelled_at = now
        self.updated_at = now
        if reason:
            self.admin_note = reason
        self._log(StatusAxis.FULFILLMENT, previous, OrderStatus.CANCELLED.value, actor_id=actor_id, comment=reason)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                contact_email=self.contact_email,
                reason=reason,
                cancelled_by=actor_id,
                cancelled_at=now,
            )
        )

    def advance(self, to_status, actor_id=None, comment=None):
        """Move fulfillment forward: processing -> shipped -> delivered."""
        if to_status not in {s.value for s in OrderStatus}:
            raise ValidationError({"status": [f"Unknown order status {to_status}"]})
        if to_status not in _ADMIN_TRANSITIONS.get(self.status, set()):
            raise IllegalTransition({"status": [f"Cannot move order {self.order_number} from {self.status} to {to_status}"]})

        now = datetime.now(UTC)
        previous = self.status
        self.status = to_status
        self.updated_at = now
        if to_status == OrderStatus.SHIPPED.value:
            self.shipped_at = now
        elif to_status == OrderStatus.DELIVERED.value:
            self.delivered_at = now
        self._log(StatusAxis.FULFILLMENT, previous, to_status, actor_id=actor_id, comment=comment)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                from_status=previous,
                to_status=to_status,
                changed_by=actor_id,
                changed_at=now,
            )
        )


@orders.repository(part_of=Order)
class OrderRepository:
    def find_by_number(self, order_number: str) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def find_by_payment_reference(self, payment_reference: str) -> Order | None:
        if not payment_reference:
            return None
        return self._dao.query.filter(payment_reference=payment_reference).all().first

    def for_customer(self, customer_id) -> list[Order]:
        results = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return sorted(results, key=lambda order: order.created_at, reverse=True)

    def for_guest(self, guest_email: str) -> list[Order]:
        results = self._dao.query.filter(guest_email=guest_email.strip().lower()).all().items
        return sorted(results, key=lambda order: order.created_at, reverse=True)
