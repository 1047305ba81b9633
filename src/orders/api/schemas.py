"""Pydantic request/response schemas for the Orders API.

These are external contracts (anti-corruption layer), separate from the
internal protean commands. Field names are camelCase on the wire and
unknown fields are rejected before anything reaches the domain.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(ApiModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    company: str | None = None
    address_line1: str = Field(min_length=1, max_length=255)
    address_line2: str | None = None
    city: str = Field(min_length=1, max_length=100)
    state: str | None = None
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=2, max_length=2)
    phone: str | None = None


class OrderLineRequest(ApiModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class CreateOrderRequest(ApiModel):
    items: list[OrderLineRequest] = Field(min_length=1)
    billing_address: AddressSchema
    shipping_address: AddressSchema
    coupon_code: str | None = Field(default=None, max_length=50)
    customer_note: str | None = None
    shipping_method: str | None = Field(default=None, max_length=50)
    cart_id: str | None = None
    guest_email: str | None = Field(default=None, pattern=EMAIL_PATTERN)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "items": [{"productId": "prod-001", "quantity": 2}],
                    "billingAddress": {
                        "firstName": "Ada",
                        "lastName": "Lovelace",
                        "addressLine1": "12 Analytical Row",
                        "city": "London",
                        "postalCode": "N1 9GU",
                        "country": "GB",
                    },
                    "shippingAddress": {
                        "firstName": "Ada",
                        "lastName": "Lovelace",
                        "addressLine1": "12 Analytical Row",
                        "city": "London",
                        "postalCode": "N1 9GU",
                        "country": "GB",
                    },
                    "couponCode": "SAVE10",
                }
            ]
        }
    )


class CreateOrderResponse(ApiModel):
    order_id: str
    order_number: str
    total_amount: float
    status: str
    payment_status: str


class CancelOrderRequest(ApiModel):
    reason: str | None = Field(default=None, max_length=500)


class UpdateOrderStatusRequest(ApiModel):
    status: str
    comment: str | None = Field(default=None, max_length=500)


class OrderItemResponse(ApiModel):
    id: str
    product_id: str
    variant_id: str | None = None
    product_name: str
    variant_name: str | None = None
    sku: str
    unit_price: float
    quantity: int
    subtotal: float


class StatusHistoryResponse(ApiModel):
    axis: str
    from_status: str | None = None
    to_status: str
    comment: str | None = None
    actor_id: str | None = None
    created_at: datetime | None = None


class OrderResponse(ApiModel):
    id: str
    order_number: str
    customer_id: str | None = None
    guest_email: str | None = None
    status: str
    payment_status: str
    payment_method: str | None = None
    payment_reference: str | None = None
    subtotal: float
    discount_amount: float
    shipping_cost: float
    tax_amount: float
    total_amount: float
    currency: str
    coupon_code: str | None = None
    shipping_method: str | None = None
    customer_note: str | None = None
    admin_note: str | None = None
    billing_address: dict
    shipping_address: dict
    items: list[OrderItemResponse]
    status_history: list[StatusHistoryResponse]
    created_at: datetime | None = None
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            customer_id=str(order.customer_id) if order.customer_id else None,
            guest_email=order.guest_email,
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            payment_reference=order.payment_reference,
            subtotal=order.subtotal,
            discount_amount=order.discount_amount,
            shipping_cost=order.shipping_cost,
            tax_amount=order.tax_amount,
            total_amount=order.total_amount,
            currency=order.currency,
            coupon_code=order.coupon_code,
            shipping_method=order.shipping_method,
            customer_note=order.customer_note,
            admin_note=order.admin_note,
            billing_address=_address(order.billing_address),
            shipping_address=_address(order.shipping_address),
            items=[
                OrderItemResponse(
                    id=str(item.id),
                    product_id=str(item.product_id),
                    variant_id=str(item.variant_id) if item.variant_id else None,
                    product_name=item.product_name,
                    variant_name=item.variant_name,
                    sku=item.sku,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    subtotal=item.subtotal,
                )
                for item in order.items
            ],
            status_history=[
                StatusHistoryResponse(
                    axis=entry.axis,
                    from_status=entry.from_status,
                    to_status=entry.to_status,
                    comment=entry.comment,
                    actor_id=str(entry.actor_id) if entry.actor_id else None,
                    created_at=entry.created_at,
                )
                for entry in order.timeline()
            ],
            created_at=order.created_at,
            paid_at=order.paid_at,
            shipped_at=order.shipped_at,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
        )


class OrderSummaryResponse(ApiModel):
    id: str
    order_number: str
    status: str
    payment_status: str
    total_amount: float
    currency: str
    item_count: int
    created_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "OrderSummaryResponse":
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            status=order.status,
            payment_status=order.payment_status,
            total_amount=order.total_amount,
            currency=order.currency,
            item_count=sum(item.quantity for item in order.items),
            created_at=order.created_at,
        )


class OrderStatusResponse(ApiModel):
    order_id: str
    status: str


def _address(address) -> dict:
    if address is None:
        return {}
    return {to_camel(key): value for key, value in address.to_dict().items() if value is not None}


# ---------------------------------------------------------------------------
# Payment webhooks
# ---------------------------------------------------------------------------
class WebhookResponse(ApiModel):
    received: bool = True
    outcome: str


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
class AdjustStockRequest(ApiModel):
    product_id: str
    variant_id: str | None = None
    quantity: int
    note: str = Field(min_length=1, max_length=500)
    reference: str | None = Field(default=None, max_length=100)


class MovementResponse(ApiModel):
    id: str
    product_id: str
    variant_id: str | None = None
    movement_type: str
    quantity: int
    reference: str | None = None
    note: str | None = None
    actor_id: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_movement(cls, movement) -> "MovementResponse":
        return cls(
            id=str(movement.id),
            product_id=str(movement.product_id),
            variant_id=str(movement.variant_id) if movement.variant_id else None,
            movement_type=movement.movement_type,
            quantity=movement.quantity,
            reference=movement.reference,
            note=movement.note,
            actor_id=str(movement.actor_id) if movement.actor_id else None,
            created_at=movement.created_at,
        )


class StockBalanceResponse(ApiModel):
    product_id: str
    variant_id: str | None = None
    sku: str
    initial_stock: int
    stock_quantity: int
    expected_delta: int
    recorded_delta: int
    balanced: bool


class ReconciliationResponse(ApiModel):
    product_id: str
    balanced: bool
    holders: list[StockBalanceResponse]


class LowStockResponse(ApiModel):
    product_id: str
    sku: str
    name: str
    stock_quantity: int
    low_stock_threshold: int


class MovementIdResponse(ApiModel):
    movement_id: str


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------
class CreateCartRequest(ApiModel):
    session_id: str | None = Field(default=None, max_length=255)


class AddToCartRequest(ApiModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(default=1, ge=1)


class CartItemResponse(ApiModel):
    id: str
    product_id: str
    variant_id: str | None = None
    quantity: int


class CartResponse(ApiModel):
    id: str
    customer_id: str | None = None
    session_id: str | None = None
    items: list[CartItemResponse]


class CartIdResponse(ApiModel):
    cart_id: str


class ItemIdResponse(ApiModel):
    item_id: str


class StatusResponse(ApiModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Coupons and products (admin collaborator)
# ---------------------------------------------------------------------------
class CreateCouponRequest(ApiModel):
    code: str = Field(min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=255)
    discount_type: str
    discount_value: float = Field(ge=0)
    min_purchase_amount: float | None = Field(default=None, ge=0)
    max_discount_amount: float | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=0)
    usage_limit_per_user: int = Field(default=1, ge=0)
    valid_from: datetime | None = None
    valid_until: datetime | None = None


class CouponIdResponse(ApiModel):
    coupon_id: str


class RegisterProductRequest(ApiModel):
    sku: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)
    price: float = Field(ge=0)
    currency: str = Field(default="EUR", min_length=3, max_length=3)
    stock_quantity: int = Field(default=0, ge=0)
    track_inventory: bool = True
    allow_backorder: bool = False
    low_stock_threshold: int = Field(default=10, ge=0)
    status: str = "active"


class AddVariantRequest(ApiModel):
    sku: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)
    price_adjustment: float = 0.0
    stock_quantity: int = Field(default=0, ge=0)
    is_active: bool = True


class SetProductStatusRequest(ApiModel):
    status: str


class ProductIdResponse(ApiModel):
    product_id: str


class VariantIdResponse(ApiModel):
    variant_id: str
