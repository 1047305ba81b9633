"""FastAPI routes for the Orders service.

Mutations go through ``dispatch`` so each one is a single protean command
(one unit of work); reads go straight to the repositories.
"""

import json

import structlog
from fastapi import APIRouter, Depends, Header, Query, Request
from protean.utils.globals import current_domain

from orders.api.identity import Identity, get_identity
from orders.api.schemas import (
    AddToCartRequest,
    AddVariantRequest,
    AdjustStockRequest,
    CancelOrderRequest,
    CartIdResponse,
    CartItemResponse,
    CartResponse,
    CouponIdResponse,
    CreateCartRequest,
    CreateCouponRequest,
    CreateOrderRequest,
    CreateOrderResponse,
    ItemIdResponse,
    LowStockResponse,
    MovementIdResponse,
    MovementResponse,
    OrderResponse,
    OrderStatusResponse,
    OrderSummaryResponse,
    ProductIdResponse,
    ReconciliationResponse,
    RegisterProductRequest,
    SetProductStatusRequest,
    StatusResponse,
    StockBalanceResponse,
    UpdateOrderStatusRequest,
    VariantIdResponse,
    WebhookResponse,
)
from orders.cart.cart import ShoppingCart
from orders.cart.items import AddToCart, CreateCart, RemoveFromCart
from orders.catalogue.management import AddVariant, RegisterProduct, SetProductStatus
from orders.catalogue.product import Product
from orders.coupon.management import CreateCoupon, DeactivateCoupon
from orders.errors import AuthorizationError, OrderNotFound, WebhookSignatureError
from orders.fulfillment.cancellation import CancelOrder, UpdateOrderStatus
from orders.fulfillment.dispatch import commit_retries, dispatch
from orders.fulfillment.payment_events import ProcessPaymentEvent
from orders.fulfillment.placement import PlaceOrder
from orders.inventory.adjustment import AdjustStock
from orders.inventory.ledger import InventoryLedger
from orders.inventory.movement import InventoryMovement
from orders.order.order import Order
from orders.payments.gateway import get_gateway
from orders.payments.gateway.port import PaymentGateway

logger = structlog.get_logger(__name__)


def _require_admin(identity: Identity) -> None:
    if not identity.is_admin:
        raise AuthorizationError("Administrator role required")


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=CreateOrderResponse)
async def create_order(body: CreateOrderRequest, identity: Identity = Depends(get_identity)) -> CreateOrderResponse:
    guest_email = None if identity.user_id else (body.guest_email or identity.guest_email)
    command = PlaceOrder(
        customer_id=identity.user_id,
        guest_email=guest_email,
        items=json.dumps([line.model_dump() for line in body.items]),
        billing_address=json.dumps(body.billing_address.model_dump(exclude_none=True)),
        shipping_address=json.dumps(body.shipping_address.model_dump(exclude_none=True)),
        coupon_code=body.coupon_code,
        customer_note=body.customer_note,
        shipping_method=body.shipping_method,
        cart_id=body.cart_id,
    )
    result = dispatch(command, retries=commit_retries())
    return CreateOrderResponse(**result)


@order_router.get("", response_model=list[OrderSummaryResponse])
async def list_orders(identity: Identity = Depends(get_identity)) -> list[OrderSummaryResponse]:
    repo = current_domain.repository_for(Order)
    if identity.user_id:
        found = repo.for_customer(identity.user_id)
    elif identity.guest_email:
        found = repo.for_guest(identity.guest_email)
    else:
        raise AuthorizationError("Sign in or provide a guest email to list orders")
    return [OrderSummaryResponse.from_order(order) for order in found]


@order_router.get("/{order_number}", response_model=OrderResponse)
async def get_order(order_number: str, identity: Identity = Depends(get_identity)) -> OrderResponse:
    order = current_domain.repository_for(Order).find_by_number(order_number)
    if order is None:
        raise OrderNotFound({"order_number": [f"Order {order_number} does not exist"]})
    if not identity.is_admin and not order.owned_by(customer_id=identity.user_id, guest_email=identity.guest_email):
        raise AuthorizationError({"order_number": ["Order belongs to another customer"]})
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/cancel", response_model=OrderStatusResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest | None = None,
    identity: Identity = Depends(get_identity),
) -> OrderStatusResponse:
    if not identity.user_id:
        raise AuthorizationError("Only the signed-in customer who placed the order can cancel it")
    command = CancelOrder(
        order_id=order_id,
        reason=body.reason if body else None,
        actor_id=identity.user_id,
        actor_is_admin=False,
    )
    status = dispatch(command, retries=commit_retries())
    return OrderStatusResponse(order_id=order_id, status=status)


@order_router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    identity: Identity = Depends(get_identity),
) -> OrderResponse:
    _require_admin(identity)
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        comment=body.comment,
        actor_id=identity.user_id,
        actor_is_admin=True,
    )
    dispatch(command, retries=commit_retries())
    return OrderResponse.from_order(current_domain.repository_for(Order).get(order_id))


# ---------------------------------------------------------------------------
# Payment webhook Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/webhooks", tags=["payments"])


@payment_router.post("/stripe", response_model=WebhookResponse)
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    gateway: PaymentGateway = Depends(get_gateway),
) -> WebhookResponse:
    """Verify and apply a payment-gateway notification.

    Every verified delivery is acknowledged with 200, including duplicates,
    unhandled event types and confirmations that conflict with the order's
    state. Only a failed signature check gets a non-2xx, and nothing is
    processed in that case.
    """
    payload = await request.body()
    try:
        event = gateway.parse_webhook(payload, stripe_signature)
    except WebhookSignatureError:
        logger.warning(
            "webhook_signature_rejected",
            signature_present=bool(stripe_signature),
            client=request.client.host if request.client else None,
        )
        raise

    command = ProcessPaymentEvent(
        event_id=event.event_id,
        event_type=event.event_type,
        payment_reference=event.payment_reference,
        metadata=json.dumps(event.metadata),
        failure_reason=event.failure_reason,
    )
    outcome = dispatch(command, retries=commit_retries())
    return WebhookResponse(outcome=outcome)


# ---------------------------------------------------------------------------
# Inventory Router (admin)
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.post("/adjustments", status_code=201, response_model=MovementIdResponse)
async def adjust_stock(body: AdjustStockRequest, identity: Identity = Depends(get_identity)) -> MovementIdResponse:
    _require_admin(identity)
    command = AdjustStock(
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
        note=body.note,
        reference=body.reference,
        actor_id=identity.user_id,
    )
    return MovementIdResponse(movement_id=dispatch(command))


@inventory_router.get("/movements", response_model=list[MovementResponse])
async def list_movements(
    product_id: str = Query(alias="productId"),
    variant_id: str | None = Query(default=None, alias="variantId"),
    identity: Identity = Depends(get_identity),
) -> list[MovementResponse]:
    _require_admin(identity)
    movements = current_domain.repository_for(InventoryMovement).for_product(product_id, variant_id)
    return [MovementResponse.from_movement(movement) for movement in movements]


@inventory_router.get("/low-stock", response_model=list[LowStockResponse])
async def low_stock(identity: Identity = Depends(get_identity)) -> list[LowStockResponse]:
    _require_admin(identity)
    return [
        LowStockResponse(
            product_id=str(product.id),
            sku=product.sku,
            name=product.name,
            stock_quantity=product.stock_quantity,
            low_stock_threshold=product.low_stock_threshold,
        )
        for product in current_domain.repository_for(Product).low_stock()
    ]


@inventory_router.get("/{product_id}/reconciliation", response_model=ReconciliationResponse)
async def reconcile_stock(product_id: str, identity: Identity = Depends(get_identity)) -> ReconciliationResponse:
    _require_admin(identity)
    product = current_domain.repository_for(Product).get(product_id)
    balances = InventoryLedger().reconcile(product)
    return ReconciliationResponse(
        product_id=product_id,
        balanced=all(balance.balanced for balance in balances),
        holders=[
            StockBalanceResponse(
                product_id=balance.product_id,
                variant_id=balance.variant_id,
                sku=balance.sku,
                initial_stock=balance.initial_stock,
                stock_quantity=balance.stock_quantity,
                expected_delta=balance.expected_delta,
                recorded_delta=balance.recorded_delta,
                balanced=balance.balanced,
            )
            for balance in balances
        ],
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", status_code=201, response_model=CartIdResponse)
async def create_cart(body: CreateCartRequest, identity: Identity = Depends(get_identity)) -> CartIdResponse:
    command = CreateCart(customer_id=identity.user_id, session_id=body.session_id)
    return CartIdResponse(cart_id=dispatch(command))


@cart_router.get("/{cart_id}", response_model=CartResponse)
async def get_cart(cart_id: str) -> CartResponse:
    cart = current_domain.repository_for(ShoppingCart).get(cart_id)
    return CartResponse(
        id=str(cart.id),
        customer_id=str(cart.customer_id) if cart.customer_id else None,
        session_id=cart.session_id,
        items=[
            CartItemResponse(
                id=str(item.id),
                product_id=str(item.product_id),
                variant_id=str(item.variant_id) if item.variant_id else None,
                quantity=item.quantity,
            )
            for item in cart.items
        ],
    )


@cart_router.post("/{cart_id}/items", status_code=201, response_model=ItemIdResponse)
async def add_cart_item(cart_id: str, body: AddToCartRequest) -> ItemIdResponse:
    command = AddToCart(
        cart_id=cart_id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
    )
    return ItemIdResponse(item_id=dispatch(command))


@cart_router.delete("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def remove_cart_item(cart_id: str, item_id: str) -> StatusResponse:
    dispatch(RemoveFromCart(cart_id=cart_id, item_id=item_id))
    return StatusResponse()


# ---------------------------------------------------------------------------
# Coupon Router (admin)
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


@coupon_router.post("", status_code=201, response_model=CouponIdResponse)
async def create_coupon(body: CreateCouponRequest, identity: Identity = Depends(get_identity)) -> CouponIdResponse:
    _require_admin(identity)
    command = CreateCoupon(**body.model_dump(exclude_none=True))
    return CouponIdResponse(coupon_id=dispatch(command))


@coupon_router.post("/{coupon_id}/deactivate", response_model=StatusResponse)
async def deactivate_coupon(coupon_id: str, identity: Identity = Depends(get_identity)) -> StatusResponse:
    _require_admin(identity)
    dispatch(DeactivateCoupon(coupon_id=coupon_id))
    return StatusResponse()


# ---------------------------------------------------------------------------
# Product Router (admin)
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(
    body: RegisterProductRequest, identity: Identity = Depends(get_identity)
) -> ProductIdResponse:
    _require_admin(identity)
    return ProductIdResponse(product_id=dispatch(RegisterProduct(**body.model_dump())))


@product_router.post("/{product_id}/variants", status_code=201, response_model=VariantIdResponse)
async def add_variant(
    product_id: str, body: AddVariantRequest, identity: Identity = Depends(get_identity)
) -> VariantIdResponse:
    _require_admin(identity)
    return VariantIdResponse(variant_id=dispatch(AddVariant(product_id=product_id, **body.model_dump())))


@product_router.put("/{product_id}/status", response_model=StatusResponse)
async def set_product_status(
    product_id: str, body: SetProductStatusRequest, identity: Identity = Depends(get_identity)
) -> StatusResponse:
    _require_admin(identity)
    dispatch(SetProductStatus(product_id=product_id, status=body.status))
    return StatusResponse()
