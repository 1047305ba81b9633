"""Orders FastAPI application.

Single-domain web server that processes commands synchronously via HTTP.
Every request runs inside the ``orders`` domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from uuid import uuid4

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay in orders/domain.toml:
#   - "test"       → in-memory providers
#   - "production" → PostgreSQL via DATABASE_URL
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from orders.domain import orders
from orders.payments.gateway import get_gateway
from orders.utils.logging import add_context, clear_context, configure_logging

configure_logging()
orders.init()
get_gateway()  # production and staging refuse to boot on the fake adapter

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Orders API",
    description="Order placement, inventory reservation and payment-driven fulfillment",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the orders domain context and bind a request id for the logs."""
    request_id = request.headers.get("x-request-id") or uuid4().hex
    clear_context()
    add_context(request_id=request_id, path=request.url.path)
    try:
        with orders.domain_context():
            response = await call_next(request)
    finally:
        clear_context()
    response.headers["X-Request-Id"] = request_id
    return response


# ---------------------------------------------------------------------------
# Routers and error handlers
# ---------------------------------------------------------------------------
from orders.api import (  # noqa: E402
    cart_router,
    coupon_router,
    inventory_router,
    order_router,
    payment_router,
    product_router,
)
from orders.api.errors import register_error_handlers  # noqa: E402

app.include_router(order_router)
app.include_router(payment_router)
app.include_router(inventory_router)
app.include_router(cart_router)
app.include_router(coupon_router)
app.include_router(product_router)

register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": orders.name})
