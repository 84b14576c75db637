"""Storefront FastAPI application.

Web server that processes ordering commands synchronously via HTTP.
Each request is wrapped in the ordering domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ordering.config import razorpay_credentials
from ordering.domain import ordering
from ordering.utils.logging import bind_request_context, clear_request_context, configure_logging
from payments.gateway import RazorpayGateway, set_gateway

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from ordering/domain.toml.
configure_logging()
ordering.init()

logger = structlog.get_logger(__name__)

_credentials = razorpay_credentials()
if _credentials["key_id"] and _credentials["key_secret"]:
    set_gateway(RazorpayGateway(**_credentials))
else:
    logger.warning("razorpay_not_configured", gateway="FakeGateway")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront API",
    description="E-commerce ordering core: orders, stock and payment reconciliation",
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
    """Push the ordering domain context and bind request log context."""
    bind_request_context(
        request_id=request.headers.get("x-request-id") or uuid.uuid4().hex,
        user_id=request.headers.get("x-user-id"),
    )
    try:
        with ordering.domain_context():
            return await call_next(request)
    finally:
        clear_request_context()


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from ordering.api.errors import register_exception_handlers  # noqa: E402
from ordering.api.routes import order_router, payment_router  # noqa: E402

app.include_router(order_router)
app.include_router(payment_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {
                "ordering": {"name": ordering.name},
            },
        }
    )
