"""
HTTP API for the restaurant billing engine.

Routes are thin: each one builds an OrderService, BillRenderer or
ReportService from the cached store, menu and payment provider and maps
BillingError subclasses to status codes.

    /api/menu                   menu catalog
    /api/orders                 orders, line edits, status and payment
    /api/payments/stripe/*      card payment intents and the webhook
    /api/bills/*                PDF bills and daily sales reports
    /health                     store, Redis and payment provider checks

Run with: uvicorn restaurant_billing.main:app
"""

import asyncio
import sys
import logging
from datetime import date, datetime
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Query, Request, Header
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
import redis

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from restaurant_billing.core.config import get_settings, setup_logging
from restaurant_billing.core.exceptions import (
    BillingError,
    InvalidTransitionError,
    PaymentProviderError,
)
from restaurant_billing.database import engine, init_db
from restaurant_billing.domain import MenuItem, Order, OrderStatus, PaymentMethod
from restaurant_billing.schemas import (
    CardPaymentCreate,
    DailyReportExport,
    DailyReportResponse,
    ErrorResponse,
    ExportQueuedResponse,
    HealthResponse,
    LineAdd,
    LineUpdate,
    MenuItemCreate,
    MenuItemResponse,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    PaymentIntentResponse,
    PaymentUpdate,
    StatusUpdate,
    StripeConfigResponse,
)
from restaurant_billing.services.bill_renderer import BillRenderer
from restaurant_billing.services.menu import get_menu_catalog
from restaurant_billing.services.order_service import NewLine, OrderService
from restaurant_billing.services.payment import get_payment_service
from restaurant_billing.services.reports import ReportService
from restaurant_billing.services.store import get_order_store
from restaurant_billing.tasks import export_daily_report_to_excel, export_paid_order_to_excel

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup when orders live in the database."""
    logger.info(
        f"🚀 {settings.app_name} {settings.app_version} "
        f"(env={settings.env_mode.value}, store={settings.store_backend.value})"
    )

    if settings.uses_database:
        await init_db()
        logger.info("✅ Tables ready")

    missing = settings.validate_production_config()
    if missing:
        logger.warning(f"⚠️ Stripe is not fully configured, missing: {', '.join(missing)}")

    logger.info(
        f"✅ Serving with {get_order_store().backend_name} orders and "
        f"{get_payment_service().provider_name} card payments"
    )

    yield

    if settings.uses_database:
        await engine.dispose()
    logger.info("👋 Billing API stopped")


app = FastAPI(
    title=settings.app_name,
    description=(
        "Dine-in order lifecycle, payments, printable bills "
        "and daily sales reports."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


# =============================================================================
# DEPENDENCIES
# =============================================================================

def queue_paid_order_export(order: Order) -> None:
    """Queue the Excel ledger export for a newly paid order."""
    if not settings.excel_export_enabled:
        return
    try:
        export_paid_order_to_excel.delay(order.to_dict())
    except Exception as e:
        # The payment stays recorded when the broker is unreachable
        logger.error(f"Could not queue Excel export for order {order.id}: {e}")


def get_order_service() -> OrderService:
    return OrderService(
        get_order_store(),
        get_menu_catalog(),
        get_payment_service(),
        on_paid=queue_paid_order_export,
    )


def get_bill_renderer() -> BillRenderer:
    return BillRenderer(get_order_store(), get_menu_catalog())


def get_report_service() -> ReportService:
    return ReportService(get_order_store())


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "docs": "/docs",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Dependency status",
)
async def health_check() -> HealthResponse:
    """
    Report the order store, Redis and the payment provider.

    Always 200; status is "degraded" when any one of them is down.
    """
    def label(ok: bool) -> str:
        return "healthy" if ok else "unhealthy"

    store_status = label(await get_order_store().health_check())
    payment_status = label(await get_payment_service().health_check())

    # Redis only matters for Excel exports
    try:
        with redis.Redis.from_url(
            settings.redis_url, socket_timeout=2, socket_connect_timeout=2
        ) as r:
            r.ping()
        redis_status = "healthy"
    except redis.RedisError as e:
        redis_status = f"unhealthy: {e}"
        logger.warning(f"Redis unreachable at {settings.redis_url}: {e}")

    checks = (store_status, redis_status, payment_status)
    overall = "operational" if all(s == "healthy" for s in checks) else "degraded"

    return HealthResponse(
        status=overall,
        order_store=store_status,
        redis=redis_status,
        payment_service=payment_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# MENU ENDPOINTS
# =============================================================================

@app.get("/api/menu", response_model=list[MenuItemResponse], tags=["Menu"])
async def list_menu() -> list[MenuItemResponse]:
    """List all menu items."""
    items = await get_menu_catalog().list_items()
    return [MenuItemResponse.from_item(item) for item in items]


@app.post(
    "/api/menu",
    response_model=MenuItemResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def add_menu_item(item_data: MenuItemCreate) -> MenuItemResponse:
    """Add an item to the menu."""
    item = await get_menu_catalog().add_item(MenuItem(
        id=item_data.id or "",
        name=item_data.name,
        price=item_data.price,
        category=item_data.category,
        description=item_data.description,
        is_available=item_data.is_available,
    ))
    logger.info(f"Menu item {item.id} added: {item.name} @ {item.price}")
    return MenuItemResponse.from_item(item)


@app.delete(
    "/api/menu/{menu_item_id}",
    status_code=204,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def remove_menu_item(menu_item_id: str) -> Response:
    """Take an item off the menu. Existing orders keep their lines."""
    await get_menu_catalog().remove_item(menu_item_id)
    logger.info(f"Menu item {menu_item_id} removed")
    return Response(status_code=204)


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Create Order",
)
async def create_order(
    order_data: OrderCreate,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Open a new pending order for a table."""
    order = await service.create_order(
        order_data.table_number,
        [NewLine(line.menu_item_id, line.quantity, line.note) for line in order_data.lines],
    )
    return OrderResponse.from_order(order)


@app.get(
    "/api/orders",
    response_model=OrderListResponse,
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """List orders, newest first."""
    orders = await service.list_orders(status)
    return OrderListResponse(
        total=len(orders),
        orders=[OrderResponse.from_order(order) for order in orders],
    )


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Get a specific order by ID."""
    return OrderResponse.from_order(await service.get_order(order_id))


@app.post(
    "/api/orders/{order_id}/lines",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def add_order_line(
    order_id: str,
    line: LineAdd,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    order = await service.add_line(
        order_id,
        NewLine(line.menu_item_id, line.quantity, line.note),
        expected_version=line.expected_version,
    )
    return OrderResponse.from_order(order)


@app.patch(
    "/api/orders/{order_id}/lines/{index}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def update_order_line(
    order_id: str,
    index: int,
    changes: LineUpdate,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    order = await service.update_line(
        order_id,
        index,
        quantity=changes.quantity,
        note=changes.note,
        expected_version=changes.expected_version,
    )
    return OrderResponse.from_order(order)


@app.delete(
    "/api/orders/{order_id}/lines/{index}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def remove_order_line(
    order_id: str,
    index: int,
    expected_version: Optional[int] = Query(None, ge=1),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    order = await service.remove_line(order_id, index, expected_version=expected_version)
    return OrderResponse.from_order(order)


@app.patch(
    "/api/orders/{order_id}/status",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Change Order Status",
)
async def update_order_status(
    order_id: str,
    update: StatusUpdate,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    order = await service.transition_status(
        order_id,
        update.status,
        expected_version=update.expected_version,
    )
    return OrderResponse.from_order(order)


@app.patch(
    "/api/orders/{order_id}/payment",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Record Payment",
)
async def update_order_payment(
    order_id: str,
    payment: PaymentUpdate,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """
    Mark an order paid.

    Card payments must reference a payment intent that the provider
    reports as succeeded.
    """
    order = await service.record_payment(
        order_id,
        payment.payment_method,
        payment_intent_id=payment.payment_intent_id,
        expected_version=payment.expected_version,
    )
    return OrderResponse.from_order(order)


# =============================================================================
# CARD PAYMENT ENDPOINTS
# =============================================================================

@app.get(
    "/api/payments/stripe/config",
    response_model=StripeConfigResponse,
    tags=["Payments"],
)
async def stripe_config() -> StripeConfigResponse:
    """Public configuration for the card payment form."""
    return StripeConfigResponse(
        provider=get_payment_service().provider_name,
        publishable_key=settings.stripe_publishable_key,
        currency=settings.stripe_currency,
    )


@app.post(
    "/api/payments/stripe/create",
    response_model=PaymentIntentResponse,
    responses=ERROR_RESPONSES,
    tags=["Payments"],
    summary="Create Card Payment Intent",
)
async def create_card_payment(
    request_data: CardPaymentCreate,
    service: OrderService = Depends(get_order_service),
) -> PaymentIntentResponse:
    """Create a payment intent for the order total."""
    result = await service.start_card_payment(request_data.order_id)
    return PaymentIntentResponse(
        order_id=request_data.order_id,
        payment_intent_id=result.payment_intent_id,
        client_secret=result.client_secret,
        amount=result.amount,
        currency=result.currency,
    )


@app.post(
    "/api/payments/stripe/webhook",
    tags=["Payments"],
    summary="Payment Provider Webhook",
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    service: OrderService = Depends(get_order_service),
) -> JSONResponse:
    """
    Handle payment provider events.

    ``payment_intent.succeeded`` marks the referenced order paid by card.
    Other events are acknowledged and ignored.
    """
    payload = await request.body()
    event = await get_payment_service().verify_webhook(payload, stripe_signature or "")

    if event is None:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid webhook"},
        )

    event_type = event.get("type", "unknown")
    logger.info(f"Payment webhook received: {event_type}")

    if event_type != "payment_intent.succeeded":
        return JSONResponse(content={"received": True})

    intent = event.get("data", {}).get("object", {})
    order_id = (intent.get("metadata") or {}).get("order_id")
    if not order_id:
        logger.warning(f"Webhook intent {intent.get('id')} carries no order_id")
        return JSONResponse(content={"received": True})

    try:
        await service.record_payment(
            order_id,
            PaymentMethod.CARD,
            payment_intent_id=intent.get("id"),
        )
    except (InvalidTransitionError, PaymentProviderError) as e:
        # Acknowledged anyway so Stripe stops redelivering
        logger.warning(f"Webhook for order {order_id} not applied: {e}")

    return JSONResponse(content={"received": True})


# =============================================================================
# BILL & REPORT ENDPOINTS
# =============================================================================

@app.get(
    "/api/bills/order/{order_id}",
    responses={200: {"content": {"application/pdf": {}}}, **ERROR_RESPONSES},
    tags=["Bills"],
    summary="Download Bill PDF",
)
async def download_bill(
    order_id: str,
    renderer: BillRenderer = Depends(get_bill_renderer),
) -> Response:
    pdf = await renderer.render_bill(order_id)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="bill-{order_id}.pdf"'},
    )


@app.get(
    "/api/bills/daily-report",
    response_model=DailyReportResponse,
    tags=["Bills"],
    summary="Daily Sales Report",
)
async def daily_report(
    report_date: Optional[date] = Query(None, alias="date"),
    reports: ReportService = Depends(get_report_service),
) -> DailyReportResponse:
    """Sales for one day (today when no date is given)."""
    report = await reports.daily_report(report_date)
    return DailyReportResponse.from_report(report)


@app.post(
    "/api/bills/daily-report/export",
    response_model=ExportQueuedResponse,
    tags=["Bills"],
    summary="Export Daily Report to Excel",
)
async def export_daily_report(
    export: Optional[DailyReportExport] = None,
    reports: ReportService = Depends(get_report_service),
) -> ExportQueuedResponse:
    report = await reports.daily_report(export.report_date if export else None)

    if not settings.excel_export_enabled:
        return ExportQueuedResponse(success=False, message="Excel export is disabled")

    try:
        task = export_daily_report_to_excel.delay(report.to_dict())
    except Exception as e:
        logger.error(f"Could not queue daily report {report.date.isoformat()} export: {e}")
        return ExportQueuedResponse(success=False, message="Export queue unavailable")

    logger.info(f"Daily report {report.date.isoformat()} queued for export ({task.id})")
    return ExportQueuedResponse(
        success=True,
        message=f"Daily report {report.date.isoformat()} queued",
        task_id=task.id,
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(BillingError)
async def billing_exception_handler(request: Request, exc: BillingError) -> JSONResponse:
    """Translate engine errors into the standard error response."""
    if exc.status_code >= 500:
        logger.error(f"{exc.error}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.error, detail=exc.message).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are validation errors like any other."""
    detail = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="Validation Error", detail=detail).model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )

