"""
Pydantic Schemas for Request/Response Validation

Money fields are whole billing units (e.g. rupees), never floats.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from restaurant_billing.domain import (
    DailyReport,
    MenuCategory,
    MenuItem,
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class MenuItemCreate(BaseModel):
    """Request schema for adding a menu item."""
    id: Optional[str] = Field(None, max_length=32, examples=["paneer-tikka"])
    name: str = Field(..., min_length=1, max_length=100, examples=["Paneer Tikka"])
    price: int = Field(..., ge=0, examples=[250])
    category: MenuCategory = Field(..., examples=["appetizer"])
    description: Optional[str] = Field(None, max_length=500)
    is_available: bool = True


class OrderLineCreate(BaseModel):
    """Single line in an order request."""
    menu_item_id: str = Field(..., min_length=1, examples=["paneer-tikka"])
    quantity: int = Field(..., ge=1, le=99, examples=[2])
    note: Optional[str] = Field(None, max_length=200)


class OrderCreate(BaseModel):
    """Request schema for creating a new order."""
    table_number: int = Field(..., ge=1, examples=[5])
    lines: List[OrderLineCreate] = Field(..., min_length=1)


class LineAdd(OrderLineCreate):
    """Add one line to an existing order."""
    expected_version: Optional[int] = Field(None, ge=1)


class LineUpdate(BaseModel):
    """Change the quantity and/or note of one line."""
    quantity: Optional[int] = Field(None, ge=1, le=99)
    note: Optional[str] = Field(None, max_length=200)
    expected_version: Optional[int] = Field(None, ge=1)


class StatusUpdate(BaseModel):
    """Move an order to another lifecycle status."""
    status: OrderStatus = Field(..., examples=["preparing"])
    expected_version: Optional[int] = Field(None, ge=1)


class PaymentUpdate(BaseModel):
    """Record payment for an order."""
    payment_method: PaymentMethod = Field(..., examples=["cash"])
    payment_intent_id: Optional[str] = Field(None, examples=["pi_mock_1a2b3c"])
    expected_version: Optional[int] = Field(None, ge=1)


class CardPaymentCreate(BaseModel):
    """Start a card payment for an order."""
    order_id: str = Field(..., min_length=1)


class DailyReportExport(BaseModel):
    """Queue a daily report for the Excel ledger."""
    report_date: Optional[date] = None


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class MenuItemResponse(BaseModel):
    """Response schema for a menu item."""
    id: str
    name: str
    price: int
    category: MenuCategory
    description: Optional[str]
    is_available: bool

    @classmethod
    def from_item(cls, item: MenuItem) -> "MenuItemResponse":
        return cls(
            id=item.id,
            name=item.name,
            price=item.price,
            category=item.category,
            description=item.description,
            is_available=item.is_available,
        )


class OrderLineResponse(BaseModel):
    """One priced line of an order."""
    menu_item_id: str
    quantity: int
    unit_price: int
    amount: int
    note: Optional[str]


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    order_id: str
    table_number: int
    lines: List[OrderLineResponse]
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod]
    payment_intent_id: Optional[str]
    subtotal: int
    tax: int
    total: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    paid_at: Optional[datetime]
    version: int

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            order_id=order.id,
            table_number=order.table_number,
            lines=[
                OrderLineResponse(
                    menu_item_id=line.menu_item_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    amount=line.amount,
                    note=line.note,
                )
                for line in order.lines
            ],
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            payment_intent_id=order.payment_intent_id,
            subtotal=order.subtotal,
            tax=order.tax,
            total=order.total,
            created_at=order.created_at,
            updated_at=order.updated_at,
            paid_at=order.paid_at,
            version=order.version,
        )


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    total: int
    orders: List[OrderResponse]


class DailyReportResponse(BaseModel):
    """Sales summary for one day."""
    date: date
    total_orders: int
    total_sales: int
    payment_methods: dict[str, int]
    average_order_value: Decimal

    @classmethod
    def from_report(cls, report: DailyReport) -> "DailyReportResponse":
        return cls(
            date=report.date,
            total_orders=report.total_orders,
            total_sales=report.total_sales,
            payment_methods=dict(report.payment_methods),
            average_order_value=report.average_order_value,
        )


class ExportQueuedResponse(BaseModel):
    """Response after queueing a background export."""
    success: bool
    message: str
    task_id: Optional[str] = None


class StripeConfigResponse(BaseModel):
    """Public payment configuration for the frontend."""
    provider: str
    publishable_key: Optional[str]
    currency: str


class PaymentIntentResponse(BaseModel):
    """Response after creating a card payment intent."""
    order_id: str
    payment_intent_id: str
    client_secret: Optional[str]
    amount: int
    currency: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    order_store: str
    redis: str
    payment_service: str
    timestamp: datetime
