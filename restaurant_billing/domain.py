"""
Domain Types

Plain dataclasses shared by the billing engine and its collaborators.
Stores convert their own records to and from these types, so the
engine never touches ORM objects.

Money is always an ``int`` counted in the deployment's billing unit.
"""

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional


class MenuCategory(str, enum.Enum):
    APPETIZER = "appetizer"
    MAIN = "main"
    DESSERT = "dessert"
    BEVERAGE = "beverage"


class OrderStatus(str, enum.Enum):
    """Kitchen/service workflow."""
    PENDING = "pending"
    PREPARING = "preparing"
    SERVED = "served"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"


@dataclass
class MenuItem:
    """A dish as the menu collaborator knows it."""
    id: str
    name: str
    price: int
    category: MenuCategory
    description: Optional[str] = None
    is_available: bool = True


@dataclass
class OrderLine:
    """
    One line of an order.

    ``unit_price`` is a copy of the menu price taken when the line was
    added; later menu edits never reach it.
    """
    menu_item_id: str
    quantity: int
    unit_price: int
    note: Optional[str] = None

    @property
    def amount(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "menu_item_id": self.menu_item_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OrderLine":
        return cls(
            menu_item_id=str(data["menu_item_id"]),
            quantity=int(data["quantity"]),
            unit_price=int(data["unit_price"]),
            note=data.get("note"),
        )


@dataclass
class Order:
    """
    A table's order.

    ``subtotal``, ``tax`` and ``total`` are derived from ``lines`` and kept
    for audit/reporting. ``version`` is bumped by the store on every write.
    """
    table_number: int
    lines: list[OrderLine] = field(default_factory=list)
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[PaymentMethod] = None
    payment_intent_id: Optional[str] = None
    subtotal: int = 0
    tax: int = 0
    total: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    id: Optional[str] = None
    version: int = 0

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary (used by the Excel exports)."""
        return {
            "order_id": self.id,
            "table_number": self.table_number,
            "lines": [line.to_dict() for line in self.lines],
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "payment_method": self.payment_method.value if self.payment_method else None,
            "payment_intent_id": self.payment_intent_id,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "total": self.total,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "version": self.version,
        }


@dataclass
class DailyReport:
    """Sales summary for one calendar day. Derived on demand, never stored."""
    date: date
    total_orders: int = 0
    total_sales: int = 0
    payment_methods: dict[str, int] = field(
        default_factory=lambda: {method.value: 0 for method in PaymentMethod}
    )

    @property
    def average_order_value(self) -> Decimal:
        if self.total_orders == 0:
            return Decimal("0")
        average = Decimal(self.total_sales) / Decimal(self.total_orders)
        return average.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "total_orders": self.total_orders,
            "total_sales": self.total_sales,
            "payment_methods": dict(self.payment_methods),
            "average_order_value": str(self.average_order_value),
        }
