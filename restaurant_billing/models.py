"""
SQLAlchemy Database Models

Orders are stored document-style: the ordered lines live in one JSON
column next to the derived totals and the two status fields.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Enum, Boolean, JSON

from restaurant_billing.database import Base
from restaurant_billing.domain import MenuCategory, OrderStatus, PaymentMethod, PaymentStatus


class OrderRecord(Base):
    """
    Main Order table.

    ``version`` is the optimistic-concurrency counter; every UPDATE is
    conditional on it.
    """
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True)
    table_number = Column(Integer, nullable=False, index=True)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    lines = Column(JSON, nullable=False, default=list)

    # =========================================================================
    # PRICING
    # =========================================================================
    subtotal = Column(Integer, nullable=False, default=0)
    tax = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)

    # =========================================================================
    # STATUS & PAYMENT
    # =========================================================================
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    payment_status = Column(
        Enum(PaymentStatus),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True
    )
    payment_method = Column(Enum(PaymentMethod), nullable=True)
    payment_intent_id = Column(String(100), nullable=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True, index=True)

    version = Column(Integer, nullable=False, default=1)

    def __repr__(self):
        return f"<Order #{self.id} - table {self.table_number} - {self.status.value}>"


class MenuItemRecord(Base):
    __tablename__ = "menu_items"

    id = Column(String(32), primary_key=True)
    name = Column(String(100), nullable=False)
    price = Column(Integer, nullable=False)
    category = Column(Enum(MenuCategory), nullable=False, index=True)
    description = Column(Text, nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<MenuItem {self.name} - {self.price}>"
