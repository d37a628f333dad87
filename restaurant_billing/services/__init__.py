"""
                        Services Module

Contains all business logic services with the hybrid architecture pattern.
Each pluggable service has in-process (development) and real (production)
implementations.

Services:
    - pricing: Subtotal, tax and total calculation, money formatting
    - lifecycle: Order status and payment state machines
    - order_service: Order operations with optimistic concurrency
    - bill_renderer: PDF bills
    - reports: Daily sales reports
    - store: Order persistence (memory / SQLAlchemy)
    - menu: Menu catalog (memory / SQLAlchemy)
    - payment: Card payments (mock / Stripe)
    - excel_manager: File-locked Excel ledgers
"""

from restaurant_billing.services.excel_manager import ExcelManager

__all__ = ["ExcelManager"]
