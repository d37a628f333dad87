"""
Shared fixtures.

The environment is pinned before any application module is imported so
the cached settings see the test configuration.
"""

import os

os.environ.update({
    "ENV_MODE": "development",
    "STORE_BACKEND": "memory",
    "DATABASE_URL": "sqlite+aiosqlite:///./test_restaurant_billing.db",
    "MOCK_PAYMENT_FAILURE_RATE": "0",
    "MOCK_PAYMENT_MIN_LATENCY": "0",
    "MOCK_PAYMENT_MAX_LATENCY": "0",
    "EXCEL_EXPORT_ENABLED": "false",
    "CURRENCY": "INR",
    "LOCALE": "en_IN",
    "TIMEZONE": "Asia/Kolkata",
})

from datetime import datetime, timedelta, timezone

import pytest

from restaurant_billing.domain import MenuCategory, MenuItem
from restaurant_billing.services.menu.memory import InMemoryMenuCatalog
from restaurant_billing.services.order_service import NewLine, OrderService
from restaurant_billing.services.payment.mock import MockPaymentService
from restaurant_billing.services.store.memory import InMemoryOrderStore


class FakeClock:
    """Settable clock returning timezone-aware UTC datetimes."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


MENU = [
    MenuItem(id="biryani", name="Veg Biryani", price=200, category=MenuCategory.MAIN),
    MenuItem(id="chai", name="Masala Chai", price=50, category=MenuCategory.BEVERAGE),
    MenuItem(id="paneer", name="Paneer Tikka", price=250, category=MenuCategory.APPETIZER),
    MenuItem(
        id="kulfi",
        name="Pista Kulfi",
        price=90,
        category=MenuCategory.DESSERT,
        is_available=False,
    ),
]


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 15, 6, 30, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryOrderStore()


@pytest.fixture
def menu():
    return InMemoryMenuCatalog(MENU)


@pytest.fixture
def payments():
    return MockPaymentService(failure_rate=0.0, min_latency=0, max_latency=0)


@pytest.fixture
def service(store, menu, payments, clock):
    return OrderService(store, menu, payments, clock=clock, currency="inr")


@pytest.fixture
def standard_lines():
    """2 x biryani + 1 x chai: subtotal 450, tax 45, total 495."""
    return [NewLine("biryani", 2), NewLine("chai", 1)]
