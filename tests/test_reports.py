from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from restaurant_billing.domain import Order, OrderLine, PaymentMethod, PaymentStatus
from restaurant_billing.services.reports import ReportService

# 2024-03-15 in Asia/Kolkata runs from 2024-03-14T18:30Z to 2024-03-15T18:30Z
DAY_START = datetime(2024, 3, 14, 18, 30, tzinfo=timezone.utc)
DAY_END = datetime(2024, 3, 15, 18, 30, tzinfo=timezone.utc)


async def add_paid(store, total, paid_at, method=PaymentMethod.CASH):
    return await store.create(Order(
        table_number=1,
        lines=[OrderLine("x", 1, total)],
        payment_status=PaymentStatus.PAID,
        payment_method=method,
        subtotal=total,
        tax=0,
        total=total,
        created_at=paid_at,
        updated_at=paid_at,
        paid_at=paid_at,
    ))


@pytest.fixture
def reports(store):
    return ReportService(store, tz_name="Asia/Kolkata")


async def test_empty_day(reports):
    report = await reports.daily_report(date(2024, 3, 15))

    assert report.total_orders == 0
    assert report.total_sales == 0
    assert report.payment_methods == {"cash": 0, "card": 0, "upi": 0}
    assert report.average_order_value == Decimal("0")


async def test_window_boundaries(reports, store):
    await add_paid(store, 100, DAY_START - timedelta(seconds=1))
    await add_paid(store, 200, DAY_START)
    await add_paid(store, 300, DAY_END - timedelta(seconds=1), PaymentMethod.UPI)
    await add_paid(store, 400, DAY_END)

    report = await reports.daily_report(date(2024, 3, 15))

    assert report.total_orders == 2
    assert report.total_sales == 500
    assert report.payment_methods == {"cash": 1, "card": 0, "upi": 1}
    assert report.average_order_value == Decimal("250.00")


async def test_unpaid_orders_are_ignored(reports, store):
    await store.create(Order(table_number=1, lines=[OrderLine("x", 1, 100)], total=110, created_at=DAY_START))

    assert (await reports.daily_report(date(2024, 3, 15))).total_orders == 0


async def test_average_rounds_to_two_places(reports, store):
    for total in (100, 100, 101):
        await add_paid(store, total, DAY_START + timedelta(hours=2), PaymentMethod.CARD)

    report = await reports.daily_report(date(2024, 3, 15))

    assert report.average_order_value == Decimal("100.33")
    assert report.payment_methods["card"] == 3


async def test_aware_datetime_is_read_in_restaurant_time(reports, store):
    await add_paid(store, 200, DAY_START + timedelta(minutes=10))

    # 20:00 UTC on the 14th is already the 15th in Kolkata
    report = await reports.daily_report(datetime(2024, 3, 14, 20, 0, tzinfo=timezone.utc))

    assert report.date == date(2024, 3, 15)
    assert report.total_orders == 1


async def test_defaults_to_today(store):
    reports = ReportService(
        store,
        tz_name="Asia/Kolkata",
        clock=lambda: datetime(2024, 3, 15, 6, 0, tzinfo=timezone.utc),
    )

    assert (await reports.daily_report()).date == date(2024, 3, 15)


async def test_report_dict(reports, store):
    await add_paid(store, 495, DAY_START + timedelta(hours=5))

    data = (await reports.daily_report(date(2024, 3, 15))).to_dict()

    assert data == {
        "date": "2024-03-15",
        "total_orders": 1,
        "total_sales": 495,
        "payment_methods": {"cash": 1, "card": 0, "upi": 0},
        "average_order_value": "495.00",
    }
