import pytest

from restaurant_billing.domain import PaymentMethod
from restaurant_billing.services import excel_manager
from restaurant_billing.services.excel_manager import ExcelManager


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(excel_manager, "DATA_DIR", tmp_path / "data")
    return tmp_path / "data"


async def test_export_paid_order(service, standard_lines, data_dir):
    order = await service.create_order(3, standard_lines)
    paid = await service.record_payment(order.id, PaymentMethod.CASH)

    result = ExcelManager.export_paid_order(paid.to_dict())

    assert result["success"] is True
    assert (data_dir / "paid_orders.xlsx").exists()

    rows = ExcelManager.get_paid_orders()
    assert len(rows) == 1
    assert rows[0]["order_id"] == paid.id
    assert rows[0]["bill_no"] == paid.id[-8:].upper()
    assert rows[0]["total"] == 495
    assert rows[0]["payment_method"] == "cash"


def test_paid_orders_are_appended():
    for n in range(3):
        ExcelManager.export_paid_order({"order_id": f"order{n}", "total": 100 * (n + 1)})

    assert [row["total"] for row in ExcelManager.get_paid_orders()] == [100, 200, 300]


def test_daily_report_is_replaced_per_date():
    ExcelManager.export_daily_report({
        "date": "2024-03-15",
        "total_orders": 1,
        "total_sales": 495,
        "payment_methods": {"cash": 1, "card": 0, "upi": 0},
        "average_order_value": "495.00",
    })
    ExcelManager.export_daily_report({
        "date": "2024-03-14",
        "total_orders": 0,
        "total_sales": 0,
    })
    ExcelManager.export_daily_report({
        "date": "2024-03-15",
        "total_orders": 2,
        "total_sales": 990,
        "payment_methods": {"cash": 1, "card": 1, "upi": 0},
        "average_order_value": "495.00",
    })

    rows = ExcelManager.get_daily_reports()

    assert [str(row["date"]) for row in rows] == ["2024-03-14", "2024-03-15"]
    assert rows[1]["total_orders"] == 2
    assert rows[1]["card"] == 1


def test_reading_missing_ledgers():
    assert ExcelManager.get_paid_orders() == []
    assert ExcelManager.get_daily_reports() == []


def test_clear_all(data_dir):
    ExcelManager.export_paid_order({"order_id": "abc", "total": 10})

    assert ExcelManager.clear_all() is True
    assert not (data_dir / "paid_orders.xlsx").exists()
