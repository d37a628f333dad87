"""HTTP layer: request flow and error mapping."""

import json
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from restaurant_billing import main
from restaurant_billing.main import app, get_bill_renderer
from restaurant_billing.services.bill_renderer import BillRenderer
from restaurant_billing.services.menu import get_menu_catalog
from restaurant_billing.services.store import get_order_store
from restaurant_billing.services.menu import reset_menu_catalog
from restaurant_billing.services.payment import reset_payment_service
from restaurant_billing.services.store import reset_order_store


@pytest.fixture
def client():
    reset_order_store()
    reset_menu_catalog()
    reset_payment_service()

    with TestClient(app) as test_client:
        test_client.post("/api/menu", json={
            "id": "dal", "name": "Dal Makhani", "price": 200, "category": "main",
        })
        test_client.post("/api/menu", json={
            "id": "lassi", "name": "Sweet Lassi", "price": 50, "category": "beverage",
        })
        yield test_client

    reset_order_store()
    reset_menu_catalog()
    reset_payment_service()


def open_order(client, table=4, lines=None):
    response = client.post("/api/orders", json={
        "table_number": table,
        "lines": lines or [{"menu_item_id": "dal", "quantity": 2}, {"menu_item_id": "lassi", "quantity": 1}],
    })
    assert response.status_code == 201
    return response.json()


def test_root_and_health(client):
    assert client.get("/").status_code == 200

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["order_store"] == "healthy"
    assert health.json()["payment_service"] == "healthy"


def test_menu(client):
    items = client.get("/api/menu").json()

    assert {item["id"] for item in items} == {"dal", "lassi"}


def test_menu_ids_are_unique(client):
    response = client.post("/api/menu", json={
        "id": "dal", "name": "Dal Tadka", "price": 180, "category": "main",
    })

    assert response.status_code == 409
    assert response.json()["error"] == "Conflict"


def test_remove_menu_item(client):
    assert client.delete("/api/menu/lassi").status_code == 204
    assert {item["id"] for item in client.get("/api/menu").json()} == {"dal"}

    assert client.delete("/api/menu/lassi").status_code == 404


def test_order_lifecycle(client):
    order = open_order(client)
    assert (order["subtotal"], order["tax"], order["total"]) == (450, 45, 495)
    assert order["version"] == 1

    order_id = order["order_id"]
    for status in ("preparing", "served"):
        response = client.patch(f"/api/orders/{order_id}/status", json={"status": status})
        assert response.status_code == 200

    response = client.patch(f"/api/orders/{order_id}/payment", json={"payment_method": "cash"})
    assert response.status_code == 200
    assert response.json()["payment_status"] == "paid"

    response = client.patch(f"/api/orders/{order_id}/status", json={"status": "completed"})
    assert response.json()["status"] == "completed"

    listed = client.get("/api/orders", params={"status": "completed"}).json()
    assert listed["total"] == 1
    assert listed["orders"][0]["order_id"] == order_id

    report = client.get("/api/bills/daily-report").json()
    assert report["total_orders"] == 1
    assert report["total_sales"] == 495
    assert report["payment_methods"]["cash"] == 1


def test_line_endpoints(client):
    order_id = open_order(client)["order_id"]

    response = client.post(f"/api/orders/{order_id}/lines", json={"menu_item_id": "lassi", "quantity": 2})
    assert response.json()["subtotal"] == 550

    response = client.patch(f"/api/orders/{order_id}/lines/0", json={"quantity": 1})
    assert response.json()["subtotal"] == 350

    response = client.delete(f"/api/orders/{order_id}/lines/1")
    assert response.status_code == 200
    assert len(response.json()["lines"]) == 2


def test_error_mapping(client):
    order_id = open_order(client)["order_id"]

    missing = client.get("/api/orders/does-not-exist")
    assert missing.status_code == 404
    assert missing.json()["success"] is False
    assert missing.json()["error"] == "Not Found"

    skipped = client.patch(f"/api/orders/{order_id}/status", json={"status": "served"})
    assert skipped.status_code == 400
    assert skipped.json()["error"] == "Invalid Transition"

    invalid = client.post("/api/orders", json={"table_number": 0, "lines": []})
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "Validation Error"

    stale = client.patch(
        f"/api/orders/{order_id}/payment",
        json={"payment_method": "upi", "expected_version": 7},
    )
    assert stale.status_code == 409
    assert stale.json()["error"] == "Conflict"

    client.patch(f"/api/orders/{order_id}/payment", json={"payment_method": "upi"})
    twice = client.patch(f"/api/orders/{order_id}/payment", json={"payment_method": "cash"})
    assert twice.status_code == 400


def test_card_payment_flow(client):
    order_id = open_order(client)["order_id"]

    config = client.get("/api/payments/stripe/config").json()
    assert config["provider"] == "mock"

    intent = client.post("/api/payments/stripe/create", json={"order_id": order_id})
    assert intent.status_code == 200
    assert intent.json()["amount"] == 49500

    paid = client.patch(f"/api/orders/{order_id}/payment", json={
        "payment_method": "card",
        "payment_intent_id": intent.json()["payment_intent_id"],
    })
    assert paid.status_code == 200
    assert paid.json()["payment_method"] == "card"


def test_unknown_intent_is_a_provider_error(client):
    order_id = open_order(client)["order_id"]

    response = client.patch(f"/api/orders/{order_id}/payment", json={
        "payment_method": "card",
        "payment_intent_id": "pi_nope",
    })

    assert response.status_code == 502
    assert response.json()["error"] == "Payment Provider Error"


def test_webhook_marks_order_paid(client):
    order_id = open_order(client)["order_id"]
    intent_id = client.post("/api/payments/stripe/create", json={"order_id": order_id}).json()["payment_intent_id"]

    event = {
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": intent_id, "metadata": {"order_id": order_id}}},
    }
    response = client.post("/api/payments/stripe/webhook", content=json.dumps(event))

    assert response.status_code == 200
    order = client.get(f"/api/orders/{order_id}").json()
    assert order["payment_status"] == "paid"
    assert order["payment_method"] == "card"


def test_webhook_for_another_orders_intent_is_acknowledged(client):
    paid_for = open_order(client, table=4)["order_id"]
    other = open_order(client, table=5)["order_id"]
    intent_id = client.post("/api/payments/stripe/create", json={"order_id": paid_for}).json()["payment_intent_id"]

    event = {
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": intent_id, "metadata": {"order_id": other}}},
    }
    response = client.post("/api/payments/stripe/webhook", content=json.dumps(event))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert client.get(f"/api/orders/{other}").json()["payment_status"] == "pending"


def test_webhook_ignores_other_events(client):
    response = client.post("/api/payments/stripe/webhook", content=b'{"type": "charge.refunded"}')

    assert response.status_code == 200
    assert response.json() == {"received": True}


def test_bill_download(client):
    order_id = open_order(client)["order_id"]

    response = client.get(f"/api/bills/order/{order_id}")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert f"bill-{order_id}.pdf" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")

    assert client.get("/api/bills/order/missing").status_code == 404


def test_bill_omits_lines_of_deleted_menu_items(client):
    app.dependency_overrides[get_bill_renderer] = lambda: BillRenderer(
        get_order_store(), get_menu_catalog(), search_fonts=False, compress=False
    )
    try:
        order_id = open_order(client)["order_id"]
        assert b"Sweet Lassi" in client.get(f"/api/bills/order/{order_id}").content

        assert client.delete("/api/menu/lassi").status_code == 204
        response = client.get(f"/api/bills/order/{order_id}")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert b"Dal Makhani" in response.content
    assert b"Sweet Lassi" not in response.content
    # The stored order still carries both lines
    assert len(client.get(f"/api/orders/{order_id}").json()["lines"]) == 2


def test_report_for_a_given_date(client):
    report = client.get("/api/bills/daily-report", params={"date": "2020-01-01"}).json()

    assert report["date"] == "2020-01-01"
    assert report["total_orders"] == 0
    assert report["average_order_value"] == "0"


def test_report_export_disabled(client):
    response = client.post("/api/bills/daily-report/export", json={"report_date": "2024-03-15"})

    assert response.status_code == 200
    assert response.json()["success"] is False


def test_report_export_queued(client, monkeypatch):
    queued = []

    def delay(report):
        queued.append(report)
        return SimpleNamespace(id="task-1")

    monkeypatch.setattr(main.settings, "excel_export_enabled", True)
    monkeypatch.setattr(main, "export_daily_report_to_excel", SimpleNamespace(delay=delay))

    response = client.post("/api/bills/daily-report/export", json={"report_date": "2024-03-15"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["task_id"] == "task-1"
    assert queued[0]["date"] == "2024-03-15"


def test_report_export_with_broker_down(client, monkeypatch):
    def delay(report):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr(main.settings, "excel_export_enabled", True)
    monkeypatch.setattr(main, "export_daily_report_to_excel", SimpleNamespace(delay=delay))

    response = client.post("/api/bills/daily-report/export", json={"report_date": "2024-03-15"})

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["task_id"] is None
