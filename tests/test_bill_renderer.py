"""
Bill rendering.

Rendered with the built-in Helvetica fonts and uncompressed page
streams so the drawn text can be found in the PDF bytes.
"""

import logging

import pytest

from restaurant_billing.core.exceptions import NotFoundError, ValidationError
from restaurant_billing.domain import PaymentMethod
from restaurant_billing.services import bill_renderer
from restaurant_billing.services.bill_renderer import BillRenderer, truncate_name
from restaurant_billing.services.order_service import NewLine
from restaurant_billing.services.pricing import format_money


def money(amount: int) -> bytes:
    """An amount as drawn with a font lacking the rupee sign."""
    return format_money(amount, use_symbol=False).replace("\u00a0", " ").replace("\u202f", " ").encode()


@pytest.fixture
def renderer(store, menu):
    return BillRenderer(store, menu, search_fonts=False, compress=False)


async def test_bill_is_a_pdf_with_details(service, renderer, standard_lines):
    order = await service.create_order(7, standard_lines)

    pdf = await renderer.render_bill(order.id)

    assert pdf.startswith(b"%PDF")
    assert b"Bill Details" in pdf
    assert f"Bill No: {order.id[-8:].upper()}".encode() in pdf
    assert b"Table Number: 7" in pdf
    assert b"Veg Biryani" in pdf
    assert b"Grand Total:" in pdf
    assert money(495) in pdf
    assert b"Page 1" in pdf


async def test_payment_block_only_when_paid(service, renderer, standard_lines):
    order = await service.create_order(7, standard_lines)

    unpaid = await renderer.render_bill(order.id)
    await service.record_payment(order.id, PaymentMethod.UPI)
    paid = await renderer.render_bill(order.id)

    assert b"Payment Information" not in unpaid
    assert b"Payment Information" in paid
    assert b"Method: UPI" in paid
    assert b"Amount Paid: " + money(495) in paid


async def test_rendering_is_deterministic(service, renderer, standard_lines):
    order = await service.create_order(7, standard_lines)

    assert await renderer.render_bill(order.id) == await renderer.render_bill(order.id)


async def test_rendering_does_not_touch_the_order(service, renderer, store, standard_lines):
    order = await service.create_order(7, standard_lines)

    await renderer.render_bill(order.id)

    assert await store.get(order.id) == order


async def test_unresolvable_lines_are_skipped(service, renderer, menu, caplog):
    order = await service.create_order(7, [NewLine("paneer", 1), NewLine("chai", 2)])
    await menu.remove_item("paneer")

    with caplog.at_level(logging.WARNING):
        pdf = await renderer.render_bill(order.id)

    assert b"Masala Chai" in pdf
    assert b"Paneer Tikka" not in pdf
    # Totals cover only the printed line: 100 + 10 GST
    assert money(110) in pdf
    assert money(385) not in pdf
    assert "skipping line 0" in caplog.text


async def test_no_printable_lines(service, renderer, menu):
    order = await service.create_order(7, [NewLine("chai", 1)])
    await menu.remove_item("chai")

    with pytest.raises(ValidationError):
        await renderer.render_bill(order.id)


async def test_unknown_order(renderer):
    with pytest.raises(NotFoundError):
        await renderer.render_bill("missing")


async def test_long_orders_spill_onto_more_pages(service, renderer):
    order = await service.create_order(7, [NewLine("chai", 1) for _ in range(60)])

    pdf = await renderer.render_bill(order.id)

    assert b"Page 2" in pdf
    # The table header is repeated on the new page
    assert pdf.count(b"(Item) Tj") >= 2


def test_truncate_name():
    assert truncate_name("Masala Chai", 25) == "Masala Chai"
    assert truncate_name("Paneer Butter Masala Special Thali", 25) == "Paneer Butter Masala S..."
    assert len(truncate_name("x" * 40, 25)) == 25


def test_each_font_file_registers_under_its_own_name(monkeypatch, tmp_path):
    registered = {}
    monkeypatch.setattr(bill_renderer, "TTFont", lambda name, path: (name, path))
    monkeypatch.setattr(
        bill_renderer.pdfmetrics, "registerFont", lambda font: registered.__setitem__(*font)
    )
    (tmp_path / "NotoSans-Bold.ttf").touch()

    noto = bill_renderer._register_fonts.__wrapped__(str(tmp_path / "NotoSans.ttf"))
    dejavu = bill_renderer._register_fonts.__wrapped__(str(tmp_path / "DejaVuSans.ttf"))

    assert (noto.regular, noto.bold) == ("Bill-NotoSans", "Bill-NotoSans-Bold")
    assert (dejavu.regular, dejavu.bold) == ("Bill-DejaVuSans", "Bill-DejaVuSans-Bold")
    assert registered["Bill-NotoSans-Bold"] == str(tmp_path / "NotoSans-Bold.ttf")
    # No bold face on disk: the regular file doubles as bold
    assert registered["Bill-DejaVuSans-Bold"] == str(tmp_path / "DejaVuSans.ttf")
