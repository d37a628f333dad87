"""
Bill Renderer

Turns an order into a printable A4 PDF bill.

Layout, top to bottom:
    - restaurant header and greeting
    - bill details: bill number, date/time, table number
    - item table (repeated header on every page it spills onto)
    - totals block: subtotal, GST, grand total
    - payment information (paid orders only)
    - footer and terms

Totals are recomputed from the lines that are printed, never taken from
the stored aggregates, so the bill always adds up on paper. The PDF is
built in memory and returned only when complete; nothing is written
anywhere before that, and the order itself is never modified.
"""

import io
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from babel.dates import format_datetime
from babel.numbers import get_currency_symbol
from reportlab.lib.pagesizes import A4
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from restaurant_billing.core.config import Settings, get_settings
from restaurant_billing.core.exceptions import ValidationError
from restaurant_billing.domain import Order, OrderLine
from restaurant_billing.services.menu.base import BaseMenuCatalog
from restaurant_billing.services.pricing import TAX_LABEL, Totals, compute_totals, format_money
from restaurant_billing.services.store.base import BaseOrderStore

logger = logging.getLogger(__name__)

# Page geometry (points)
_PAGE_WIDTH, _PAGE_HEIGHT = A4
_MARGIN = 50
_RIGHT_EDGE = _PAGE_WIDTH - 45
_ROW_HEIGHT = 20
_FOOTER_TOP = 160  # body content never goes below this line

# Item table columns
_COL_ITEM = 50
_COL_QTY = 300
_COL_RATE_RIGHT = 440
_COL_AMOUNT_RIGHT = _RIGHT_EDGE

_FONT_FALLBACKS = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/noto/NotoSans-Regular.ttf",
)

# Babel output may contain no-break spaces the base-14 fonts cannot draw
_SPACE_TRANSLATION = str.maketrans({"\u00a0": " ", "\u202f": " "})


@dataclass(frozen=True)
class _Fonts:
    regular: str
    bold: str
    unicode: bool  # can draw the currency symbol


@dataclass
class BillLine:
    """A printable line: menu name resolved, amount precomputed."""
    name: str
    quantity: int
    unit_price: int
    amount: int


@lru_cache(maxsize=4)
def _register_fonts(font_path: str) -> _Fonts:
    path = Path(font_path)
    # Named after the file so two fonts never replace each other
    regular = f"Bill-{path.stem}"
    bold = f"Bill-{path.stem}-Bold"
    pdfmetrics.registerFont(TTFont(regular, font_path))

    bold_path = path.with_name(f"{path.stem}-Bold{path.suffix}")
    pdfmetrics.registerFont(TTFont(bold, str(bold_path if bold_path.exists() else path)))

    logger.info(f"Bill font registered from {font_path}")
    return _Fonts(regular=regular, bold=bold, unicode=True)


def _pick_fonts(font_path: Optional[str], search_fonts: bool) -> _Fonts:
    candidates = [font_path] if font_path else []
    if search_fonts:
        candidates.extend(_FONT_FALLBACKS)

    for candidate in candidates:
        if candidate and os.path.exists(candidate):
            return _register_fonts(candidate)

    if font_path:
        logger.warning(f"Bill font {font_path} not found; using Helvetica")
    return _Fonts(regular="Helvetica", bold="Helvetica-Bold", unicode=False)


def truncate_name(name: str, limit: int) -> str:
    """Shorten ``name`` to fit the item column, marking the cut with '...'."""
    if len(name) <= limit:
        return name
    return name[: limit - 3] + "..."


class _BillCanvas:
    """Canvas wrapper that tracks the write position and breaks pages."""

    def __init__(self, buffer: io.BytesIO, fonts: _Fonts, compress: bool):
        self.canvas = canvas.Canvas(
            buffer,
            pagesize=A4,
            invariant=1,
            pageCompression=1 if compress else 0,
        )
        self.fonts = fonts
        self.page = 1
        self.y = _PAGE_HEIGHT - _MARGIN

    def font(self, size: float, bold: bool = False) -> None:
        self.canvas.setFont(self.fonts.bold if bold else self.fonts.regular, size)

    def text(self, x: float, text: str) -> None:
        self.canvas.drawString(x, self.y, text.translate(_SPACE_TRANSLATION))

    def right(self, x: float, text: str) -> None:
        self.canvas.drawRightString(x, self.y, text.translate(_SPACE_TRANSLATION))

    def centre(self, text: str) -> None:
        self.canvas.drawCentredString(_PAGE_WIDTH / 2, self.y, text.translate(_SPACE_TRANSLATION))

    def rule(self, offset: float = 0) -> None:
        self.canvas.line(_MARGIN, self.y + offset, _RIGHT_EDGE, self.y + offset)

    def down(self, amount: float = _ROW_HEIGHT) -> None:
        self.y -= amount

    def fits(self, height: float) -> bool:
        return self.y - height >= _FOOTER_TOP

    def page_number(self) -> None:
        self.font(8)
        self.canvas.drawRightString(_RIGHT_EDGE, 30, f"Page {self.page}")

    def new_page(self) -> None:
        self.page_number()
        self.canvas.showPage()
        self.page += 1
        self.y = _PAGE_HEIGHT - _MARGIN

    def finish(self) -> None:
        self.page_number()
        self.canvas.showPage()
        self.canvas.save()


class BillRenderer:
    """
    Renders PDF bills.

    Args:
        store: Order store to read from
        menu: Menu catalog used to label lines
        settings: Defaults to the application settings
        font_path: TrueType font able to draw the currency symbol
        search_fonts: Look in common system font folders when no font is given
        compress: Compress page content streams
    """

    def __init__(
        self,
        store: BaseOrderStore,
        menu: BaseMenuCatalog,
        settings: Optional[Settings] = None,
        font_path: Optional[str] = None,
        search_fonts: bool = True,
        compress: bool = True,
    ):
        self._store = store
        self._menu = menu
        self._settings = settings or get_settings()
        self._font_path = font_path or self._settings.bill_font_path
        self._search_fonts = search_fonts
        self._compress = compress

    async def _resolve_lines(self, order: Order) -> tuple[list[BillLine], list[OrderLine]]:
        bill_lines: list[BillLine] = []
        kept: list[OrderLine] = []
        limit = self._settings.bill_item_name_limit

        for index, line in enumerate(order.lines):
            item = await self._menu.resolve(line.menu_item_id)
            if item is None:
                logger.warning(
                    f"Bill for order {order.id}: skipping line {index}, "
                    f"menu item {line.menu_item_id} does not resolve"
                )
                continue

            kept.append(line)
            bill_lines.append(BillLine(
                name=truncate_name(item.name, limit),
                quantity=line.quantity,
                unit_price=line.unit_price,
                amount=line.amount,
            ))

        return bill_lines, kept

    async def render_bill(self, order_id: str) -> bytes:
        """
        Render the bill for ``order_id``.

        Returns:
            bytes: A complete PDF document

        Raises:
            NotFoundError: unknown order (raised before any rendering)
            ValidationError: no line of the order can be printed
        """
        order = await self._store.get(order_id)
        bill_lines, kept = await self._resolve_lines(order)

        if not bill_lines:
            raise ValidationError(f"Order {order_id} has no printable lines")

        totals = compute_totals(kept)
        if totals.total != order.total:
            logger.warning(
                f"Bill for order {order_id}: printed total {totals.total} "
                f"differs from stored total {order.total}"
            )

        pdf = self._build_pdf(order, bill_lines, totals)
        logger.info(f"Bill rendered for order {order_id} ({len(bill_lines)} lines, {len(pdf)} bytes)")
        return pdf

    # =========================================================================
    # LAYOUT
    # =========================================================================

    def _money(self, amount: int, fonts: _Fonts) -> str:
        return format_money(
            amount,
            currency=self._settings.currency,
            locale=self._settings.locale,
            use_symbol=fonts.unicode,
        )

    def _datetime(self, value: Optional[datetime]) -> str:
        if value is None:
            return "-"
        return format_datetime(
            value,
            format="medium",
            tzinfo=ZoneInfo(self._settings.timezone),
            locale=self._settings.locale,
        )

    def _currency_label(self, fonts: _Fonts) -> str:
        currency = self._settings.currency
        if fonts.unicode:
            return get_currency_symbol(currency, locale=self._settings.locale)
        return currency

    def _build_pdf(self, order: Order, lines: list[BillLine], totals: Totals) -> bytes:
        fonts = _pick_fonts(self._font_path, self._search_fonts)
        buffer = io.BytesIO()
        page = _BillCanvas(buffer, fonts, self._compress)

        self._draw_header(page, order)
        self._draw_table_header(page, fonts)
        for line in lines:
            if not page.fits(_ROW_HEIGHT):
                page.new_page()
                self._draw_table_header(page, fonts)
            self._draw_line(page, line, fonts)

        block_height = 4 * _ROW_HEIGHT + (5 * _ROW_HEIGHT if order.is_paid else 0)
        if not page.fits(block_height):
            page.new_page()

        self._draw_totals(page, totals, fonts)
        if order.is_paid:
            self._draw_payment(page, order, totals, fonts)

        self._draw_footer(page, fonts)
        page.finish()
        return buffer.getvalue()

    def _draw_header(self, page: _BillCanvas, order: Order) -> None:
        page.font(25, bold=True)
        page.centre(self._settings.restaurant_name)
        page.down(30)
        page.font(10)
        page.centre("Thank you for dining with us!")
        page.down(20)
        page.rule()
        page.down(25)

        page.font(12, bold=True)
        page.text(_MARGIN, "Bill Details")
        page.down(20)
        page.font(12)
        page.text(_MARGIN, f"Bill No: {order.id[-8:].upper()}")
        page.right(_RIGHT_EDGE, f"Date: {self._datetime(order.created_at)}")
        page.down(18)
        page.text(_MARGIN, f"Table Number: {order.table_number}")
        page.down(30)

    def _draw_table_header(self, page: _BillCanvas, fonts: _Fonts) -> None:
        label = self._currency_label(fonts)
        page.font(12, bold=True)
        page.text(_COL_ITEM, "Item")
        page.text(_COL_QTY, "Qty")
        page.right(_COL_RATE_RIGHT, f"Rate ({label})")
        page.right(_COL_AMOUNT_RIGHT, f"Amount ({label})")
        page.rule(offset=-6)
        page.down(24)

    def _draw_line(self, page: _BillCanvas, line: BillLine, fonts: _Fonts) -> None:
        page.font(12)
        page.text(_COL_ITEM, line.name)
        page.text(_COL_QTY, str(line.quantity))
        page.right(_COL_RATE_RIGHT, self._money(line.unit_price, fonts))
        page.right(_COL_AMOUNT_RIGHT, self._money(line.amount, fonts))
        page.down()

    def _draw_totals(self, page: _BillCanvas, totals: Totals, fonts: _Fonts) -> None:
        label_x = 340
        page.rule(offset=10)
        page.down(10)

        page.font(12)
        page.text(label_x, "Subtotal:")
        page.right(_COL_AMOUNT_RIGHT, self._money(totals.subtotal, fonts))
        page.down()
        page.text(label_x, f"{TAX_LABEL}:")
        page.right(_COL_AMOUNT_RIGHT, self._money(totals.tax, fonts))
        page.down()

        page.font(12, bold=True)
        page.text(label_x, "Grand Total:")
        page.right(_COL_AMOUNT_RIGHT, self._money(totals.total, fonts))
        page.canvas.rect(label_x - 10, page.y - 7, _RIGHT_EDGE - label_x + 15, 24)
        page.down()

    def _draw_payment(self, page: _BillCanvas, order: Order, totals: Totals, fonts: _Fonts) -> None:
        method = order.payment_method.value.upper() if order.payment_method else "-"

        page.down(20)
        page.font(12, bold=True)
        page.text(_MARGIN, "Payment Information")
        page.down()
        page.font(12)
        page.text(_MARGIN, "Status: Paid")
        page.down()
        page.text(_MARGIN, f"Method: {method}")
        page.text(_COL_QTY, f"Amount Paid: {self._money(totals.total, fonts)}")
        page.down()
        page.text(_MARGIN, f"Date: {self._datetime(order.paid_at)}")
        page.down()

    def _draw_footer(self, page: _BillCanvas, fonts: _Fonts) -> None:
        currency = self._settings.currency
        page.y = 142
        page.font(10)
        page.centre("Thank you for your business!")
        page.y = 126
        page.centre("Please visit again")

        page.font(8)
        for y, text in (
            (104, "Terms & Conditions:"),
            (90, "1. GST is charged at 10% of the subtotal"),
            (80, "2. This is a computer generated bill"),
            (70, f"3. All amounts are in {currency} ({self._currency_label(fonts)})"),
        ):
            page.y = y
            page.text(_MARGIN, text)
