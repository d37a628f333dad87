"""
Money & Tax Calculator

Turns order lines into subtotal/tax/total and formats amounts for print.

Amounts are integers in the billing unit. Tax is computed with Decimal
and rounded half-up to a whole unit, so repeated calls on the same lines
always agree to the last unit.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Iterable, Optional

from babel import Locale
from babel.numbers import format_currency

from restaurant_billing.core.config import get_settings
from restaurant_billing.core.exceptions import ValidationError
from restaurant_billing.domain import OrderLine

TAX_RATE = Decimal("0.10")
TAX_LABEL = "GST (10%)"


@dataclass(frozen=True)
class Totals:
    subtotal: int
    tax: int
    total: int


def _validate_line(line: OrderLine) -> None:
    if isinstance(line.quantity, bool) or not isinstance(line.quantity, int):
        raise ValidationError(f"Quantity must be an integer, got {line.quantity!r}")
    if isinstance(line.unit_price, bool) or not isinstance(line.unit_price, int):
        raise ValidationError(f"Unit price must be an integer amount, got {line.unit_price!r}")
    if line.quantity < 1:
        raise ValidationError(f"Quantity must be at least 1, got {line.quantity}")
    if line.unit_price < 0:
        raise ValidationError(f"Unit price cannot be negative, got {line.unit_price}")


def compute_tax(subtotal: int) -> int:
    """10% of ``subtotal``, rounded half-up to a whole unit."""
    return int((Decimal(subtotal) * TAX_RATE).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_totals(lines: Iterable[OrderLine]) -> Totals:
    """
    Compute subtotal, tax and total for ``lines``.

    Raises:
        ValidationError: a line has quantity < 1 or a negative price
    """
    subtotal = 0
    for line in lines:
        _validate_line(line)
        subtotal += line.unit_price * line.quantity

    tax = compute_tax(subtotal)
    return Totals(subtotal=subtotal, tax=tax, total=subtotal + tax)


# =============================================================================
# FORMATTING
# =============================================================================

@lru_cache(maxsize=16)
def _whole_unit_pattern(locale: str) -> str:
    """The locale's currency pattern with the fractional digits removed."""
    pattern = Locale.parse(locale).currency_formats["standard"].pattern
    return re.sub(r"\.[0#]+", "", pattern)


def format_money(
    amount: int,
    currency: Optional[str] = None,
    locale: Optional[str] = None,
    use_symbol: bool = True,
) -> str:
    """
    Render ``amount`` with the locale's currency format and no fraction.

    With ``use_symbol=False`` the ISO code replaces the symbol, for fonts
    that cannot draw it.

    Example:
        >>> format_money(123456, "INR", "en_IN")
        '₹1,23,456'
    """
    settings = get_settings()
    currency = currency or settings.currency
    locale = locale or settings.locale

    pattern = _whole_unit_pattern(locale)
    if not use_symbol:
        pattern = pattern.replace("¤", "¤¤ ")

    formatted = format_currency(
        amount,
        currency,
        format=pattern,
        locale=locale,
        currency_digits=False,
    )
    return formatted.strip()
