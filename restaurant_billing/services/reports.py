"""
Daily Sales Report

Summarizes paid orders settled during one calendar day in the
restaurant's reference timezone. Read-only; safe to run alongside any
other operation.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional, Union
from zoneinfo import ZoneInfo

from restaurant_billing.core.config import get_settings
from restaurant_billing.domain import DailyReport
from restaurant_billing.services.store.base import BaseOrderStore

logger = logging.getLogger(__name__)


def day_window(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """``[start of day, start of day + 24h)`` for ``day`` in ``tz``."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    return start, start + timedelta(hours=24)


class ReportService:
    """
    Builds DailyReport objects from the order store.

    Args:
        store: Order store to query
        tz_name: IANA timezone defining "a day" (defaults to settings)
        clock: Returns the current time, used when no date is given
    """

    def __init__(
        self,
        store: BaseOrderStore,
        tz_name: Optional[str] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._store = store
        self._tz = ZoneInfo(tz_name or get_settings().timezone)
        self._clock = clock

    def _report_date(self, as_of: Union[date, datetime, None]) -> date:
        if as_of is None:
            as_of = self._clock()
        if isinstance(as_of, datetime):
            if as_of.tzinfo is None:
                return as_of.date()
            return as_of.astimezone(self._tz).date()
        return as_of

    async def daily_report(self, as_of: Union[date, datetime, None] = None) -> DailyReport:
        """
        Report for the day containing ``as_of`` (today when omitted).

        Never raises for an empty day; the report is simply zeroed.
        """
        day = self._report_date(as_of)
        start, end = day_window(day, self._tz)
        orders = await self._store.query_by_paid_window(start, end)

        report = DailyReport(date=day)
        for order in orders:
            report.total_orders += 1
            report.total_sales += order.total
            if order.payment_method is not None:
                report.payment_methods[order.payment_method.value] += 1

        logger.info(
            f"Daily report {day.isoformat()}: {report.total_orders} orders, "
            f"sales {report.total_sales}"
        )
        return report
