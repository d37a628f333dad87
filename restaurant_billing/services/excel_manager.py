"""
Excel ledgers for the back office.

Two workbooks live under DATA_DIR:
    paid_orders.xlsx     one row appended per settled order
    daily_reports.xlsx   one row per business date, replaced on re-export

Celery workers write them concurrently, so every read-modify-write happens
under a FileLock next to the workbook. Exports report failure through the
returned dict instead of raising, except OSError which the task retries.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable
from pathlib import Path

import pandas as pd
from filelock import FileLock, Timeout

from restaurant_billing.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

DATA_DIR = Path(settings.data_directory)


class ExcelManager:
    """Locked read-modify-write access to the ledger workbooks."""

    LOCK_TIMEOUT = settings.excel_lock_timeout

    PAID_ORDER_COLUMNS = [
        "order_id",
        "bill_no",
        "table_number",
        "lines",
        "subtotal",
        "tax",
        "total",
        "payment_method",
        "payment_intent_id",
        "paid_at",
        "exported_at",
    ]

    DAILY_REPORT_COLUMNS = [
        "date",
        "total_orders",
        "total_sales",
        "cash",
        "card",
        "upi",
        "average_order_value",
        "exported_at",
    ]

    @classmethod
    def _path(cls, filename: str) -> Path:
        # DATA_DIR is looked up per call so tests can point it elsewhere
        return DATA_DIR / filename

    @classmethod
    def _read(cls, file_path: Path, columns: list[str]) -> pd.DataFrame:
        if not file_path.exists():
            return pd.DataFrame(columns=columns)
        try:
            return pd.read_excel(file_path, engine="openpyxl")
        except Exception as e:
            # Unreadable workbook: start over rather than block every export
            logger.warning(f"⚠️ {file_path.name} is unreadable, starting a new sheet: {e}")
            return pd.DataFrame(columns=columns)

    @classmethod
    def _update(
        cls,
        filename: str,
        columns: list[str],
        label: str,
        change: Callable[[pd.DataFrame, str], pd.DataFrame],
    ) -> dict[str, Any]:
        """
        Apply ``change`` to a workbook while holding its lock.

        ``change`` receives the current sheet and the export timestamp and
        returns the sheet to save. OSError propagates so Celery can retry.
        """
        file_path = cls._path(filename)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        result: dict[str, Any] = {"success": False, "message": "", "exported_at": None}

        try:
            with FileLock(f"{file_path}.lock", timeout=cls.LOCK_TIMEOUT):
                exported_at = datetime.now().isoformat()
                df = change(cls._read(file_path, columns), exported_at)
                df.to_excel(str(file_path), index=False, engine="openpyxl")
        except Timeout:
            result["message"] = f"Lock timeout ({cls.LOCK_TIMEOUT}s)"
            logger.error(f"🔒 {label}: gave up waiting for {file_path.name}")
            return result

        logger.info(f"📊 {label} written to {file_path.name}")
        result.update(success=True, message=f"{label} exported", exported_at=exported_at)
        return result

    # =========================================================================
    # EXPORTS
    # =========================================================================

    @classmethod
    def export_paid_order(cls, order_data: dict[str, Any]) -> dict[str, Any]:
        """Append one row for an Order.to_dict() of a paid order."""
        order_id = str(order_data.get("order_id") or "unknown")

        def append(df: pd.DataFrame, exported_at: str) -> pd.DataFrame:
            row = {
                "order_id": order_id,
                "bill_no": order_id[-8:].upper(),
                "table_number": order_data.get("table_number"),
                "lines": json.dumps(order_data.get("lines", [])),
                "subtotal": order_data.get("subtotal"),
                "tax": order_data.get("tax"),
                "total": order_data.get("total"),
                "payment_method": order_data.get("payment_method"),
                "payment_intent_id": order_data.get("payment_intent_id"),
                "paid_at": order_data.get("paid_at"),
                "exported_at": exported_at,
            }
            return pd.concat([df, pd.DataFrame([row])], ignore_index=True)

        result = cls._update(
            settings.paid_orders_filename, cls.PAID_ORDER_COLUMNS, f"Order {order_id}", append
        )
        result["order_id"] = order_id
        return result

    @classmethod
    def export_daily_report(cls, report_data: dict[str, Any]) -> dict[str, Any]:
        """Write the row for a DailyReport.to_dict(), replacing that date's old row."""
        report_date = str(report_data.get("date", "unknown"))
        methods = report_data.get("payment_methods") or {}

        def replace(df: pd.DataFrame, exported_at: str) -> pd.DataFrame:
            if not df.empty:
                df = df[df["date"].astype(str) != report_date]
            row = {
                "date": report_date,
                "total_orders": report_data.get("total_orders", 0),
                "total_sales": report_data.get("total_sales", 0),
                "cash": methods.get("cash", 0),
                "card": methods.get("card", 0),
                "upi": methods.get("upi", 0),
                "average_order_value": str(report_data.get("average_order_value", "0")),
                "exported_at": exported_at,
            }
            df = pd.concat([df, pd.DataFrame([row])], ignore_index=True)
            return df.sort_values("date", key=lambda s: s.astype(str), ignore_index=True)

        result = cls._update(
            settings.daily_reports_filename,
            cls.DAILY_REPORT_COLUMNS,
            f"Daily report {report_date}",
            replace,
        )
        result["date"] = report_date
        return result

    # =========================================================================
    # READ BACK
    # =========================================================================

    @classmethod
    def _rows(cls, filename: str, columns: list[str]) -> list[dict[str, Any]]:
        return cls._read(cls._path(filename), columns).to_dict("records")

    @classmethod
    def get_paid_orders(cls) -> list[dict[str, Any]]:
        return cls._rows(settings.paid_orders_filename, cls.PAID_ORDER_COLUMNS)

    @classmethod
    def get_daily_reports(cls) -> list[dict[str, Any]]:
        return cls._rows(settings.daily_reports_filename, cls.DAILY_REPORT_COLUMNS)

    @classmethod
    def clear_all(cls) -> bool:
        """Remove both workbooks and their lock files."""
        try:
            for filename in (settings.paid_orders_filename, settings.daily_reports_filename):
                file_path = cls._path(filename)
                for f in (file_path, Path(f"{file_path}.lock")):
                    f.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Could not clear ledgers: {e}")
            return False
        logger.info("🧹 Ledgers cleared")
        return True
