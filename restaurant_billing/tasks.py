"""
Celery Tasks
Background Excel exports for paid orders and daily reports.
"""

import logging
import time

from restaurant_billing.celery_worker import celery_app
from restaurant_billing.services.excel_manager import ExcelManager

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(OSError,),
    retry_backoff=True
)
def export_paid_order_to_excel(self, order_data: dict) -> dict:
    """
    Append a settled order to the paid-orders ledger.

    Args:
        order_data: Order.to_dict() of the paid order

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    order_id = order_data.get('order_id', 'unknown')

    logger.info(f"📋 Task {task_id}: Exporting paid order {order_id}")
    start_time = time.time()

    result = ExcelManager.export_paid_order(order_data)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"✅ Task {task_id}: Order {order_id} exported in {elapsed}s")
    else:
        logger.warning(f"⚠️ Task {task_id}: Order {order_id} failed - {result['message']}")

    return result


@celery_app.task(bind=True)
def export_daily_report_to_excel(self, report_data: dict) -> dict:
    """Write a DailyReport.to_dict() row to the daily reports ledger."""
    result = ExcelManager.export_daily_report(report_data)
    result['task_id'] = self.request.id

    if not result['success']:
        logger.warning(f"⚠️ Daily report {report_data.get('date')} export failed - {result['message']}")

    return result

