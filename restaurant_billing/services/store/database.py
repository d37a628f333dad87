"""
SQLAlchemy Order Store

Persists orders in the ``orders`` table. Optimistic concurrency is a
conditional UPDATE:

    UPDATE orders SET ..., version = version + 1
    WHERE id = :id AND version = :expected_version

Zero affected rows means either the order does not exist or someone else
wrote first; a follow-up SELECT tells the two apart.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restaurant_billing.core.exceptions import ConflictError, NotFoundError
from restaurant_billing.domain import Order, OrderLine, OrderStatus, PaymentStatus
from restaurant_billing.models import OrderRecord
from restaurant_billing.services.store.base import BaseOrderStore, check_patch

logger = logging.getLogger(__name__)


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store timestamps in UTC; some drivers drop the offset."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_columns(values: dict[str, Any]) -> dict[str, Any]:
    columns = dict(values)
    if "lines" in columns:
        columns["lines"] = [line.to_dict() for line in columns["lines"]]
    for key in ("created_at", "updated_at", "paid_at"):
        if key in columns:
            columns[key] = _to_utc(columns[key])
    return columns


def _to_order(record: OrderRecord) -> Order:
    return Order(
        id=record.id,
        table_number=record.table_number,
        lines=[OrderLine.from_dict(line) for line in (record.lines or [])],
        status=record.status,
        payment_status=record.payment_status,
        payment_method=record.payment_method,
        payment_intent_id=record.payment_intent_id,
        subtotal=record.subtotal,
        tax=record.tax,
        total=record.total,
        created_at=_to_utc(record.created_at),
        updated_at=_to_utc(record.updated_at),
        paid_at=_to_utc(record.paid_at),
        version=record.version,
    )


class SqlAlchemyOrderStore(BaseOrderStore):
    """
    Order store backed by SQLAlchemy's async engine.

    Args:
        session_maker: Factory producing AsyncSession objects
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @property
    def backend_name(self) -> str:
        return "database"

    async def create(self, order: Order) -> str:
        order_id = uuid.uuid4().hex
        record = OrderRecord(
            id=order_id,
            version=1,
            **_to_columns({
                "table_number": order.table_number,
                "lines": order.lines,
                "status": order.status,
                "payment_status": order.payment_status,
                "payment_method": order.payment_method,
                "payment_intent_id": order.payment_intent_id,
                "subtotal": order.subtotal,
                "tax": order.tax,
                "total": order.total,
                "created_at": order.created_at,
                "updated_at": order.updated_at,
                "paid_at": order.paid_at,
            }),
        )

        async with self._session_maker() as session:
            session.add(record)
            await session.commit()

        logger.debug(f"Database: stored order {order_id}")
        return order_id

    async def get(self, order_id: str) -> Order:
        async with self._session_maker() as session:
            record = await session.get(OrderRecord, order_id)
            if record is None:
                raise NotFoundError(f"Order {order_id} not found")
            return _to_order(record)

    async def update(
        self,
        order_id: str,
        patch: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Order:
        check_patch(patch)

        stmt = update(OrderRecord).where(OrderRecord.id == order_id)
        if expected_version is not None:
            stmt = stmt.where(OrderRecord.version == expected_version)
        stmt = (
            stmt.values(**_to_columns(patch), version=OrderRecord.version + 1)
            .execution_options(synchronize_session=False)
        )

        async with self._session_maker() as session:
            result = await session.execute(stmt)

            if result.rowcount == 0:
                await session.rollback()
                record = await session.get(OrderRecord, order_id)
                if record is None:
                    raise NotFoundError(f"Order {order_id} not found")
                raise ConflictError(
                    f"Order {order_id} was modified concurrently "
                    f"(expected version {expected_version}, found {record.version})",
                    expected_version=expected_version,
                    actual_version=record.version,
                )

            await session.commit()

            record = await session.get(OrderRecord, order_id, populate_existing=True)
            return _to_order(record)

    async def query_by_paid_window(self, start: datetime, end: datetime) -> list[Order]:
        stmt = (
            select(OrderRecord)
            .where(OrderRecord.payment_status == PaymentStatus.PAID)
            .where(OrderRecord.paid_at >= _to_utc(start))
            .where(OrderRecord.paid_at < _to_utc(end))
            .order_by(OrderRecord.paid_at)
        )
        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return [_to_order(record) for record in result.scalars().all()]

    async def find_paid_by_intent(self, payment_intent_id: str) -> list[Order]:
        stmt = (
            select(OrderRecord)
            .where(OrderRecord.payment_status == PaymentStatus.PAID)
            .where(OrderRecord.payment_intent_id == payment_intent_id)
        )
        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return [_to_order(record) for record in result.scalars().all()]

    async def list_orders(self, status: Optional[OrderStatus] = None) -> list[Order]:
        stmt = select(OrderRecord).order_by(OrderRecord.created_at.desc())
        if status is not None:
            stmt = stmt.where(OrderRecord.status == status)
        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return [_to_order(record) for record in result.scalars().all()]

    async def health_check(self) -> bool:
        try:
            async with self._session_maker() as session:
                await session.execute(select(1))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False
