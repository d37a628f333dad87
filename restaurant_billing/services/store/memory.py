"""
In-Memory Order Store

Keeps orders in a dictionary, copying on every read and write so callers
never share state with the store (the way a document store hands out
fresh documents).

The version check and the write in ``update`` run without awaiting, so
on a single event loop they cannot interleave with another update.
"""

import copy
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from restaurant_billing.core.exceptions import ConflictError, NotFoundError
from restaurant_billing.domain import Order, OrderStatus, PaymentStatus
from restaurant_billing.services.store.base import BaseOrderStore, check_patch

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class InMemoryOrderStore(BaseOrderStore):
    """Dictionary-backed order store."""

    def __init__(self):
        self._orders: dict[str, Order] = {}

    @property
    def backend_name(self) -> str:
        return "memory"

    async def create(self, order: Order) -> str:
        order_id = uuid.uuid4().hex
        self._orders[order_id] = replace(copy.deepcopy(order), id=order_id, version=1)
        logger.debug(f"Memory: stored order {order_id}")
        return order_id

    async def get(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return copy.deepcopy(order)

    async def update(
        self,
        order_id: str,
        patch: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Order:
        check_patch(patch)

        current = self._orders.get(order_id)
        if current is None:
            raise NotFoundError(f"Order {order_id} not found")

        if expected_version is not None and current.version != expected_version:
            raise ConflictError(
                f"Order {order_id} was modified concurrently "
                f"(expected version {expected_version}, found {current.version})",
                expected_version=expected_version,
                actual_version=current.version,
            )

        updated = replace(current, **copy.deepcopy(patch), version=current.version + 1)
        self._orders[order_id] = updated
        return copy.deepcopy(updated)

    async def query_by_paid_window(self, start: datetime, end: datetime) -> list[Order]:
        return [
            copy.deepcopy(order)
            for order in self._orders.values()
            if order.payment_status == PaymentStatus.PAID
            and order.paid_at is not None
            and start <= order.paid_at < end
        ]

    async def find_paid_by_intent(self, payment_intent_id: str) -> list[Order]:
        return [
            copy.deepcopy(order)
            for order in self._orders.values()
            if order.payment_status == PaymentStatus.PAID
            and order.payment_intent_id == payment_intent_id
        ]

    async def list_orders(self, status: Optional[OrderStatus] = None) -> list[Order]:
        orders = [
            order for order in self._orders.values()
            if status is None or order.status == status
        ]
        orders.sort(key=lambda o: o.created_at or _EPOCH, reverse=True)
        return copy.deepcopy(orders)
