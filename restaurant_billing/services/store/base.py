"""
Order Store Abstract Base Class

Defines the persistence contract the billing engine relies on. The engine
reads a record, validates a transition against it and writes it back with
the version it read; the store is the only arbiter of concurrent writes.

Implementations:
    - InMemoryOrderStore: process-local dictionary (development, tests)
    - SqlAlchemyOrderStore: conditional UPDATE on the ``orders`` table
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from restaurant_billing.domain import Order, OrderStatus

# Fields the engine may patch. ``id``, ``created_at`` and ``version`` are
# owned by the store.
PATCHABLE_FIELDS = frozenset({
    "table_number",
    "lines",
    "status",
    "payment_status",
    "payment_method",
    "payment_intent_id",
    "subtotal",
    "tax",
    "total",
    "updated_at",
    "paid_at",
})


def check_patch(patch: dict[str, Any]) -> None:
    unknown = set(patch) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot patch order fields: {sorted(unknown)}")


class BaseOrderStore(ABC):
    """
    Abstract base class for order stores.

    Every implementation must make ``update`` with an ``expected_version``
    atomic: either the stored version matches and the patch is applied
    (bumping the version), or ConflictError is raised and nothing changes.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        pass

    @abstractmethod
    async def create(self, order: Order) -> str:
        """
        Persist a new order.

        Returns:
            str: The id assigned to the order
        """
        pass

    @abstractmethod
    async def get(self, order_id: str) -> Order:
        """
        Load one order.

        Raises:
            NotFoundError: no order has this id
        """
        pass

    @abstractmethod
    async def update(
        self,
        order_id: str,
        patch: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Apply ``patch`` and return the stored order.

        Raises:
            NotFoundError: no order has this id
            ConflictError: the stored version differs from ``expected_version``
        """
        pass

    @abstractmethod
    async def query_by_paid_window(self, start: datetime, end: datetime) -> list[Order]:
        """Paid orders settled within ``[start, end)``."""
        pass

    @abstractmethod
    async def find_paid_by_intent(self, payment_intent_id: str) -> list[Order]:
        """Paid orders settled with this card payment intent."""
        pass

    @abstractmethod
    async def list_orders(self, status: Optional[OrderStatus] = None) -> list[Order]:
        """All orders, newest first, optionally filtered by status."""
        pass

    async def health_check(self) -> bool:
        return True
