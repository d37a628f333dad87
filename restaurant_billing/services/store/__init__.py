"""
Order Store Factory

Returns the in-memory or SQLAlchemy store based on STORE_BACKEND.

Usage:
    from restaurant_billing.services.store import get_order_store

    store = get_order_store()
    order = await store.get(order_id)
"""

import logging
from functools import lru_cache

from restaurant_billing.core.config import get_settings
from restaurant_billing.services.store.base import BaseOrderStore
from restaurant_billing.services.store.memory import InMemoryOrderStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_order_store() -> BaseOrderStore:
    """Get the configured order store (cached)."""
    settings = get_settings()

    if settings.uses_database:
        from restaurant_billing.database import async_session_maker
        from restaurant_billing.services.store.database import SqlAlchemyOrderStore

        logger.info("Order Store: Using SqlAlchemyOrderStore")
        return SqlAlchemyOrderStore(async_session_maker)

    logger.info("Order Store: Using InMemoryOrderStore")
    return InMemoryOrderStore()


def reset_order_store() -> None:
    """Clear the cached store instance."""
    get_order_store.cache_clear()


__all__ = [
    "get_order_store",
    "reset_order_store",
    "BaseOrderStore",
    "InMemoryOrderStore",
]
