"""
Menu Catalog Factory

Returns the in-memory or SQLAlchemy catalog based on STORE_BACKEND.
"""

import logging
from functools import lru_cache

from restaurant_billing.core.config import get_settings
from restaurant_billing.services.menu.base import BaseMenuCatalog
from restaurant_billing.services.menu.memory import InMemoryMenuCatalog

logger = logging.getLogger(__name__)


@lru_cache()
def get_menu_catalog() -> BaseMenuCatalog:
    """Get the configured menu catalog (cached)."""
    settings = get_settings()

    if settings.uses_database:
        from restaurant_billing.database import async_session_maker
        from restaurant_billing.services.menu.database import SqlAlchemyMenuCatalog

        logger.info("Menu Catalog: Using SqlAlchemyMenuCatalog")
        return SqlAlchemyMenuCatalog(async_session_maker)

    logger.info("Menu Catalog: Using InMemoryMenuCatalog")
    return InMemoryMenuCatalog()


def reset_menu_catalog() -> None:
    """Clear the cached catalog instance."""
    get_menu_catalog.cache_clear()


__all__ = [
    "get_menu_catalog",
    "reset_menu_catalog",
    "BaseMenuCatalog",
    "InMemoryMenuCatalog",
]
