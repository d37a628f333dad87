"""
Menu Catalog Abstract Base Class

The billing engine uses the menu for two things only: copying a price
into a new order line, and labelling lines when a bill is printed. Orders
keep their price snapshots, so removing an item never changes a total; it
only leaves that line unnamed on later bills.
"""

from abc import ABC, abstractmethod
from typing import Optional

from restaurant_billing.domain import MenuItem


class BaseMenuCatalog(ABC):
    """Abstract base class for menu catalogs."""

    @abstractmethod
    async def resolve(self, menu_item_id: str) -> Optional[MenuItem]:
        """
        Look up a menu item.

        Returns:
            MenuItem if known, None if the reference does not resolve
        """
        pass

    @abstractmethod
    async def add_item(self, item: MenuItem) -> MenuItem:
        """
        Store a new menu item; an empty ``id`` is assigned by the catalog.

        Raises:
            ConflictError: an item with this id already exists
        """
        pass

    @abstractmethod
    async def remove_item(self, menu_item_id: str) -> None:
        """
        Delete a menu item.

        Raises:
            NotFoundError: no item has this id
        """
        pass

    @abstractmethod
    async def list_items(self) -> list[MenuItem]:
        pass
