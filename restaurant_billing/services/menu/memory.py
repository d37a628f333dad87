"""In-memory menu catalog."""

import uuid
from dataclasses import replace
from typing import Iterable, Optional

from restaurant_billing.core.exceptions import ConflictError, NotFoundError
from restaurant_billing.domain import MenuItem
from restaurant_billing.services.menu.base import BaseMenuCatalog


class InMemoryMenuCatalog(BaseMenuCatalog):

    def __init__(self, items: Iterable[MenuItem] = ()):
        self._items: dict[str, MenuItem] = {item.id: item for item in items}

    async def resolve(self, menu_item_id: str) -> Optional[MenuItem]:
        item = self._items.get(menu_item_id)
        return replace(item) if item else None

    async def add_item(self, item: MenuItem) -> MenuItem:
        stored = replace(item, id=item.id or uuid.uuid4().hex)
        if stored.id in self._items:
            raise ConflictError(f"Menu item {stored.id} already exists")
        self._items[stored.id] = stored
        return replace(stored)

    async def remove_item(self, menu_item_id: str) -> None:
        if self._items.pop(menu_item_id, None) is None:
            raise NotFoundError(f"Menu item {menu_item_id} not found")

    async def list_items(self) -> list[MenuItem]:
        return [replace(item) for item in self._items.values()]
