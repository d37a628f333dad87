"""SQLAlchemy-backed menu catalog reading the ``menu_items`` table."""

import uuid
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restaurant_billing.core.exceptions import ConflictError, NotFoundError
from restaurant_billing.domain import MenuItem
from restaurant_billing.models import MenuItemRecord
from restaurant_billing.services.menu.base import BaseMenuCatalog


def _to_item(record: MenuItemRecord) -> MenuItem:
    return MenuItem(
        id=record.id,
        name=record.name,
        price=record.price,
        category=record.category,
        description=record.description,
        is_available=record.is_available,
    )


class SqlAlchemyMenuCatalog(BaseMenuCatalog):

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def resolve(self, menu_item_id: str) -> Optional[MenuItem]:
        async with self._session_maker() as session:
            record = await session.get(MenuItemRecord, menu_item_id)
            return _to_item(record) if record else None

    async def add_item(self, item: MenuItem) -> MenuItem:
        item_id = item.id or uuid.uuid4().hex
        record = MenuItemRecord(
            id=item_id,
            name=item.name,
            price=item.price,
            category=item.category,
            description=item.description,
            is_available=item.is_available,
        )
        async with self._session_maker() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise ConflictError(f"Menu item {item_id} already exists")
            return _to_item(record)

    async def remove_item(self, menu_item_id: str) -> None:
        async with self._session_maker() as session:
            result = await session.execute(
                delete(MenuItemRecord).where(MenuItemRecord.id == menu_item_id)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Menu item {menu_item_id} not found")
            await session.commit()

    async def list_items(self) -> list[MenuItem]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(MenuItemRecord).order_by(MenuItemRecord.category, MenuItemRecord.name)
            )
            return [_to_item(record) for record in result.scalars().all()]
