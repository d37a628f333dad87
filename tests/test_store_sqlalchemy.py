"""SQLAlchemy store and catalog against a throwaway SQLite file."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from restaurant_billing import models  # noqa: F401
from restaurant_billing.core.exceptions import ConflictError, NotFoundError
from restaurant_billing.database import Base
from restaurant_billing.domain import (
    MenuCategory,
    MenuItem,
    Order,
    OrderLine,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from restaurant_billing.services.menu.database import SqlAlchemyMenuCatalog
from restaurant_billing.services.store.database import SqlAlchemyOrderStore

NOON = datetime(2024, 3, 15, 6, 30, tzinfo=timezone.utc)


@pytest.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def db_store(session_maker):
    return SqlAlchemyOrderStore(session_maker)


def new_order(**overrides) -> Order:
    values = dict(
        table_number=6,
        lines=[OrderLine("biryani", 2, 200), OrderLine("chai", 1, 50, note="less sugar")],
        subtotal=450,
        tax=45,
        total=495,
        created_at=NOON,
        updated_at=NOON,
    )
    values.update(overrides)
    return Order(**values)


async def test_create_and_get_round_trip(db_store):
    order_id = await db_store.create(new_order())

    order = await db_store.get(order_id)

    assert order.id == order_id
    assert order.version == 1
    assert order.lines[1] == OrderLine("chai", 1, 50, note="less sugar")
    assert order.status == OrderStatus.PENDING
    assert order.created_at == NOON


async def test_get_missing_order(db_store):
    with pytest.raises(NotFoundError):
        await db_store.get("nope")


async def test_update_bumps_version(db_store):
    order_id = await db_store.create(new_order())

    updated = await db_store.update(order_id, {"status": OrderStatus.PREPARING}, expected_version=1)

    assert updated.status == OrderStatus.PREPARING
    assert updated.version == 2


async def test_update_with_stale_version_conflicts(db_store):
    order_id = await db_store.create(new_order())
    await db_store.update(order_id, {"status": OrderStatus.PREPARING}, expected_version=1)

    with pytest.raises(ConflictError) as exc_info:
        await db_store.update(order_id, {"status": OrderStatus.CANCELLED}, expected_version=1)

    assert exc_info.value.actual_version == 2
    assert (await db_store.get(order_id)).status == OrderStatus.PREPARING


async def test_update_missing_order(db_store):
    with pytest.raises(NotFoundError):
        await db_store.update("nope", {"status": OrderStatus.PREPARING}, expected_version=1)


async def test_update_rejects_store_owned_fields(db_store):
    order_id = await db_store.create(new_order())

    with pytest.raises(ValueError):
        await db_store.update(order_id, {"version": 10})


async def test_paid_window_query(db_store):
    inside = await db_store.create(new_order(
        payment_status=PaymentStatus.PAID,
        payment_method=PaymentMethod.CASH,
        paid_at=NOON,
    ))
    await db_store.create(new_order(
        payment_status=PaymentStatus.PAID,
        payment_method=PaymentMethod.UPI,
        paid_at=NOON + timedelta(days=1),
    ))
    await db_store.create(new_order())

    found = await db_store.query_by_paid_window(NOON - timedelta(hours=1), NOON + timedelta(hours=1))

    assert [order.id for order in found] == [inside]
    assert found[0].paid_at == NOON


async def test_list_orders_by_status(db_store):
    first = await db_store.create(new_order())
    second = await db_store.create(new_order(created_at=NOON + timedelta(minutes=5)))
    await db_store.update(first, {"status": OrderStatus.PREPARING})

    assert [o.id for o in await db_store.list_orders()] == [second, first]
    assert [o.id for o in await db_store.list_orders(OrderStatus.PREPARING)] == [first]


async def test_health_check(db_store):
    assert await db_store.health_check() is True


async def test_menu_catalog(session_maker):
    catalog = SqlAlchemyMenuCatalog(session_maker)

    added = await catalog.add_item(MenuItem(id="", name="Dal Makhani", price=220, category=MenuCategory.MAIN))

    assert added.id
    assert (await catalog.resolve(added.id)).price == 220
    assert await catalog.resolve("missing") is None
    assert [item.name for item in await catalog.list_items()] == ["Dal Makhani"]


async def test_menu_catalog_rejects_duplicate_ids(session_maker):
    catalog = SqlAlchemyMenuCatalog(session_maker)
    await catalog.add_item(MenuItem(id="dal", name="Dal Makhani", price=220, category=MenuCategory.MAIN))

    with pytest.raises(ConflictError):
        await catalog.add_item(MenuItem(id="dal", name="Dal Tadka", price=180, category=MenuCategory.MAIN))

    assert (await catalog.resolve("dal")).name == "Dal Makhani"


async def test_menu_catalog_remove_item(session_maker):
    catalog = SqlAlchemyMenuCatalog(session_maker)
    await catalog.add_item(MenuItem(id="dal", name="Dal Makhani", price=220, category=MenuCategory.MAIN))

    await catalog.remove_item("dal")

    assert await catalog.resolve("dal") is None
    with pytest.raises(NotFoundError):
        await catalog.remove_item("dal")
