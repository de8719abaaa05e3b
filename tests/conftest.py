"""
Pytest fixtures for the restaurant order service.

Each test gets a fresh in-memory SQLite database with a small catalog:
menu items with recipes, ingredients with known stock, and two tables.
"""

import os

# Configure the application before any restaurant_orders module is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("SEED_DEMO_DATA", "false")

from dataclasses import dataclass
from decimal import Decimal
import uuid

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from restaurant_orders import models  # noqa: F401
from restaurant_orders.config import Settings
from restaurant_orders.database import Base, get_db
from restaurant_orders.models import (
    Ingredient,
    MenuItem,
    Order,
    Recipe,
    RestaurantTable,
    Unit,
)
from restaurant_orders.services.order_service import OrderService

TAX_RATE = Decimal("0.18")


@dataclass
class Catalog:
    burger: uuid.UUID
    bread: uuid.UUID
    cake: uuid.UUID
    water: uuid.UUID
    soup: uuid.UUID  # unavailable
    flour: uuid.UUID
    sugar: uuid.UUID
    bun: uuid.UUID
    patty: uuid.UUID
    side: uuid.UUID  # fractional recipe: 0.125 garnish per plate
    garnish: uuid.UUID
    t1: uuid.UUID
    t2: uuid.UUID


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings():
    return Settings(tax_rate=TAX_RATE, tracing_enabled=False, seed_demo_data=False)


@pytest.fixture
def service(db, settings):
    return OrderService(db, settings, request_id="test")


@pytest.fixture
async def catalog(session_factory) -> Catalog:
    async with session_factory() as db:
        kg = Unit(name="kilogram", abbreviation="kg")
        pc = Unit(name="piece", abbreviation="pc")

        flour = Ingredient(
            name="Flour", unit=kg, current_stock=Decimal("1"),
            minimum_stock=Decimal("0.5"), cost_per_unit=Decimal("40.00"),
        )
        sugar = Ingredient(
            name="Sugar", unit=kg, current_stock=Decimal("10"),
            minimum_stock=Decimal("1"), cost_per_unit=Decimal("50.00"),
        )
        bun = Ingredient(
            name="Burger Bun", unit=pc, current_stock=Decimal("100"),
            minimum_stock=Decimal("10"), cost_per_unit=Decimal("8.00"),
        )
        patty = Ingredient(
            name="Beef Patty", unit=pc, current_stock=Decimal("100"),
            minimum_stock=Decimal("10"), cost_per_unit=Decimal("60.00"),
        )
        garnish = Ingredient(
            name="Garnish Mix", unit=pc, current_stock=Decimal("50"),
            minimum_stock=Decimal("5"), cost_per_unit=Decimal("1.00"),
        )

        burger = MenuItem(name="Burger", price=Decimal("200.00"))
        bread = MenuItem(name="Bread Loaf", price=Decimal("90.00"))
        cake = MenuItem(name="Cake", price=Decimal("250.00"))
        water = MenuItem(name="Water", price=Decimal("20.00"))
        soup = MenuItem(name="Soup of the Day", price=Decimal("120.00"), is_available=False)
        side = MenuItem(name="Side Salad", price=Decimal("30.00"))

        db.add_all([kg, pc, flour, sugar, bun, patty, garnish, burger, bread, cake, water, soup, side])
        db.add_all(
            [
                Recipe(menu_item=burger, ingredient=bun, quantity_required=Decimal("1")),
                Recipe(menu_item=burger, ingredient=patty, quantity_required=Decimal("1")),
                Recipe(menu_item=bread, ingredient=flour, quantity_required=Decimal("1.5")),
                Recipe(menu_item=cake, ingredient=sugar, quantity_required=Decimal("1")),
                Recipe(menu_item=cake, ingredient=flour, quantity_required=Decimal("0.25")),
                Recipe(menu_item=side, ingredient=garnish, quantity_required=Decimal("0.125")),
            ]
        )

        t1 = RestaurantTable(table_number="T1", capacity=4, location="Main Hall")
        t2 = RestaurantTable(table_number="T2", capacity=2, location="Window")
        db.add_all([t1, t2])
        await db.commit()

        return Catalog(
            burger=burger.id, bread=bread.id, cake=cake.id, water=water.id, soup=soup.id,
            flour=flour.id, sugar=sugar.id, bun=bun.id, patty=patty.id,
            side=side.id, garnish=garnish.id,
            t1=t1.id, t2=t2.id,
        )


@pytest.fixture
async def client(session_factory, catalog):
    from restaurant_orders.main import app

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Read helpers (plain column selects, unaffected by session expiry)
# ---------------------------------------------------------------------------


async def stock_of(db, ingredient_id: uuid.UUID) -> Decimal:
    result = await db.execute(select(Ingredient.current_stock).where(Ingredient.id == ingredient_id))
    return result.scalar_one()


async def table_available(db, table_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(RestaurantTable.is_available).where(RestaurantTable.id == table_id)
    )
    return result.scalar_one()


async def order_row(db, order_id: uuid.UUID):
    result = await db.execute(
        select(
            Order.status,
            Order.inventory_updated,
            Order.subtotal,
            Order.discount_amount,
            Order.tax_amount,
            Order.total_amount,
        ).where(Order.id == order_id)
    )
    return result.one()
