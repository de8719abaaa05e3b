import logging
from decimal import Decimal

from sqlalchemy import select

from restaurant_orders.database import AsyncSessionLocal
from restaurant_orders.models.inventory import Ingredient, Unit
from restaurant_orders.models.menu_item import Category, MenuItem, Recipe
from restaurant_orders.models.table import RestaurantTable

logger = logging.getLogger(__name__)

_UNITS = [
    {"name": "kilogram", "abbreviation": "kg"},
    {"name": "litre", "abbreviation": "l"},
    {"name": "piece", "abbreviation": "pc"},
]

_INGREDIENTS = [
    # name, unit, cost_per_unit, minimum_stock, current_stock
    ("Flour", "kilogram", "45.00", "5", "50"),
    ("Sugar", "kilogram", "40.00", "2", "20"),
    ("Chicken", "kilogram", "220.00", "3", "25"),
    ("Burger Bun", "piece", "8.00", "20", "200"),
    ("Beef Patty", "piece", "60.00", "20", "150"),
    ("Milk", "litre", "55.00", "5", "40"),
    ("Coffee Beans", "kilogram", "900.00", "1", "8"),
]

_CATEGORIES = ["Mains", "Breads", "Beverages", "Desserts"]

_MENU_SEED = [
    # name, category, price, recipe [(ingredient, quantity_required)]
    ("Burger", "Mains", "200.00", [("Burger Bun", "1"), ("Beef Patty", "1")]),
    ("Chicken Curry", "Mains", "280.00", [("Chicken", "0.250")]),
    ("Butter Naan", "Breads", "40.00", [("Flour", "0.100")]),
    ("Cappuccino", "Beverages", "120.00", [("Coffee Beans", "0.018"), ("Milk", "0.150")]),
    ("Cake Slice", "Desserts", "150.00", [("Flour", "0.080"), ("Sugar", "0.060"), ("Milk", "0.050")]),
    ("Mineral Water", "Beverages", "20.00", []),
]

_TABLES = [
    ("T1", 4, "Main Hall"),
    ("T2", 4, "Main Hall"),
    ("T3", 2, "Window"),
    ("T4", 6, "Main Hall"),
    ("T5", 8, "Patio"),
]


async def seed_demo_data() -> None:
    """Populate reference data if the menu is empty. Called once on startup."""
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(MenuItem).limit(1))
        if result.scalars().first() is not None:
            return

        units = {u["name"]: Unit(**u) for u in _UNITS}
        db.add_all(units.values())

        ingredients = {
            name: Ingredient(
                name=name,
                unit=units[unit],
                cost_per_unit=Decimal(cost),
                minimum_stock=Decimal(minimum),
                current_stock=Decimal(current),
            )
            for name, unit, cost, minimum, current in _INGREDIENTS
        }
        db.add_all(ingredients.values())

        categories = {
            name: Category(name=name, display_order=position)
            for position, name in enumerate(_CATEGORIES)
        }
        db.add_all(categories.values())

        for name, category, price, recipe in _MENU_SEED:
            item = MenuItem(name=name, category=categories[category], price=Decimal(price))
            db.add(item)
            for ingredient, quantity in recipe:
                db.add(
                    Recipe(
                        menu_item=item,
                        ingredient=ingredients[ingredient],
                        quantity_required=Decimal(quantity),
                    )
                )

        for table_number, capacity, location in _TABLES:
            db.add(RestaurantTable(table_number=table_number, capacity=capacity, location=location))

        await db.commit()
        logger.info(
            "Seeded demo data",
            extra={
                "menu_items": len(_MENU_SEED),
                "ingredients": len(_INGREDIENTS),
                "tables": len(_TABLES),
            },
        )
