"""
Stock ledger: ingredient requirements of an order and the matching
deduction / restoration of ``current_stock``.

Requirements are derived from the order's line items through each menu
item's recipe: ``required = sum(recipe.quantity_required * line.quantity)``.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from restaurant_orders.exceptions import InsufficientStock, StockShortage
from restaurant_orders.metrics import INSUFFICIENT_STOCK, LOW_STOCK_ALERTS, STOCK_MOVEMENTS
from restaurant_orders.models.inventory import Ingredient
from restaurant_orders.models.menu_item import Recipe
from restaurant_orders.models.order import OrderItem

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class IngredientRequirement:
    ingredient_id: uuid.UUID
    ingredient: str
    unit: str | None
    required_quantity: Decimal
    available_quantity: Decimal

    @property
    def is_sufficient(self) -> bool:
        return self.available_quantity >= self.required_quantity

    @property
    def shortfall(self) -> Decimal:
        return max(self.required_quantity - self.available_quantity, ZERO)


class StockLedger:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _required_quantities(self, order_id: uuid.UUID) -> dict[uuid.UUID, Decimal]:
        lines = await self._db.execute(
            select(OrderItem.menu_item_id, OrderItem.quantity).where(OrderItem.order_id == order_id)
        )
        quantity_by_item: dict[uuid.UUID, int] = defaultdict(int)
        for menu_item_id, quantity in lines.all():
            quantity_by_item[menu_item_id] += quantity

        if not quantity_by_item:
            return {}

        recipes = await self._db.execute(
            select(Recipe.menu_item_id, Recipe.ingredient_id, Recipe.quantity_required).where(
                Recipe.menu_item_id.in_(quantity_by_item.keys())
            )
        )
        required: dict[uuid.UUID, Decimal] = defaultdict(lambda: ZERO)
        for menu_item_id, ingredient_id, quantity_required in recipes.all():
            required[ingredient_id] += Decimal(quantity_required) * quantity_by_item[menu_item_id]
        return dict(required)

    async def _load_ingredients(
        self, ingredient_ids: list[uuid.UUID], lock: bool = False
    ) -> list[Ingredient]:
        # Stable id order keeps concurrent deductions from deadlocking.
        query = (
            select(Ingredient)
            .where(Ingredient.id.in_(ingredient_ids))
            .order_by(Ingredient.id)
            .options(selectinload(Ingredient.unit))
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        result = await self._db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def _requirements(
        ingredients: list[Ingredient], required: dict[uuid.UUID, Decimal]
    ) -> list[IngredientRequirement]:
        return [
            IngredientRequirement(
                ingredient_id=ingredient.id,
                ingredient=ingredient.name,
                unit=ingredient.unit.abbreviation if ingredient.unit else None,
                required_quantity=required[ingredient.id],
                available_quantity=Decimal(ingredient.current_stock),
            )
            for ingredient in ingredients
        ]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def check_availability(self, order_id: uuid.UUID) -> list[IngredientRequirement]:
        """Compare the order's ingredient needs against current stock. No side effects."""
        required = await self._required_quantities(order_id)
        if not required:
            return []
        ingredients = await self._load_ingredients(list(required))
        return self._requirements(ingredients, required)

    async def deduct(self, order_id: uuid.UUID) -> list[IngredientRequirement]:
        """
        Decrement stock for every ingredient the order needs, or nothing at all.

        All touched rows are locked and checked before the first write; any
        shortage raises InsufficientStock listing every short ingredient.
        """
        required = await self._required_quantities(order_id)
        if not required:
            logger.info("Order has no recipe ingredients to deduct", extra={"order_id": str(order_id)})
            return []

        ingredients = await self._load_ingredients(list(required), lock=True)
        requirements = self._requirements(ingredients, required)

        shortages = [
            StockShortage(
                ingredient_id=str(req.ingredient_id),
                ingredient=req.ingredient,
                unit=req.unit,
                required=req.required_quantity,
                available=req.available_quantity,
                short_by=req.shortfall,
            )
            for req in requirements
            if not req.is_sufficient
        ]
        if shortages:
            INSUFFICIENT_STOCK.inc()
            logger.warning(
                "Insufficient stock to confirm order",
                extra={
                    "order_id": str(order_id),
                    "short_ingredients": [s.ingredient for s in shortages],
                },
            )
            raise InsufficientStock(shortages)

        for ingredient in ingredients:
            ingredient.current_stock = Decimal(ingredient.current_stock) - required[ingredient.id]
        await self._db.flush()
        STOCK_MOVEMENTS.labels("deduct").inc()

        for ingredient in ingredients:
            if ingredient.current_stock <= ingredient.minimum_stock:
                LOW_STOCK_ALERTS.labels(ingredient.name).inc()
                logger.warning(
                    "Ingredient at or below minimum stock",
                    extra={
                        "ingredient_id": str(ingredient.id),
                        "ingredient": ingredient.name,
                        "current_stock": str(ingredient.current_stock),
                        "minimum_stock": str(ingredient.minimum_stock),
                    },
                )

        logger.info(
            "Ingredients deducted",
            extra={"order_id": str(order_id), "ingredient_count": len(ingredients)},
        )
        return requirements

    async def restore(self, order_id: uuid.UUID) -> list[IngredientRequirement]:
        """Add back the quantities a previous ``deduct`` removed for this order."""
        required = await self._required_quantities(order_id)
        if not required:
            return []

        ingredients = await self._load_ingredients(list(required), lock=True)
        requirements = self._requirements(ingredients, required)
        for ingredient in ingredients:
            ingredient.current_stock = Decimal(ingredient.current_stock) + required[ingredient.id]
        await self._db.flush()
        STOCK_MOVEMENTS.labels("restore").inc()

        logger.info(
            "Ingredients restored",
            extra={"order_id": str(order_id), "ingredient_count": len(ingredients)},
        )
        return requirements
