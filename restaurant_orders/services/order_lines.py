import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from restaurant_orders.exceptions import (
    InvalidInput,
    MenuItemNotFound,
    MenuItemUnavailable,
    OrderClosed,
    OrderLocked,
)
from restaurant_orders.models.menu_item import MenuItem, Recipe
from restaurant_orders.models.order import Order, OrderItem
from restaurant_orders.schemas.order import OrderItemCreate
from restaurant_orders.services.pricing import (
    compute_line_total,
    compute_line_food_cost,
    compute_unit_food_cost,
    quantize_money,
)

logger = logging.getLogger(__name__)


class OrderLineManager:
    """Validates requested menu items and inserts price-snapshotted line items."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _resolve_menu_items(self, ids: list[uuid.UUID]) -> dict[uuid.UUID, MenuItem]:
        result = await self._db.execute(
            select(MenuItem)
            .where(MenuItem.id.in_(ids))
            .options(selectinload(MenuItem.recipes).selectinload(Recipe.ingredient))
        )
        return {m.id: m for m in result.scalars().all()}

    async def add_items(self, order: Order, items: list[OrderItemCreate]) -> list[OrderItem]:
        """
        Insert line items for ``order``; the caller holds the order lock and
        recomputes totals afterwards.

        The whole batch is validated before the first insert, so one missing
        or unavailable menu item leaves the order untouched.
        """
        if order.status.is_terminal:
            raise OrderClosed(
                f"Cannot modify {order.status.value} order {order.order_number}",
                details={"order_id": str(order.id), "status": order.status.value},
            )
        if order.inventory_updated:
            raise OrderLocked(
                f"Ingredients already committed for order {order.order_number}; items cannot be added",
                details={"order_id": str(order.id)},
            )
        if not items:
            raise InvalidInput("At least one item is required")

        menu_items = await self._resolve_menu_items(list({item.menu_item_id for item in items}))

        for item in items:
            menu_item = menu_items.get(item.menu_item_id)
            if menu_item is None:
                raise MenuItemNotFound(
                    f"Menu item with ID {item.menu_item_id} not found",
                    details={"menu_item_id": str(item.menu_item_id)},
                )
            if not menu_item.is_available:
                raise MenuItemUnavailable(
                    f'Menu item "{menu_item.name}" is not available',
                    details={"menu_item_id": str(menu_item.id)},
                )
            if item.quantity < 1:
                raise InvalidInput(f"Quantity must be a positive integer, got {item.quantity}")

        lines: list[OrderItem] = []
        for item in items:
            menu_item = menu_items[item.menu_item_id]
            unit_food_cost = compute_unit_food_cost(menu_item.recipes)
            line = OrderItem(
                order_id=order.id,
                menu_item_id=menu_item.id,
                quantity=item.quantity,
                unit_price=menu_item.price,
                total_price=compute_line_total(menu_item.price, item.quantity),
                unit_food_cost=quantize_money(unit_food_cost),
                total_food_cost=compute_line_food_cost(unit_food_cost, item.quantity),
                special_notes=item.special_notes,
            )
            self._db.add(line)
            lines.append(line)

        await self._db.flush()
        logger.info(
            "Line items added",
            extra={"order_id": str(order.id), "item_count": len(lines)},
        )
        return lines

