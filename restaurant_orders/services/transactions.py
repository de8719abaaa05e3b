"""
Atomic scopes for multi-step workflows.

Every mutating workflow (order creation + items, confirm + deduction, status
change + compensations) runs inside ``atomic``: either every write commits or
the whole scope is rolled back before the error reaches the caller.
"""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_orders.exceptions import OrderNotFound
from restaurant_orders.models.order import Order

logger = logging.getLogger(__name__)


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    try:
        yield db
        await db.commit()
    except Exception as exc:
        await db.rollback()
        logger.info(
            "Transaction rolled back",
            extra={"error": type(exc).__name__, "reason": str(exc)},
        )
        raise


async def lock_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    """
    Load an order with a row lock held until the surrounding scope ends.

    Serialises all mutations of one order, so a concurrent confirm and cancel
    cannot both act on the same ``inventory_updated`` value. SQLite ignores
    FOR UPDATE; its single-writer lock gives the same ordering.
    """
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    order = result.scalars().first()
    if order is None:
        raise OrderNotFound(f"Order {order_id} not found")
    return order
