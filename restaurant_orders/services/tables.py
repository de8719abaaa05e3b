import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_orders.exceptions import TableNotFound, TableUnavailable
from restaurant_orders.models.table import RestaurantTable

logger = logging.getLogger(__name__)


class TableOccupancy:
    """Tracks the single availability flag per restaurant table."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _get(self, table_id: uuid.UUID) -> RestaurantTable:
        table = await self._db.get(RestaurantTable, table_id)
        if table is None:
            raise TableNotFound(f"Table {table_id} not found")
        return table

    async def reserve(self, table_id: uuid.UUID) -> RestaurantTable:
        table = await self._get(table_id)

        # Check-and-set in one statement so two concurrent orders cannot both
        # claim the same table.
        result = await self._db.execute(
            update(RestaurantTable)
            .where(RestaurantTable.id == table_id, RestaurantTable.is_available.is_(True))
            .values(is_available=False)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise TableUnavailable(
                f"Table {table.table_number} is not available",
                details={"table_id": str(table_id), "table_number": table.table_number},
            )

        await self._db.refresh(table)
        logger.info(
            "Table reserved",
            extra={"table_id": str(table_id), "table_number": table.table_number},
        )
        return table

    async def release(self, table_id: uuid.UUID) -> RestaurantTable:
        """Mark the table available. Releasing an available table is a no-op."""
        table = await self._get(table_id)
        if not table.is_available:
            table.is_available = True
            await self._db.flush()
            logger.info(
                "Table released",
                extra={"table_id": str(table_id), "table_number": table.table_number},
            )
        return table

    async def list_tables(self, available: bool | None = None) -> list[RestaurantTable]:
        query = select(RestaurantTable).order_by(RestaurantTable.table_number)
        if available is not None:
            query = query.where(RestaurantTable.is_available.is_(available))
        result = await self._db.execute(query)
        return list(result.scalars().all())
