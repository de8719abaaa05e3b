from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_orders.database import get_db
from restaurant_orders.schemas.table import TableResponse
from restaurant_orders.services.tables import TableOccupancy

router = APIRouter()


@router.get("", response_model=list[TableResponse])
async def list_tables(
    available: bool | None = None,
    db: AsyncSession = Depends(get_db),
) -> list[TableResponse]:
    tables = await TableOccupancy(db).list_tables(available)
    return [TableResponse.model_validate(t) for t in tables]
