import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_orders.config import settings
from restaurant_orders.database import get_db
from restaurant_orders.models.order import OrderStatus, OrderType
from restaurant_orders.schemas.order import (
    AddItemsRequest,
    ConfirmRequest,
    DiscountRequest,
    IngredientAvailabilityResponse,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderSummaryResponse,
    StatusUpdate,
)
from restaurant_orders.services.order_service import OrderService

router = APIRouter()
logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def get_order_service(request: Request, db: AsyncSession = Depends(get_db)) -> OrderService:
    return OrderService(db, settings, request_id=_request_id(request))


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    body: OrderCreate,
    request: Request,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    logger.info(
        "Received create_order request",
        extra={
            "request_id": _request_id(request),
            "order_type": body.order_type.value,
            "item_count": len(body.items),
        },
    )
    return await service.create_order(body)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    order_status: OrderStatus | None = Query(None, alias="status"),
    order_type: OrderType | None = None,
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    return await service.list_orders(page=page, limit=limit, status=order_status, order_type=order_type)


@router.get("/summary/today", response_model=OrderSummaryResponse)
async def todays_summary(service: OrderService = Depends(get_order_service)) -> OrderSummaryResponse:
    return await service.todays_summary()


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    request: Request,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    logger.info(
        "Received get_order request",
        extra={"request_id": _request_id(request), "order_id": str(order_id)},
    )
    order = await service.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


@router.post("/{order_id}/items", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def add_order_items(
    order_id: uuid.UUID,
    body: AddItemsRequest,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    return await service.add_items(order_id, body.items)


@router.get("/{order_id}/ingredients", response_model=IngredientAvailabilityResponse)
async def check_ingredient_availability(
    order_id: uuid.UUID,
    service: OrderService = Depends(get_order_service),
) -> IngredientAvailabilityResponse:
    return await service.check_ingredient_availability(order_id)


@router.post("/{order_id}/confirm", response_model=OrderResponse)
async def confirm_order(
    order_id: uuid.UUID,
    body: ConfirmRequest | None = None,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    estimated_ready_time = body.estimated_ready_time if body else None
    return await service.confirm_order(order_id, estimated_ready_time)


@router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    body: StatusUpdate,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    return await service.update_status(order_id, body)


@router.put("/{order_id}/discount", response_model=OrderResponse)
async def apply_discount(
    order_id: uuid.UUID,
    body: DiscountRequest,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    return await service.apply_discount(order_id, body)
