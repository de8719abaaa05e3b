"""
Order lifecycle controller.

Owns the order status state machine and orchestrates the other components
inside one atomic scope per workflow:

    pending -> confirmed -> preparing -> ready -> served -> completed
    (any non-terminal) -> cancelled

Confirmation deducts ingredient stock; cancellation restores it when it was
deducted; completion and cancellation release the order's table.
"""

import logging
import math
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from restaurant_orders.config import Settings, settings as default_settings
from restaurant_orders.exceptions import (
    AlreadyConfirmed,
    BusinessRuleViolation,
    CustomerNotFound,
    InvalidInput,
    InvalidStatus,
    InvalidTransition,
    OrderClosed,
    OrderNotFound,
)
from restaurant_orders.metrics import ORDERS_CREATED, STATUS_TRANSITIONS
from restaurant_orders.models.customer import Customer
from restaurant_orders.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    PaymentStatus,
)
from restaurant_orders.schemas.order import (
    DiscountRequest,
    IngredientAvailabilityResponse,
    IngredientRequirementResponse,
    OrderCreate,
    OrderItemCreate,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    OrderSummaryResponse,
    Pagination,
    StatusUpdate,
)
from restaurant_orders.services.order_lines import OrderLineManager
from restaurant_orders.services.pricing import (
    DISCOUNTABLE_STATUSES,
    ZERO,
    quantize_money,
    recompute_order_totals,
    resolve_discount,
)
from restaurant_orders.services.stock_ledger import StockLedger
from restaurant_orders.services.tables import TableOccupancy
from restaurant_orders.services.transactions import atomic, lock_order
from restaurant_orders.utils.clock import utcnow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _generate_order_number() -> str:
    return f"ORD-{utcnow():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def _parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidStatus(
            f"Invalid order status: {value!r}",
            details={"allowed": [s.value for s in OrderStatus]},
        ) from None


def _build_response(order: Order) -> OrderResponse:
    items = [
        OrderItemResponse(
            id=item.id,
            menu_item_id=item.menu_item_id,
            menu_item_name=item.menu_item.name if item.menu_item else "Unknown",
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
            unit_food_cost=item.unit_food_cost,
            total_food_cost=item.total_food_cost,
            special_notes=item.special_notes,
        )
        for item in order.items
    ]

    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        status=order.status,
        order_type=order.order_type,
        table_id=order.table_id,
        table_number=order.table.table_number if order.table else None,
        customer_id=order.customer_id,
        subtotal=order.subtotal,
        tax_amount=order.tax_amount,
        discount_amount=order.discount_amount,
        total_amount=order.total_amount,
        food_cost=order.food_cost,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        inventory_updated=order.inventory_updated,
        special_instructions=order.special_instructions,
        estimated_ready_time=order.estimated_ready_time,
        created_at=order.created_at,
        updated_at=order.updated_at,
        confirmed_at=order.confirmed_at,
        completed_at=order.completed_at,
        cancelled_at=order.cancelled_at,
        items=items,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class OrderService:
    def __init__(
        self,
        db: AsyncSession,
        settings: Settings = default_settings,
        request_id: str = "-",
    ) -> None:
        self._db = db
        self._tax_rate = Decimal(settings.tax_rate)
        self._request_id = request_id
        self._tables = TableOccupancy(db)
        self._ledger = StockLedger(db)
        self._lines = OrderLineManager(db)

    def _log_extra(self, order: Order, **fields) -> dict:
        return {
            "order_id": str(order.id),
            "order_number": order.order_number,
            "request_id": self._request_id,
            **fields,
        }

    async def _fetch_order(self, order_id: uuid.UUID) -> Order | None:
        result = await self._db.execute(
            select(Order)
            .where(Order.id == order_id)
            .options(
                selectinload(Order.items).selectinload(OrderItem.menu_item),
                selectinload(Order.table),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _recompute_totals(self, order: Order) -> None:
        result = await self._db.execute(select(OrderItem).where(OrderItem.order_id == order.id))
        recompute_order_totals(order, result.scalars().all(), self._tax_rate)
        await self._db.flush()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order(self, order_id: uuid.UUID) -> OrderResponse | None:
        order = await self._fetch_order(order_id)
        if order is None:
            return None
        return _build_response(order)

    async def _require_order(self, order_id: uuid.UUID) -> OrderResponse:
        response = await self.get_order(order_id)
        if response is None:
            raise OrderNotFound(f"Order {order_id} not found")
        return response

    async def list_orders(
        self,
        page: int = 1,
        limit: int = 10,
        status: OrderStatus | None = None,
        order_type: OrderType | None = None,
    ) -> OrderListResponse:
        filters = []
        if status is not None:
            filters.append(Order.status == status)
        if order_type is not None:
            filters.append(Order.order_type == order_type)

        total_items = (
            await self._db.execute(select(func.count(Order.id)).where(*filters))
        ).scalar_one()
        result = await self._db.execute(
            select(Order)
            .where(*filters)
            .options(
                selectinload(Order.items).selectinload(OrderItem.menu_item),
                selectinload(Order.table),
            )
            .order_by(Order.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        total_pages = math.ceil(total_items / limit) if limit else 0
        return OrderListResponse(
            orders=[_build_response(o) for o in result.scalars().all()],
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_items=total_items,
                items_per_page=limit,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
        )

    async def todays_summary(self) -> OrderSummaryResponse:
        start = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=1)

        def _count(status: OrderStatus):
            return func.coalesce(func.sum(case((Order.status == status, 1), else_=0)), 0)

        row = (
            await self._db.execute(
                select(
                    func.count(Order.id),
                    _count(OrderStatus.PENDING),
                    _count(OrderStatus.PREPARING),
                    _count(OrderStatus.READY),
                    _count(OrderStatus.COMPLETED),
                    _count(OrderStatus.CANCELLED),
                    func.sum(
                        case((Order.status == OrderStatus.COMPLETED, Order.total_amount), else_=None)
                    ),
                ).where(Order.created_at >= start, Order.created_at < end)
            )
        ).one()
        total, pending, preparing, ready, completed, cancelled, revenue = row
        revenue = quantize_money(Decimal(str(revenue or 0)))
        avg_value = quantize_money(revenue / completed) if completed else ZERO
        return OrderSummaryResponse(
            total_orders=total,
            pending_orders=pending,
            preparing_orders=preparing,
            ready_orders=ready,
            completed_orders=completed,
            cancelled_orders=cancelled,
            total_revenue=revenue,
            avg_order_value=avg_value,
        )

    async def check_ingredient_availability(
        self, order_id: uuid.UUID
    ) -> IngredientAvailabilityResponse:
        if await self._db.get(Order, order_id) is None:
            raise OrderNotFound(f"Order {order_id} not found")
        requirements = await self._ledger.check_availability(order_id)
        return IngredientAvailabilityResponse(
            order_id=order_id,
            all_sufficient=all(r.is_sufficient for r in requirements),
            ingredients=[
                IngredientRequirementResponse(
                    ingredient_id=r.ingredient_id,
                    ingredient=r.ingredient,
                    unit=r.unit,
                    required_quantity=r.required_quantity,
                    available_quantity=r.available_quantity,
                    is_sufficient=r.is_sufficient,
                    shortfall=r.shortfall,
                )
                for r in requirements
            ],
        )

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    async def create_order(self, data: OrderCreate) -> OrderResponse:
        if data.order_type == OrderType.DINE_IN and data.table_id is None:
            raise InvalidInput("Dine-in orders require a table")
        if data.order_type != OrderType.DINE_IN and data.table_id is not None:
            raise InvalidInput(f"{data.order_type.value} orders cannot be assigned a table")

        async with atomic(self._db):
            if data.customer_id is not None and await self._db.get(Customer, data.customer_id) is None:
                raise CustomerNotFound(f"Customer {data.customer_id} not found")

            if data.table_id is not None:
                await self._tables.reserve(data.table_id)

            order = Order(
                order_number=_generate_order_number(),
                status=OrderStatus.PENDING,
                order_type=data.order_type,
                table_id=data.table_id,
                customer_id=data.customer_id,
                special_instructions=data.special_instructions,
                subtotal=ZERO,
                tax_amount=ZERO,
                discount_amount=ZERO,
                total_amount=ZERO,
                food_cost=ZERO,
                payment_status=PaymentStatus.UNPAID,
                inventory_updated=False,
            )
            self._db.add(order)
            await self._db.flush()  # obtain order.id before inserting items

            if data.items:
                await self._lines.add_items(order, data.items)
            await self._recompute_totals(order)

        ORDERS_CREATED.labels(order.order_type.value).inc()
        logger.info(
            "Order created",
            extra=self._log_extra(
                order,
                order_type=order.order_type.value,
                table_id=str(order.table_id) if order.table_id else None,
                item_count=len(data.items),
                total_amount=str(order.total_amount),
            ),
        )
        return await self._require_order(order.id)

    async def add_items(self, order_id: uuid.UUID, items: list[OrderItemCreate]) -> OrderResponse:
        async with atomic(self._db):
            order = await lock_order(self._db, order_id)
            await self._lines.add_items(order, items)
            await self._recompute_totals(order)

        logger.info(
            "Items added to order",
            extra=self._log_extra(order, item_count=len(items), subtotal=str(order.subtotal)),
        )
        return await self._require_order(order_id)

    async def _deduct_and_confirm(self, order: Order, estimated_ready_time: datetime | None) -> None:
        await self._ledger.deduct(order.id)
        order.inventory_updated = True
        order.confirmed_at = utcnow()
        order.status = OrderStatus.CONFIRMED
        if estimated_ready_time is not None:
            order.estimated_ready_time = estimated_ready_time

    async def confirm_order(
        self, order_id: uuid.UUID, estimated_ready_time: datetime | None = None
    ) -> OrderResponse:
        async with atomic(self._db):
            order = await lock_order(self._db, order_id)
            previous = order.status
            if order.status.is_terminal:
                raise OrderClosed(
                    f"Cannot confirm {order.status.value} order {order.order_number}",
                    details={"order_id": str(order.id), "status": order.status.value},
                )
            if order.inventory_updated:
                raise AlreadyConfirmed(
                    f"Order {order.order_number} is already confirmed",
                    details={"order_id": str(order.id)},
                )
            if order.status != OrderStatus.PENDING:
                raise InvalidTransition(
                    f"Only pending orders can be confirmed, order is {order.status.value}",
                    details={"order_id": str(order.id), "status": order.status.value},
                )
            await self._deduct_and_confirm(order, estimated_ready_time)

        STATUS_TRANSITIONS.labels(previous.value, OrderStatus.CONFIRMED.value).inc()
        logger.info("Order confirmed", extra=self._log_extra(order))
        return await self._require_order(order_id)

    async def update_status(self, order_id: uuid.UUID, update: StatusUpdate) -> OrderResponse:
        target = _parse_status(update.status)

        async with atomic(self._db):
            order = await lock_order(self._db, order_id)
            previous = order.status
            if previous.is_terminal:
                raise OrderClosed(
                    f"Order {order.order_number} is already {previous.value}",
                    details={"order_id": str(order.id), "status": previous.value},
                )

            if target == OrderStatus.CONFIRMED and not order.inventory_updated:
                await self._deduct_and_confirm(order, update.estimated_ready_time)
            elif target == OrderStatus.CONFIRMED and previous == OrderStatus.CONFIRMED:
                raise AlreadyConfirmed(
                    f"Order {order.order_number} is already confirmed",
                    details={"order_id": str(order.id)},
                )
            elif target == OrderStatus.CANCELLED:
                order.cancelled_at = utcnow()
                if order.inventory_updated:
                    # The flag stays set: it records that a deduction happened.
                    await self._ledger.restore(order.id)
                if order.table_id is not None:
                    await self._tables.release(order.table_id)
            elif target == OrderStatus.COMPLETED:
                order.completed_at = utcnow()
                if order.table_id is not None:
                    await self._tables.release(order.table_id)

            order.status = target
            if update.estimated_ready_time is not None:
                order.estimated_ready_time = update.estimated_ready_time
            if update.payment_method:
                order.payment_method = update.payment_method
                order.payment_status = PaymentStatus.PAID
            await self._db.flush()

        STATUS_TRANSITIONS.labels(previous.value, target.value).inc()
        logger.info(
            "Order status updated",
            extra=self._log_extra(
                order,
                from_status=previous.value,
                to_status=target.value,
                payment_status=order.payment_status.value,
            ),
        )
        return await self._require_order(order_id)

    async def apply_discount(self, order_id: uuid.UUID, request: DiscountRequest) -> OrderResponse:
        async with atomic(self._db):
            order = await lock_order(self._db, order_id)
            if order.status not in DISCOUNTABLE_STATUSES:
                raise BusinessRuleViolation(
                    f"Discounts cannot be applied to {order.status.value} orders",
                    details={
                        "order_id": str(order.id),
                        "status": order.status.value,
                        "allowed": sorted(s.value for s in DISCOUNTABLE_STATUSES),
                    },
                )
            await self._recompute_totals(order)
            order.discount_amount = resolve_discount(
                order.subtotal, amount=request.amount, percentage=request.percentage
            )
            await self._recompute_totals(order)

        logger.info(
            "Discount applied",
            extra=self._log_extra(
                order,
                discount_amount=str(order.discount_amount),
                total_amount=str(order.total_amount),
            ),
        )
        return await self._require_order(order_id)
