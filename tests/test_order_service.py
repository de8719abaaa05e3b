"""
Order lifecycle workflows: creation, line items, confirmation with stock
deduction, status transitions with compensations, and discounts.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from restaurant_orders.exceptions import (
    AlreadyConfirmed,
    BusinessRuleViolation,
    Conflict,
    CustomerNotFound,
    InsufficientStock,
    InvalidInput,
    InvalidStatus,
    InvalidTransition,
    MenuItemNotFound,
    MenuItemUnavailable,
    OrderClosed,
    OrderLocked,
    OrderNotFound,
    TableNotFound,
    TableUnavailable,
)
from restaurant_orders.models import MenuItem
from restaurant_orders.models.order import OrderStatus, OrderType, PaymentStatus
from restaurant_orders.schemas.order import (
    DiscountRequest,
    OrderCreate,
    OrderItemCreate,
    StatusUpdate,
)
from restaurant_orders.utils.clock import utcnow
from tests.conftest import TAX_RATE, order_row, stock_of, table_available


def _items(*pairs):
    return [OrderItemCreate(menu_item_id=m, quantity=q) for m, q in pairs]


def _assert_totals_consistent(order):
    assert order.total_amount == order.subtotal - order.discount_amount + order.tax_amount
    assert order.subtotal == sum((i.total_price for i in order.items), Decimal("0"))
    assert Decimal("0") <= order.discount_amount <= order.subtotal


async def _dine_in(service, table_id, *pairs):
    return await service.create_order(OrderCreate(table_id=table_id, items=_items(*pairs)))


async def _takeaway(service, *pairs):
    return await service.create_order(
        OrderCreate(order_type=OrderType.TAKEAWAY, items=_items(*pairs))
    )


# =============================================================================
# CREATE
# =============================================================================


class TestCreateOrder:
    async def test_dine_in_order_reserves_table_and_prices_items(self, db, service, catalog):
        order = await _dine_in(service, catalog.t1, (catalog.burger, 2))

        assert await table_available(db, catalog.t1) is False
        assert order.status == OrderStatus.PENDING
        assert order.table_number == "T1"
        assert order.subtotal == Decimal("400.00")
        assert order.tax_amount == Decimal("400.00") * TAX_RATE
        assert order.total_amount == Decimal("400.00") + Decimal("400.00") * TAX_RATE
        assert order.items[0].unit_price == Decimal("200.00")
        assert order.items[0].total_price == Decimal("400.00")
        # bun 8 + patty 60 per burger
        assert order.items[0].unit_food_cost == Decimal("68.00")
        assert order.food_cost == Decimal("136.00")
        assert order.order_number.startswith("ORD-")
        assert order.inventory_updated is False
        assert order.payment_status == PaymentStatus.UNPAID
        _assert_totals_consistent(order)

    async def test_food_cost_rounds_once_per_line(self, service, catalog):
        order = await _takeaway(service, (catalog.side, 10), (catalog.burger, 1))

        side = next(i for i in order.items if i.menu_item_id == catalog.side)
        assert side.unit_food_cost == Decimal("0.13")
        assert side.total_food_cost == Decimal("1.25")
        assert order.food_cost == Decimal("69.25")

    async def test_order_without_items_has_zero_totals(self, service, catalog):
        order = await service.create_order(OrderCreate(table_id=catalog.t2))

        assert order.items == []
        assert order.total_amount == Decimal("0.00")

    async def test_takeaway_order_does_not_touch_tables(self, db, service, catalog):
        order = await _takeaway(service, (catalog.water, 1))

        assert order.table_id is None
        assert await table_available(db, catalog.t1) is True
        assert await table_available(db, catalog.t2) is True

    async def test_order_numbers_are_unique(self, service, catalog):
        first = await _takeaway(service)
        second = await _takeaway(service)
        assert first.order_number != second.order_number

    async def test_dine_in_requires_table(self, service, catalog):
        with pytest.raises(InvalidInput):
            await service.create_order(OrderCreate(order_type=OrderType.DINE_IN))

    async def test_takeaway_cannot_have_table(self, service, catalog):
        with pytest.raises(InvalidInput):
            await service.create_order(
                OrderCreate(order_type=OrderType.TAKEAWAY, table_id=catalog.t1)
            )

    async def test_unavailable_table_rejected(self, service, catalog):
        await _dine_in(service, catalog.t1)

        with pytest.raises(TableUnavailable):
            await _dine_in(service, catalog.t1)

    async def test_unknown_table_rejected(self, service, catalog):
        with pytest.raises(TableNotFound):
            await _dine_in(service, uuid.uuid4())

    async def test_unknown_customer_rejected(self, db, service, catalog):
        with pytest.raises(CustomerNotFound):
            await service.create_order(OrderCreate(table_id=catalog.t1, customer_id=uuid.uuid4()))
        assert await table_available(db, catalog.t1) is True

    async def test_failed_initial_items_roll_back_table_reservation(self, db, service, catalog):
        with pytest.raises(MenuItemUnavailable):
            await _dine_in(service, catalog.t1, (catalog.burger, 1), (catalog.soup, 1))

        assert await table_available(db, catalog.t1) is True
        listing = await service.list_orders()
        assert listing.pagination.total_items == 0


# =============================================================================
# ADD ITEMS
# =============================================================================


class TestAddItems:
    async def test_adds_lines_and_recomputes(self, service, catalog):
        order = await _takeaway(service, (catalog.burger, 1))

        order = await service.add_items(order.id, _items((catalog.cake, 2)))

        assert len(order.items) == 2
        assert order.subtotal == Decimal("700.00")
        _assert_totals_consistent(order)

    async def test_batch_is_all_or_nothing(self, db, service, catalog):
        order = await _takeaway(service, (catalog.burger, 1))

        with pytest.raises(MenuItemUnavailable):
            await service.add_items(
                order.id,
                _items(
                    (catalog.water, 1),
                    (catalog.cake, 1),
                    (catalog.soup, 1),
                    (catalog.bread, 1),
                    (catalog.burger, 1),
                ),
            )

        after = await service.get_order(order.id)
        assert len(after.items) == 1
        assert after.subtotal == order.subtotal
        assert after.total_amount == order.total_amount

    async def test_unknown_menu_item(self, service, catalog):
        order = await _takeaway(service)

        with pytest.raises(MenuItemNotFound):
            await service.add_items(order.id, _items((uuid.uuid4(), 1)))

    async def test_price_snapshot_survives_menu_price_change(self, db, service, catalog):
        order = await _takeaway(service, (catalog.burger, 1))
        burger = await db.get(MenuItem, catalog.burger)
        burger.price = Decimal("999.00")
        await db.commit()

        after = await service.get_order(order.id)
        assert after.items[0].unit_price == Decimal("200.00")
        assert after.subtotal == Decimal("200.00")

    async def test_completed_order_is_closed(self, db, service, catalog):
        order = await _dine_in(service, catalog.t1, (catalog.burger, 1))
        await service.update_status(order.id, StatusUpdate(status="completed"))

        with pytest.raises(OrderClosed) as excinfo:
            await service.add_items(order.id, _items((catalog.water, 1)))

        assert isinstance(excinfo.value, Conflict)
        after = await service.get_order(order.id)
        assert after.status == OrderStatus.COMPLETED
        assert len(after.items) == 1

    async def test_confirmed_order_is_locked(self, service, catalog):
        order = await _takeaway(service, (catalog.burger, 1))
        await service.confirm_order(order.id)

        with pytest.raises(OrderLocked):
            await service.add_items(order.id, _items((catalog.water, 1)))

    async def test_empty_batch_rejected(self, service, catalog):
        order = await _takeaway(service)
        with pytest.raises(InvalidInput):
            await service.add_items(order.id, [])

    async def test_unknown_order(self, service, catalog):
        with pytest.raises(OrderNotFound):
            await service.add_items(uuid.uuid4(), _items((catalog.water, 1)))


# =============================================================================
# CONFIRM
# =============================================================================


class TestConfirmOrder:
    async def test_confirm_deducts_stock(self, db, service, catalog):
        order = await _takeaway(service, (catalog.burger, 2))
        ready_at = utcnow() + timedelta(minutes=20)

        confirmed = await service.confirm_order(order.id, ready_at)

        assert confirmed.status == OrderStatus.CONFIRMED
        assert confirmed.inventory_updated is True
        assert confirmed.confirmed_at is not None
        assert confirmed.estimated_ready_time == ready_at
        assert await stock_of(db, catalog.bun) == Decimal("98")
        assert await stock_of(db, catalog.patty) == Decimal("98")

    async def test_insufficient_stock_leaves_order_pending(self, db, service, catalog):
        # 2 loaves need 3kg flour; only 1kg in stock.
        order = await _takeaway(service, (catalog.bread, 2))

        with pytest.raises(InsufficientStock) as excinfo:
            await service.confirm_order(order.id)

        shortage = excinfo.value.shortages[0]
        assert shortage.ingredient == "Flour"
        assert shortage.short_by == Decimal("2")
        assert shortage.unit == "kg"
        assert "Flour" in excinfo.value.message

        status, inventory_updated, *_ = await order_row(db, order.id)
        assert status == OrderStatus.PENDING
        assert inventory_updated is False
        assert await stock_of(db, catalog.flour) == Decimal("1")

    async def test_confirm_twice_does_not_double_deduct(self, db, service, catalog):
        order = await _takeaway(service, (catalog.burger, 1))
        await service.confirm_order(order.id)

        with pytest.raises(AlreadyConfirmed):
            await service.confirm_order(order.id)

        assert await stock_of(db, catalog.bun) == Decimal("99")

    async def test_confirm_cancelled_order_is_closed(self, service, catalog):
        order = await _takeaway(service, (catalog.burger, 1))
        await service.update_status(order.id, StatusUpdate(status="cancelled"))

        with pytest.raises(OrderClosed):
            await service.confirm_order(order.id)

    async def test_confirm_requires_pending(self, service, catalog):
        order = await _takeaway(service, (catalog.water, 1))
        await service.update_status(order.id, StatusUpdate(status="preparing"))

        with pytest.raises(InvalidTransition):
            await service.confirm_order(order.id)

    async def test_confirm_via_status_update_deducts(self, db, service, catalog):
        order = await _takeaway(service, (catalog.cake, 1))

        confirmed = await service.update_status(order.id, StatusUpdate(status="confirmed"))

        assert confirmed.inventory_updated is True
        assert await stock_of(db, catalog.sugar) == Decimal("9")

        with pytest.raises(AlreadyConfirmed):
            await service.update_status(order.id, StatusUpdate(status="confirmed"))
        assert await stock_of(db, catalog.sugar) == Decimal("9")

    async def test_unknown_order(self, service, catalog):
        with pytest.raises(OrderNotFound):
            await service.confirm_order(uuid.uuid4())


# =============================================================================
# STATUS
# =============================================================================


class TestUpdateStatus:
    async def test_cancel_confirmed_order_restores_stock_and_releases_table(
        self, db, service, catalog
    ):
        order = await _dine_in(service, catalog.t1, (catalog.cake, 2))
        await service.confirm_order(order.id)
        assert await stock_of(db, catalog.sugar) == Decimal("8")

        cancelled = await service.update_status(order.id, StatusUpdate(status="cancelled"))

        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.cancelled_at is not None
        # Deduction happened and was reversed; the flag keeps that history.
        assert cancelled.inventory_updated is True
        assert await stock_of(db, catalog.sugar) == Decimal("10")
        assert await stock_of(db, catalog.flour) == Decimal("1")
        assert await table_available(db, catalog.t1) is True

    async def test_cancel_pending_order_leaves_stock(self, db, service, catalog):
        order = await _dine_in(service, catalog.t1, (catalog.cake, 2))

        await service.update_status(order.id, StatusUpdate(status="cancelled"))

        assert await stock_of(db, catalog.sugar) == Decimal("10")
        assert await table_available(db, catalog.t1) is True

    async def test_full_lifecycle_to_completion(self, db, service, catalog):
        order = await _dine_in(service, catalog.t1, (catalog.burger, 1))
        await service.confirm_order(order.id)
        for status in ("preparing", "ready", "served"):
            order = await service.update_status(order.id, StatusUpdate(status=status))
            assert order.status == OrderStatus(status)
        assert await table_available(db, catalog.t1) is False

        order = await service.update_status(
            order.id, StatusUpdate(status="completed", payment_method="card")
        )

        assert order.status == OrderStatus.COMPLETED
        assert order.completed_at is not None
        assert order.payment_status == PaymentStatus.PAID
        assert order.payment_method == "card"
        assert await table_available(db, catalog.t1) is True
        assert await stock_of(db, catalog.bun) == Decimal("99")

    async def test_table_can_be_reused_after_completion(self, service, catalog):
        first = await _dine_in(service, catalog.t1, (catalog.water, 1))
        await service.update_status(first.id, StatusUpdate(status="completed"))

        second = await _dine_in(service, catalog.t1, (catalog.water, 1))
        assert second.table_id == catalog.t1

    async def test_invalid_status_rejected_before_mutation(self, db, service, catalog):
        order = await _dine_in(service, catalog.t1, (catalog.water, 1))

        with pytest.raises(InvalidStatus):
            await service.update_status(order.id, StatusUpdate(status="eaten"))

        status, *_ = await order_row(db, order.id)
        assert status == OrderStatus.PENDING

    async def test_terminal_orders_cannot_transition(self, service, catalog):
        order = await _takeaway(service, (catalog.water, 1))
        await service.update_status(order.id, StatusUpdate(status="cancelled"))

        with pytest.raises(OrderClosed):
            await service.update_status(order.id, StatusUpdate(status="pending"))
        with pytest.raises(OrderClosed):
            await service.update_status(order.id, StatusUpdate(status="completed"))

    async def test_estimated_ready_time_and_payment_recorded(self, service, catalog):
        order = await _takeaway(service, (catalog.water, 1))
        ready_at = utcnow() + timedelta(minutes=5)

        order = await service.update_status(
            order.id,
            StatusUpdate(status="preparing", estimated_ready_time=ready_at, payment_method="cash"),
        )

        assert order.estimated_ready_time == ready_at
        assert order.payment_status == PaymentStatus.PAID

    async def test_unknown_order(self, service, catalog):
        with pytest.raises(OrderNotFound):
            await service.update_status(uuid.uuid4(), StatusUpdate(status="ready"))


# =============================================================================
# DISCOUNT
# =============================================================================


class TestApplyDiscount:
    async def test_percentage_discount(self, db, service, catalog):
        # 2 x 250 cake = 500
        order = await _takeaway(service, (catalog.cake, 2))

        order = await service.apply_discount(order.id, DiscountRequest(percentage=Decimal("10")))

        assert order.subtotal == Decimal("500.00")
        assert order.discount_amount == Decimal("50.00")
        assert order.total_amount == Decimal("450.00") + order.tax_amount
        _assert_totals_consistent(order)

        with pytest.raises(BusinessRuleViolation):
            await service.apply_discount(order.id, DiscountRequest(percentage=Decimal("150")))

        _, _, _, discount, _, _ = await order_row(db, order.id)
        assert discount == Decimal("50.00")

    async def test_flat_discount(self, service, catalog):
        order = await _takeaway(service, (catalog.burger, 1))

        order = await service.apply_discount(order.id, DiscountRequest(amount=Decimal("20")))

        assert order.discount_amount == Decimal("20.00")
        _assert_totals_consistent(order)

    async def test_discount_survives_added_items(self, service, catalog):
        order = await _takeaway(service, (catalog.burger, 1))
        await service.apply_discount(order.id, DiscountRequest(amount=Decimal("20")))

        order = await service.add_items(order.id, _items((catalog.water, 1)))

        assert order.discount_amount == Decimal("20.00")
        _assert_totals_consistent(order)

    async def test_discount_allowed_while_preparing(self, service, catalog):
        order = await _takeaway(service, (catalog.burger, 1))
        await service.confirm_order(order.id)
        await service.update_status(order.id, StatusUpdate(status="preparing"))

        order = await service.apply_discount(order.id, DiscountRequest(percentage=Decimal("5")))
        assert order.discount_amount == Decimal("10.00")

    @pytest.mark.parametrize("status", ["ready", "served", "completed", "cancelled"])
    async def test_discount_rejected_in_later_statuses(self, service, catalog, status):
        order = await _takeaway(service, (catalog.burger, 1))
        await service.update_status(order.id, StatusUpdate(status=status))

        with pytest.raises(BusinessRuleViolation):
            await service.apply_discount(order.id, DiscountRequest(amount=Decimal("5")))


# =============================================================================
# READS
# =============================================================================


class TestReads:
    async def test_get_unknown_order_returns_none(self, service, catalog):
        assert await service.get_order(uuid.uuid4()) is None

    async def test_check_ingredient_availability(self, service, catalog):
        order = await _takeaway(service, (catalog.bread, 2))

        report = await service.check_ingredient_availability(order.id)

        assert report.all_sufficient is False
        assert report.ingredients[0].ingredient == "Flour"
        assert report.ingredients[0].shortfall == Decimal("2")

    async def test_check_ingredient_availability_unknown_order(self, service, catalog):
        with pytest.raises(OrderNotFound):
            await service.check_ingredient_availability(uuid.uuid4())

    async def test_list_orders_filters_and_paginates(self, service, catalog):
        await _dine_in(service, catalog.t1, (catalog.water, 1))
        for _ in range(3):
            await _takeaway(service, (catalog.water, 1))

        page = await service.list_orders(page=1, limit=2, order_type=OrderType.TAKEAWAY)

        assert page.pagination.total_items == 3
        assert page.pagination.total_pages == 2
        assert page.pagination.has_next is True
        assert len(page.orders) == 2
        assert all(o.order_type == OrderType.TAKEAWAY for o in page.orders)

    async def test_todays_summary(self, service, catalog):
        done = await _takeaway(service, (catalog.burger, 1))
        await service.update_status(done.id, StatusUpdate(status="completed"))
        dropped = await _takeaway(service, (catalog.water, 1))
        await service.update_status(dropped.id, StatusUpdate(status="cancelled"))
        await _takeaway(service, (catalog.water, 1))

        summary = await service.todays_summary()

        assert summary.total_orders == 3
        assert summary.pending_orders == 1
        assert summary.completed_orders == 1
        assert summary.cancelled_orders == 1
        assert summary.total_revenue == done.total_amount
        assert summary.avg_order_value == done.total_amount
