"""
Pricing engine: line totals, food cost and order aggregates.

All money values are quantized to two decimal places (ROUND_HALF_UP).
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from restaurant_orders.exceptions import DiscountOutOfRange, InvalidInput
from restaurant_orders.models.menu_item import Recipe
from restaurant_orders.models.order import Order, OrderItem, OrderStatus

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

DISCOUNTABLE_STATUSES = frozenset(
    {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PREPARING}
)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    food_cost: Decimal


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_line_total(unit_price: Decimal, quantity: int) -> Decimal:
    if quantity < 1:
        raise InvalidInput(f"Quantity must be a positive integer, got {quantity}")
    return quantize_money(Decimal(unit_price) * quantity)


def compute_unit_food_cost(recipes: Iterable[Recipe]) -> Decimal:
    """
    Unrounded ingredient cost of one unit of a menu item.

    Recipes must have ``ingredient`` loaded. Quantize only when storing.
    """
    return sum(
        (Decimal(r.quantity_required) * Decimal(r.ingredient.cost_per_unit) for r in recipes),
        ZERO,
    )


def compute_line_food_cost(unit_food_cost: Decimal, quantity: int) -> Decimal:
    if quantity < 1:
        raise InvalidInput(f"Quantity must be a positive integer, got {quantity}")
    return quantize_money(Decimal(unit_food_cost) * quantity)


def recompute_order_totals(
    order: Order, lines: Iterable[OrderItem], tax_rate: Decimal
) -> OrderTotals:
    """
    Refresh the order's derived money fields from its line items.

    Keeps ``total_amount = subtotal - discount_amount + tax_amount``. A stored
    discount larger than the new subtotal is clamped down to it.
    """
    lines = list(lines)
    subtotal = quantize_money(sum((Decimal(line.total_price) for line in lines), ZERO))
    food_cost = quantize_money(sum((Decimal(line.total_food_cost) for line in lines), ZERO))
    tax_amount = quantize_money(subtotal * Decimal(tax_rate))

    discount = Decimal(order.discount_amount or ZERO)
    if discount > subtotal:
        discount = subtotal
    discount = quantize_money(discount)

    total_amount = quantize_money(subtotal - discount + tax_amount)

    order.subtotal = subtotal
    order.tax_amount = tax_amount
    order.discount_amount = discount
    order.total_amount = total_amount
    order.food_cost = food_cost

    return OrderTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount,
        total_amount=total_amount,
        food_cost=food_cost,
    )


def resolve_discount(
    subtotal: Decimal,
    amount: Decimal | None = None,
    percentage: Decimal | None = None,
) -> Decimal:
    """Turn a flat amount or a percentage of ``subtotal`` into a discount amount."""
    if (amount is None) == (percentage is None):
        raise InvalidInput("Provide exactly one of discount amount or percentage")

    if percentage is not None:
        discount = Decimal(subtotal) * Decimal(percentage) / HUNDRED
    else:
        discount = Decimal(amount)
    discount = quantize_money(discount)

    if discount < ZERO:
        raise DiscountOutOfRange(
            "Discount cannot be negative",
            details={"discount_amount": str(discount)},
        )
    if discount > subtotal:
        raise DiscountOutOfRange(
            f"Discount {discount} exceeds order subtotal {subtotal}",
            details={"discount_amount": str(discount), "subtotal": str(subtotal)},
        )
    return discount
