"""
Domain errors raised by the order core.

Every error is a business-rule rejection: none of them is transient, so
``retryable`` is always False and callers resubmit with corrected input.
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any


class OrderCoreError(Exception):
    """Base class for order-core errors."""

    status_code: int = 400
    code: str = "order_error"
    retryable: bool = False

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFound(OrderCoreError):
    status_code = 404
    code = "not_found"


class OrderNotFound(NotFound):
    code = "order_not_found"


class TableNotFound(NotFound):
    code = "table_not_found"


class CustomerNotFound(NotFound):
    code = "customer_not_found"


class MenuItemNotFound(NotFound):
    code = "menu_item_not_found"


# ---------------------------------------------------------------------------
# Invalid input
# ---------------------------------------------------------------------------


class InvalidInput(OrderCoreError):
    status_code = 400
    code = "invalid_input"


class InvalidStatus(InvalidInput):
    code = "invalid_status"


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class Conflict(OrderCoreError):
    status_code = 409
    code = "conflict"


class TableUnavailable(Conflict):
    code = "table_unavailable"


class AlreadyConfirmed(Conflict):
    code = "already_confirmed"


class OrderClosed(Conflict):
    """Order is completed or cancelled and can no longer be modified."""

    code = "order_closed"


class OrderLocked(Conflict):
    """Ingredients were already committed against the order's current items."""

    code = "order_locked"


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockShortage:
    ingredient_id: str
    ingredient: str
    unit: str | None
    required: Decimal
    available: Decimal
    short_by: Decimal


class InsufficientStock(OrderCoreError):
    status_code = 400
    code = "insufficient_stock"

    def __init__(self, shortages: list[StockShortage]) -> None:
        names = ", ".join(
            f"{s.ingredient} (short by {s.short_by}{s.unit or ''})" for s in shortages
        )
        super().__init__(
            f"Insufficient stock for: {names}",
            details=[asdict(s) for s in shortages],
        )
        self.shortages = shortages


# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------


class BusinessRuleViolation(OrderCoreError):
    status_code = 422
    code = "business_rule_violation"


class MenuItemUnavailable(BusinessRuleViolation):
    code = "menu_item_unavailable"


class InvalidTransition(BusinessRuleViolation):
    code = "invalid_transition"


class DiscountOutOfRange(BusinessRuleViolation):
    code = "discount_out_of_range"
