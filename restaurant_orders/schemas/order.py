import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from restaurant_orders.models.order import OrderStatus, OrderType, PaymentStatus

MAX_ITEM_QUANTITY = 50


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class OrderItemCreate(BaseModel):
    menu_item_id: uuid.UUID
    quantity: int = Field(ge=1, le=MAX_ITEM_QUANTITY)
    special_notes: str | None = Field(default=None, max_length=200)


class OrderCreate(BaseModel):
    table_id: uuid.UUID | None = None
    customer_id: uuid.UUID | None = None
    order_type: OrderType = OrderType.DINE_IN
    special_instructions: str | None = Field(default=None, max_length=500)
    items: list[OrderItemCreate] = Field(default_factory=list)


class AddItemsRequest(BaseModel):
    items: list[OrderItemCreate] = Field(min_length=1)


class ConfirmRequest(BaseModel):
    estimated_ready_time: datetime | None = None


class StatusUpdate(BaseModel):
    # Kept as a plain string so unknown values are rejected by the core as
    # InvalidStatus rather than by request parsing.
    status: str
    estimated_ready_time: datetime | None = None
    payment_method: str | None = Field(default=None, max_length=50)


class DiscountRequest(BaseModel):
    amount: Decimal | None = None
    percentage: Decimal | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class OrderItemResponse(BaseModel):
    id: uuid.UUID
    menu_item_id: uuid.UUID
    menu_item_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    unit_food_cost: Decimal
    total_food_cost: Decimal
    special_notes: str | None


class OrderResponse(BaseModel):
    id: uuid.UUID
    order_number: str
    status: OrderStatus
    order_type: OrderType
    table_id: uuid.UUID | None
    table_number: str | None
    customer_id: uuid.UUID | None
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    food_cost: Decimal
    payment_status: PaymentStatus
    payment_method: str | None
    inventory_updated: bool
    special_instructions: str | None
    estimated_ready_time: datetime | None
    created_at: datetime
    updated_at: datetime
    confirmed_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    items: list[OrderItemResponse]


class IngredientRequirementResponse(BaseModel):
    ingredient_id: uuid.UUID
    ingredient: str
    unit: str | None
    required_quantity: Decimal
    available_quantity: Decimal
    is_sufficient: bool
    shortfall: Decimal


class IngredientAvailabilityResponse(BaseModel):
    order_id: uuid.UUID
    all_sufficient: bool
    ingredients: list[IngredientRequirementResponse]


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next: bool
    has_prev: bool


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    pagination: Pagination


class OrderSummaryResponse(BaseModel):
    total_orders: int
    pending_orders: int
    preparing_orders: int
    ready_orders: int
    completed_orders: int
    cancelled_orders: int
    total_revenue: Decimal
    avg_order_value: Decimal
