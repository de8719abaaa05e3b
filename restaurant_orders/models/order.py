import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from restaurant_orders.database import Base
from restaurant_orders.utils.clock import utcnow

ZERO = Decimal("0.00")


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class OrderType(str, Enum):
    DINE_IN = "dine_in"
    TAKEAWAY = "takeaway"
    DELIVERY = "delivery"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("discount_amount >= 0", name="ck_orders_discount_non_negative"),
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(OrderStatus, name="orderstatus"), default=OrderStatus.PENDING, nullable=False
    )
    order_type: Mapped[OrderType] = mapped_column(
        SAEnum(OrderType, name="ordertype"), default=OrderType.DINE_IN, nullable=False
    )
    table_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("restaurant_tables.id"), nullable=True
    )
    customer_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("customers.id"), nullable=True)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    food_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)

    payment_status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(PaymentStatus, name="paymentstatus"), default=PaymentStatus.UNPAID, nullable=False
    )
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # Set once, when ingredients are deducted; guards against double deduction.
    inventory_updated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    special_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)

    estimated_ready_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", order_by="OrderItem.created_at"
    )
    table: Mapped[Optional["RestaurantTable"]] = relationship("RestaurantTable")
    customer: Mapped[Optional["Customer"]] = relationship("Customer")


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("orders.id"), nullable=False)
    menu_item_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("menu_items.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit_food_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    total_food_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    special_notes: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")
    menu_item: Mapped["MenuItem"] = relationship("MenuItem")
