# Import all models here so SQLAlchemy registers them with Base.metadata
from restaurant_orders.models.customer import Customer
from restaurant_orders.models.inventory import Ingredient, Unit
from restaurant_orders.models.menu_item import Category, MenuItem, Recipe
from restaurant_orders.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    PaymentStatus,
)
from restaurant_orders.models.table import RestaurantTable

__all__ = [
    "Category",
    "Customer",
    "Ingredient",
    "MenuItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderType",
    "PaymentStatus",
    "Recipe",
    "RestaurantTable",
    "Unit",
]
