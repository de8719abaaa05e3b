from prometheus_client import Counter

ORDERS_CREATED = Counter(
    "orders_created_total",
    "Orders created",
    ["order_type"],  # dine_in | takeaway | delivery
)

STATUS_TRANSITIONS = Counter(
    "order_status_transitions_total",
    "Order status transitions applied",
    ["from_status", "to_status"],
)

STOCK_MOVEMENTS = Counter(
    "stock_movements_total",
    "Ingredient stock deductions and restorations",
    ["direction"],  # deduct | restore
)

INSUFFICIENT_STOCK = Counter(
    "insufficient_stock_rejections_total",
    "Order confirmations rejected for insufficient ingredient stock",
)

LOW_STOCK_ALERTS = Counter(
    "low_stock_alerts_total",
    "Ingredients at or below minimum stock after a deduction",
    ["ingredient"],
)
