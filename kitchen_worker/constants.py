"""Message patterns, queue names and default timings."""

ORDER_DISPATCHED = "order_dispatched"
ORDER_STATUS_CHANGED = "order_status_changed"
REQUEST_INGREDIENTS = "request_ingredients"

KITCHEN_QUEUE = "kitchen_queue"
MANAGER_QUEUE = "manager_queue"
WAREHOUSE_QUEUE = "warehouse_queue"

DEFAULT_PREPARATION_SECONDS = 3.0
DEFAULT_INVENTORY_TIMEOUT = 10.0
