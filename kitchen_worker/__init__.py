"""Kitchen worker: fulfills dispatched orders from a message queue."""

from .contracts import (
    AssignedOrder,
    DispatchedOrder,
    IngredientsRequest,
    IngredientsResponse,
    KitchenMessage,
    OrderStatus,
    OrderStatusChange,
    PersistedOrder,
    Recipe,
)
from .inventory import InventoryClient
from .persistence import get_repository
from .publisher import StatusPublisher
from .recipes import RecipeCatalog, RecipeSelector
from .saga import OrderFulfillmentSaga, aggregate_ingredients
from .transports import get_transport
from .worker import KitchenWorker, build_worker

__version__ = "0.1.0"
__all__ = [
    "AssignedOrder",
    "DispatchedOrder",
    "IngredientsRequest",
    "IngredientsResponse",
    "InventoryClient",
    "KitchenMessage",
    "KitchenWorker",
    "OrderFulfillmentSaga",
    "OrderStatus",
    "OrderStatusChange",
    "PersistedOrder",
    "Recipe",
    "RecipeCatalog",
    "RecipeSelector",
    "StatusPublisher",
    "aggregate_ingredients",
    "build_worker",
    "get_repository",
    "get_transport",
]
