"""Message and value contracts exchanged by the kitchen worker."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, FrozenSet, List, Optional, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PositiveFloat,
    PositiveInt,
    TypeAdapter,
)
from pydantic.alias_generators import to_camel

from .exceptions import InvalidStatusTransition


def _coerce_id(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


OrderId = Annotated[str, BeforeValidator(_coerce_id)]
Quantity = Union[PositiveInt, PositiveFloat]


class OrderStatus(str, Enum):
    """Lifecycle of an order while the kitchen handles it."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.IN_PROGRESS: frozenset({OrderStatus.COMPLETED, OrderStatus.FAILED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.FAILED: frozenset(),
}


class _Contract(BaseModel):
    model_config = ConfigDict(
        frozen=True, populate_by_name=True, alias_generator=to_camel
    )

    def to_wire(self) -> Dict[str, Any]:
        """Dump with camelCase keys, dropping unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Recipe(_Contract):
    """A named preparation template."""

    id: int
    name: str
    ingredients: Dict[str, Quantity] = Field(default_factory=dict)


class DispatchedOrder(_Contract):
    """Order as delivered by the upstream dispatch event."""

    id: OrderId
    customer_id: OrderId


class PersistedOrder(_Contract):
    """Projection of an order that is written to the order store."""

    id: OrderId
    customer_id: OrderId
    recipe_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderStatusChange(_Contract):
    """One entry of an ``order_status_changed`` event."""

    id: OrderId
    status_id: OrderStatus
    customer_id: Optional[OrderId] = None
    recipe_id: Optional[int] = None
    recipe_name: Optional[str] = None

    @classmethod
    def failed(cls, order_id: str) -> "OrderStatusChange":
        return cls(id=order_id, status_id=OrderStatus.FAILED)


class AssignedOrder(_Contract):
    """An order with a recipe chosen, held in memory for one saga run."""

    id: OrderId
    customer_id: OrderId
    recipe_id: int
    recipe_name: str
    status: OrderStatus = OrderStatus.IN_PROGRESS

    @classmethod
    def from_dispatched(cls, order: DispatchedOrder, recipe: Recipe) -> "AssignedOrder":
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            recipe_id=recipe.id,
            recipe_name=recipe.name,
        )

    def with_status(self, status: OrderStatus) -> "AssignedOrder":
        """Return a copy moved to ``status``.

        Raises:
            InvalidStatusTransition: If the lifecycle does not allow the move.
        """
        if not self.status.can_transition_to(status):
            raise InvalidStatusTransition(self.status, status)
        return self.model_copy(update={"status": status})

    def to_persisted(self) -> PersistedOrder:
        return PersistedOrder(
            id=self.id, customer_id=self.customer_id, recipe_id=self.recipe_id
        )

    def to_status_change(self) -> OrderStatusChange:
        if self.status is OrderStatus.IN_PROGRESS:
            return OrderStatusChange(
                id=self.id,
                status_id=self.status,
                customer_id=self.customer_id,
                recipe_id=self.recipe_id,
                recipe_name=self.recipe_name,
            )
        return OrderStatusChange(id=self.id, status_id=self.status)


class OrderRef(_Contract):
    id: OrderId


class IngredientsRequest(_Contract):
    """Ingredient demand summed over every order in a batch."""

    ingredients: Dict[str, Quantity] = Field(default_factory=dict)
    orders: List[OrderRef] = Field(default_factory=list)

    @property
    def order_ids(self) -> List[str]:
        return [ref.id for ref in self.orders]


class IngredientsResponse(_Contract):
    success: bool


class KitchenMessage(BaseModel):
    """Envelope exchanged over the broker: a pattern name plus its data."""

    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    pattern: str
    data: Any = None
    correlation_id: Optional[str] = None
    reply_to: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self) -> str:
        """Serialize message to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "KitchenMessage":
        """Deserialize message from JSON."""
        return cls.model_validate_json(data)


_dispatched_batch = TypeAdapter(List[DispatchedOrder])


def parse_dispatched_orders(data: Any) -> List[DispatchedOrder]:
    """Decode the data of an ``order_dispatched`` message.

    The upstream service sends either a single order object or a list of
    them; both are returned as a list in input order.

    Raises:
        pydantic.ValidationError: If the payload is not an order or a list of orders.
    """
    if isinstance(data, dict):
        data = [data]
    return _dispatched_batch.validate_python(data)
