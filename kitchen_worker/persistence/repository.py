"""Repository abstraction for recipes and order records."""

from __future__ import annotations

from typing import AsyncContextManager, Mapping, Protocol, Sequence

from ..contracts import PersistedOrder, Recipe


class OrderTransaction(Protocol):
    """A unit of work against the order store.

    Rows written through ``insert_orders`` become visible to other readers only
    after ``commit``. Every method wraps backend errors in
    :class:`~kitchen_worker.exceptions.PersistenceFailure`.
    """

    @property
    def is_active(self) -> bool:
        """``True`` until the transaction is committed or rolled back."""

    @property
    def is_released(self) -> bool:
        """``True`` once the underlying connection has been given back."""

    async def insert_orders(self, orders: Sequence[PersistedOrder]) -> None:
        """Insert all ``orders`` in one statement."""

    async def commit(self) -> None:
        """Make the inserted rows durable."""

    async def rollback(self) -> None:
        """Discard the inserted rows. No-op when no longer active."""

    async def release(self) -> None:
        """Free the connection, rolling back first if still active."""


class KitchenRepository(Protocol):
    """Protocol for the recipe catalog and the order record store."""

    async def list_recipes(self) -> list[Recipe]:
        """Return every known recipe."""

    async def add_recipe(self, name: str, ingredients: Mapping[str, float]) -> Recipe:
        """Store a new recipe and return it with its assigned id."""

    def transaction(self) -> AsyncContextManager[OrderTransaction]:
        """Open a transaction that is released when the context exits."""

    async def get_order(self, order_id: str) -> PersistedOrder | None:
        """Retrieve a committed order by id."""

    async def list_orders(self) -> list[PersistedOrder]:
        """Return all committed orders."""
