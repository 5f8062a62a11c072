"""In-memory implementation of the kitchen repository."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Iterable, List, Mapping, Sequence

from ..contracts import PersistedOrder, Recipe
from ..exceptions import PersistenceFailure


class InMemoryOrderTransaction:
    """Stage inserted orders and publish them to the store on commit."""

    def __init__(self, repository: "InMemoryKitchenRepository") -> None:
        self._repository = repository
        self._staged: List[PersistedOrder] = []
        self.state = "active"
        self.released = False

    @property
    def is_active(self) -> bool:
        return self.state == "active"

    @property
    def is_released(self) -> bool:
        return self.released

    @property
    def staged(self) -> List[PersistedOrder]:
        return list(self._staged)

    async def insert_orders(self, orders: Sequence[PersistedOrder]) -> None:
        if not self.is_active:
            raise PersistenceFailure("Transaction is not active")
        now = datetime.now(timezone.utc)
        pending = {order.id for order in self._staged}
        rows = []
        for order in orders:
            if order.id in self._repository._orders or order.id in pending:
                raise PersistenceFailure(f"Duplicate order id {order.id}")
            if order.recipe_id not in self._repository._recipes:
                raise PersistenceFailure(
                    f"Order {order.id} references unknown recipe {order.recipe_id}"
                )
            pending.add(order.id)
            rows.append(order.model_copy(update={"created_at": now, "updated_at": now}))
        self._staged.extend(rows)

    async def commit(self) -> None:
        if not self.is_active:
            raise PersistenceFailure("Transaction is not active")
        for order in self._staged:
            self._repository._orders[order.id] = order
        self.state = "committed"

    async def rollback(self) -> None:
        if not self.is_active:
            return
        self._staged.clear()
        self.state = "rolled_back"

    async def release(self) -> None:
        await self.rollback()
        self.released = True


class InMemoryKitchenRepository:
    """Store recipes and orders in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Every opened transaction is kept in
    ``transactions`` so callers can inspect how it ended.
    """

    def __init__(self, recipes: Iterable[Recipe] = ()) -> None:
        self._recipes: Dict[int, Recipe] = {recipe.id: recipe for recipe in recipes}
        self._orders: Dict[str, PersistedOrder] = {}
        self._recipe_id = max(self._recipes, default=0)
        self.transactions: List[InMemoryOrderTransaction] = []

    # ------------------------------------------------------------------
    async def list_recipes(self) -> list[Recipe]:
        return list(self._recipes.values())

    async def add_recipe(self, name: str, ingredients: Mapping[str, float]) -> Recipe:
        self._recipe_id += 1
        recipe = Recipe(id=self._recipe_id, name=name, ingredients=dict(ingredients))
        self._recipes[recipe.id] = recipe
        return recipe

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryOrderTransaction]:
        tx = InMemoryOrderTransaction(self)
        self.transactions.append(tx)
        try:
            yield tx
        finally:
            if not tx.is_released:
                await tx.release()

    async def get_order(self, order_id: str) -> PersistedOrder | None:
        return self._orders.get(order_id)

    async def list_orders(self) -> list[PersistedOrder]:
        return list(self._orders.values())
