"""PostgreSQL implementation of the kitchen repository."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Mapping, Sequence

import asyncpg

from ..contracts import PersistedOrder, Recipe
from ..exceptions import PersistenceFailure


class PostgresOrderTransaction:
    """Transaction bound to one asyncpg connection."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn
        self._tx = conn.transaction()
        self._active = False
        self._released = False

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_released(self) -> bool:
        return self._released

    async def begin(self) -> None:
        try:
            await self._tx.start()
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceFailure(str(e)) from e
        self._active = True

    async def insert_orders(self, orders: Sequence[PersistedOrder]) -> None:
        if not self._active:
            raise PersistenceFailure("Transaction is not active")
        now = datetime.now(timezone.utc)
        try:
            await self._conn.executemany(
                "INSERT INTO orders (id, customer_id, recipe_id, created_at, updated_at) VALUES ($1, $2, $3, $4, $5)",
                [(o.id, o.customer_id, o.recipe_id, now, now) for o in orders],
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceFailure(str(e)) from e

    async def commit(self) -> None:
        if not self._active:
            raise PersistenceFailure("Transaction is not active")
        try:
            await self._tx.commit()
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceFailure(str(e)) from e
        finally:
            self._active = False

    async def rollback(self) -> None:
        if not self._active:
            return
        self._active = False
        try:
            await self._tx.rollback()
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceFailure(str(e)) from e

    async def release(self) -> None:
        try:
            await self.rollback()
        finally:
            await self._conn.close()
            self._released = True


class PostgresKitchenRepository:
    """Persist recipes and orders using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        try:
            conn = await asyncpg.connect(self._dsn)
            if not self._initialized:
                await self._ensure_schema(conn)
                self._initialized = True
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceFailure(str(e)) from e
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS recipes (
                id SERIAL PRIMARY KEY,
                name TEXT NOT NULL,
                ingredients JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS orders (
                id TEXT PRIMARY KEY,
                customer_id TEXT NOT NULL,
                recipe_id INTEGER REFERENCES recipes (id),
                created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )

    @staticmethod
    def _to_order(row: asyncpg.Record) -> PersistedOrder:
        return PersistedOrder(
            id=row["id"],
            customer_id=row["customer_id"],
            recipe_id=row["recipe_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    # ------------------------------------------------------------------
    async def list_recipes(self) -> list[Recipe]:
        conn = await self._connect()
        try:
            rows = await conn.fetch("SELECT id, name, ingredients FROM recipes ORDER BY id")
        except asyncpg.PostgresError as e:
            raise PersistenceFailure(str(e)) from e
        finally:
            await conn.close()
        return [
            Recipe(
                id=r["id"],
                name=r["name"],
                ingredients=(
                    json.loads(r["ingredients"])
                    if isinstance(r["ingredients"], str)
                    else r["ingredients"]
                ),
            )
            for r in rows
        ]

    async def add_recipe(self, name: str, ingredients: Mapping[str, float]) -> Recipe:
        recipe = Recipe(id=0, name=name, ingredients=dict(ingredients))
        conn = await self._connect()
        try:
            recipe_id = await conn.fetchval(
                "INSERT INTO recipes (name, ingredients) VALUES ($1, $2) RETURNING id",
                recipe.name,
                json.dumps(recipe.ingredients),
            )
        except asyncpg.PostgresError as e:
            raise PersistenceFailure(str(e)) from e
        finally:
            await conn.close()
        return recipe.model_copy(update={"id": recipe_id})

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresOrderTransaction]:
        tx = PostgresOrderTransaction(await self._connect())
        try:
            await tx.begin()
            yield tx
        finally:
            if not tx.is_released:
                await tx.release()

    async def get_order(self, order_id: str) -> PersistedOrder | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT id, customer_id, recipe_id, created_at, updated_at FROM orders WHERE id = $1",
                order_id,
            )
        finally:
            await conn.close()
        return self._to_order(row) if row else None

    async def list_orders(self) -> list[PersistedOrder]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT id, customer_id, recipe_id, created_at, updated_at FROM orders ORDER BY created_at, id"
            )
        finally:
            await conn.close()
        return [self._to_order(r) for r in rows]
