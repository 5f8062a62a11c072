"""SQLite implementation of the kitchen repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Mapping, Sequence

from ..contracts import PersistedOrder, Recipe
from ..exceptions import PersistenceFailure


def _connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


class SQLiteOrderTransaction:
    """Transaction on a dedicated SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._active = False
        self._released = False

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_released(self) -> bool:
        return self._released

    async def begin(self) -> None:
        await self._run(self._conn.execute, "BEGIN")
        self._active = True

    async def insert_orders(self, orders: Sequence[PersistedOrder]) -> None:
        if not self._active:
            raise PersistenceFailure("Transaction is not active")
        now = datetime.now(timezone.utc).isoformat()
        rows = [(o.id, o.customer_id, o.recipe_id, now, now) for o in orders]
        await self._run(
            self._conn.executemany,
            "INSERT INTO orders (id, customer_id, recipe_id, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            rows,
        )

    async def commit(self) -> None:
        if not self._active:
            raise PersistenceFailure("Transaction is not active")
        await self._run(self._conn.execute, "COMMIT")
        self._active = False

    async def rollback(self) -> None:
        if not self._active:
            return
        self._active = False
        await self._run(self._conn.execute, "ROLLBACK")

    async def release(self) -> None:
        try:
            await self.rollback()
        finally:
            self._conn.close()
            self._released = True

    @staticmethod
    async def _run(func: Any, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            raise PersistenceFailure(str(e)) from e


class SQLiteKitchenRepository:
    """Persist recipes and orders using SQLite.

    Each transaction runs on its own connection, so ``db_path`` must name a
    file; ``:memory:`` would give every connection a separate database.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = _connect(self.db_path)
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS recipes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                ingredients TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS orders (
                id TEXT PRIMARY KEY,
                customer_id TEXT NOT NULL,
                recipe_id INTEGER REFERENCES recipes (id),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.lastrowid

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        rows = self._fetchall(query, *params)
        return rows[0] if rows else None

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    @staticmethod
    def _to_order(row: sqlite3.Row) -> PersistedOrder:
        return PersistedOrder(
            id=row["id"],
            customer_id=row["customer_id"],
            recipe_id=row["recipe_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Repository API
    async def list_recipes(self) -> list[Recipe]:
        try:
            rows = await asyncio.to_thread(
                self._fetchall, "SELECT id, name, ingredients FROM recipes ORDER BY id"
            )
        except sqlite3.Error as e:
            raise PersistenceFailure(str(e)) from e
        return [
            Recipe(id=r["id"], name=r["name"], ingredients=json.loads(r["ingredients"]))
            for r in rows
        ]

    async def add_recipe(self, name: str, ingredients: Mapping[str, float]) -> Recipe:
        recipe = Recipe(id=0, name=name, ingredients=dict(ingredients))
        try:
            recipe_id = await asyncio.to_thread(
                self._execute,
                "INSERT INTO recipes (name, ingredients) VALUES (?, ?)",
                recipe.name,
                json.dumps(recipe.ingredients),
            )
        except sqlite3.Error as e:
            raise PersistenceFailure(str(e)) from e
        return recipe.model_copy(update={"id": recipe_id})

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SQLiteOrderTransaction]:
        try:
            conn = await asyncio.to_thread(_connect, self.db_path)
        except sqlite3.Error as e:
            raise PersistenceFailure(str(e)) from e
        tx = SQLiteOrderTransaction(conn)
        try:
            await tx.begin()
            yield tx
        finally:
            if not tx.is_released:
                await tx.release()

    async def get_order(self, order_id: str) -> PersistedOrder | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT id, customer_id, recipe_id, created_at, updated_at FROM orders WHERE id = ?",
            order_id,
        )
        return self._to_order(row) if row else None

    async def list_orders(self) -> list[PersistedOrder]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT id, customer_id, recipe_id, created_at, updated_at FROM orders ORDER BY created_at, id",
        )
        return [self._to_order(r) for r in rows]
