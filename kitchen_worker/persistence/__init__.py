"""Persistence layer for recipes and order records."""

from __future__ import annotations

import os
from typing import Optional

from ..config import KitchenConfig, load_config
from .inmemory import InMemoryKitchenRepository, InMemoryOrderTransaction
from .repository import KitchenRepository, OrderTransaction
from .sqlite import SQLiteKitchenRepository

_repository_instance: KitchenRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[KitchenConfig] = None
) -> KitchenRepository:
    """Factory function to obtain a kitchen repository.

    The repository backend is selected based on ``database_url`` which can be
    provided explicitly, via environment variable ``KITCHEN_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("KITCHEN_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        _repository_instance = InMemoryKitchenRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteKitchenRepository(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        from .postgres import PostgresKitchenRepository

        _repository_instance = PostgresKitchenRepository(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


__all__ = [
    "KitchenRepository",
    "OrderTransaction",
    "SQLiteKitchenRepository",
    "InMemoryKitchenRepository",
    "InMemoryOrderTransaction",
    "get_repository",
]
