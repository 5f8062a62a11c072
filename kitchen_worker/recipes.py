"""Recipe catalog cache and random recipe selection."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import List, Optional

from .contracts import Recipe
from .exceptions import RecipeUnavailable
from .persistence import KitchenRepository

logger = logging.getLogger(__name__)


class RecipeCatalog:
    """Read-through cache over the recipe store.

    The first read loads the whole catalog; later reads are served from
    memory until :meth:`invalidate` or :meth:`refresh` is called. Recipes are
    owned by an external catalog process, so nothing here writes them.
    """

    def __init__(self, repository: KitchenRepository) -> None:
        self._repository = repository
        self._recipes: Optional[List[Recipe]] = None
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._recipes is not None

    async def get_all(self) -> List[Recipe]:
        """Return every known recipe.

        Raises:
            RecipeUnavailable: If the store cannot be read.
        """
        if self._recipes is None:
            async with self._lock:
                if self._recipes is None:
                    recipes = await self._load()
                    # an empty catalog is not cached so seeding takes effect
                    if not recipes:
                        return []
                    self._recipes = recipes
        return list(self._recipes)

    async def refresh(self) -> List[Recipe]:
        """Reload the catalog from the store right away."""
        async with self._lock:
            recipes = await self._load()
            self._recipes = recipes or None
        return list(recipes)

    def invalidate(self) -> None:
        """Drop the cached catalog; the next read goes to the store."""
        self._recipes = None

    async def _load(self) -> List[Recipe]:
        try:
            recipes = await self._repository.list_recipes()
        except Exception as e:
            raise RecipeUnavailable(f"Recipe store unavailable: {e}") from e
        logger.info(f"Loaded {len(recipes)} recipes into the catalog cache")
        return recipes


class RecipeSelector:
    """Pick a recipe uniformly at random from the catalog."""

    def __init__(self, catalog: RecipeCatalog, rng: Optional[random.Random] = None) -> None:
        self._catalog = catalog
        self._rng = rng or random.Random()

    async def pick_random(self) -> Recipe:
        """Return one recipe, each with probability ``1/n``.

        Raises:
            RecipeUnavailable: If the catalog is empty or cannot be read.
        """
        recipes = await self._catalog.get_all()
        if not recipes:
            raise RecipeUnavailable("Recipe catalog is empty")
        return self._rng.choice(recipes)
