"""Errors raised while fulfilling orders."""

from __future__ import annotations

from typing import Iterable


class KitchenError(Exception):
    """Base error for the kitchen worker."""


class RecipeUnavailable(KitchenError):
    """The recipe catalog is empty or could not be read."""


class InventoryError(KitchenError):
    """The inventory reservation did not succeed."""

    def __init__(self, message: str, order_ids: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.order_ids = list(order_ids)


class InventoryUnreachable(InventoryError):
    """The warehouse could not be reached or gave no usable answer."""


class InventoryDenied(InventoryError):
    """The warehouse answered ``success: false``."""


class PersistenceFailure(KitchenError):
    """Writing order records or managing the transaction failed."""


class InvalidStatusTransition(KitchenError):
    """An order was moved between statuses the lifecycle does not allow."""

    def __init__(self, current: object, target: object) -> None:
        super().__init__(f"Cannot move order from {current} to {target}")
        self.current = current
        self.target = target
