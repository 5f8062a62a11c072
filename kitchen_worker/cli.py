"""Command line interface for running the kitchen worker."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import typer

from kitchen_worker.config import load_config
from kitchen_worker.constants import ORDER_DISPATCHED
from kitchen_worker.contracts import DispatchedOrder, KitchenMessage
from kitchen_worker.persistence import get_repository
from kitchen_worker.recipes import RecipeCatalog
from kitchen_worker.transports import get_transport
from kitchen_worker.worker import build_worker

app = typer.Typer(help="CLI for the kitchen worker")

# Command groups
worker_app = typer.Typer(help="Commands for running the worker")
recipes_app = typer.Typer(help="Commands for the recipe catalog")
orders_app = typer.Typer(help="Commands for order records")

app.add_typer(worker_app, name="worker")
app.add_typer(recipes_app, name="recipes")
app.add_typer(orders_app, name="orders")


@app.callback()
def main() -> None:
    """Kitchen worker CLI entry point."""
    logging.basicConfig(
        level=load_config().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_ingredient(value: str) -> tuple[str, float]:
    name, sep, quantity = value.partition("=")
    if not sep or not name:
        raise typer.BadParameter(f"Expected NAME=QUANTITY, got {value!r}")
    try:
        number = float(quantity)
    except ValueError:
        raise typer.BadParameter(f"Quantity for {name!r} is not a number: {quantity!r}")
    if number <= 0:
        raise typer.BadParameter(f"Quantity for {name!r} must be positive")
    return name.strip(), int(number) if number.is_integer() else number


def _parse_order(value: str) -> DispatchedOrder:
    order_id, sep, customer_id = value.partition(":")
    if not sep or not order_id or not customer_id:
        raise typer.BadParameter(f"Expected ORDER_ID:CUSTOMER_ID, got {value!r}")
    return DispatchedOrder(id=order_id, customer_id=customer_id)


@worker_app.command("run")
def worker_run(lifespan: Optional[float] = None) -> None:
    """
    Run a worker process that fulfills dispatched orders.

    Connects to the configured transport and database, then consumes
    "order_dispatched" messages from the kitchen queue one batch at a time.

    Args:
        lifespan: Worker timeout in seconds (default: run indefinitely)

    Example:
        kitchen worker run
        kitchen worker run --lifespan 300
    """
    config = load_config()
    worker = build_worker(config)
    typer.echo(f"Kitchen worker listening on {config.queues.kitchen}")
    asyncio.run(worker.start(lifespan=lifespan))


@recipes_app.command("list")
def recipes_list() -> None:
    """List every known recipe with its ingredients."""
    catalog = RecipeCatalog(get_repository())
    recipes = asyncio.run(catalog.get_all())
    if not recipes:
        typer.echo("No recipes found")
        return
    for recipe in recipes:
        ingredients = ", ".join(f"{k}={v}" for k, v in recipe.ingredients.items())
        typer.echo(f"{recipe.id}\t{recipe.name}\t{ingredients}")


@recipes_app.command("add")
def recipes_add(
    name: str,
    ingredient: List[str] = typer.Option(
        ..., "--ingredient", "-i", help="Ingredient as NAME=QUANTITY, repeatable"
    ),
) -> None:
    """
    Add a recipe to the catalog.

    Example:
        kitchen recipes add Soup -i tomato=2 -i onion=1
    """
    ingredients = dict(_parse_ingredient(item) for item in ingredient)
    recipe = asyncio.run(get_repository().add_recipe(name, ingredients))
    typer.echo(f"Added recipe {recipe.id}: {recipe.name}")


@orders_app.command("list")
def orders_list() -> None:
    """List committed orders with their assigned recipe."""
    orders = asyncio.run(get_repository().list_orders())
    if not orders:
        typer.echo("No orders found")
        return
    for order in orders:
        typer.echo(f"{order.id}\t{order.customer_id}\t{order.recipe_id}")


@orders_app.command("show")
def orders_show(order_id: str) -> None:
    """Show a committed order."""
    order = asyncio.run(get_repository().get_order(order_id))
    if order is None:
        typer.echo("Order not found")
        raise typer.Exit(code=1)
    typer.echo(f"Order {order.id}: customer {order.customer_id}, recipe {order.recipe_id}")
    typer.echo(f"Created {order.created_at}, updated {order.updated_at}")


@orders_app.command("dispatch")
def orders_dispatch(orders: List[str]) -> None:
    """
    Publish an "order_dispatched" batch to the kitchen queue.

    Example:
        kitchen orders dispatch 1:10 2:20
    """
    batch = [_parse_order(item) for item in orders]
    config = load_config()
    transport = get_transport(config=config)
    message = KitchenMessage(
        pattern=ORDER_DISPATCHED, data=[order.to_wire() for order in batch]
    )

    async def _dispatch() -> None:
        try:
            await transport.publish(config.queues.kitchen, message)
        finally:
            await transport.disconnect()

    asyncio.run(_dispatch())
    typer.echo(f"Dispatched {len(batch)} orders as message {message.message_id}")


if __name__ == "__main__":
    app()
