from __future__ import annotations

import logging
from collections.abc import Awaitable, Iterable
from dataclasses import replace
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError

from app.domain.cart import Cart, LineItem
from app.repositories.cart_store import CartStore
from app.services.context import OperationContext
from app.services.exceptions import (
    InvalidQuantityError,
    ResourceNotFoundError,
    StorageError,
    TransactionStateError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors raised by the storage backend itself; anything else (not found,
# cancellation, validation) passes through the engine untouched.
_BACKEND_ERRORS = (SQLAlchemyError, TransactionStateError, OSError)


def _validate_quantities(items: Iterable[LineItem]) -> None:
    for item in items:
        if item.quantity <= 0:
            raise InvalidQuantityError(
                f"Quantity for product {item.product_id} must be greater than 0"
            )


def merge_line_items(existing: Iterable[LineItem], incoming: Iterable[LineItem]) -> list[LineItem]:
    """Resolve incoming items against the items already in a cart.

    Matching is by ``product_id``. The first existing item with that product
    wins; its id is adopted and its quantity added to the incoming one.
    Unmatched items come back with ``id=None`` so storage assigns one.
    Repeated incoming products accumulate onto the previous result.
    Returns new objects, one per incoming item, in incoming order.
    """
    current: dict[int, LineItem] = {}
    for item in existing:
        current.setdefault(item.product_id, item)

    merged: list[LineItem] = []
    for item in incoming:
        match = current.get(item.product_id)
        if match is None:
            result = replace(item, id=None)
        else:
            result = replace(item, id=match.id, quantity=match.quantity + item.quantity)
        current[item.product_id] = result
        merged.append(result)
    return merged


class CartService:
    """Cart business rules, each operation run as one logical storage transaction."""

    def __init__(self, store: CartStore) -> None:
        self._store = store

    @staticmethod
    async def _call(ctx: OperationContext, phase: str, awaitable: Awaitable[T]) -> T:
        try:
            return await ctx.run(awaitable)
        except _BACKEND_ERRORS as exc:
            raise StorageError(phase, str(exc)) from exc

    async def create_cart(
        self,
        ctx: OperationContext,
        user_id: int,
        items: Iterable[LineItem] = (),
    ) -> Cart:
        ctx.check()
        items = list(items)
        _validate_quantities(items)
        # Duplicate products in the request collapse into one line with the summed quantity.
        merged = merge_line_items([], items)
        unique = list({item.product_id: item for item in merged}.values())

        tx = await self._call(ctx, "tx", self._store.begin())
        async with tx:
            cart = await self._call(ctx, "cart", tx.create_cart(user_id))
            cart.line_items = await self._call(ctx, "items", tx.upsert_line_items(cart.id, unique))
            await self._call(ctx, "commit", tx.commit())

        logger.info(
            "Cart created",
            extra={"cart_id": cart.id, "user_id": user_id, "line_items": len(cart.line_items)},
        )
        return cart

    async def show_cart(self, ctx: OperationContext, cart_id: int) -> Cart:
        ctx.check()
        return await self._call(ctx, "cart", self._store.cart_with_items(cart_id))

    async def empty_cart(self, ctx: OperationContext, cart_id: int) -> None:
        ctx.check()
        await self._call(ctx, "items", self._store.empty_cart(cart_id))
        logger.info("Cart emptied", extra={"cart_id": cart_id})

    async def add_line_items(
        self,
        ctx: OperationContext,
        cart_id: int,
        items: Iterable[LineItem],
    ) -> list[LineItem]:
        ctx.check()
        items = list(items)
        _validate_quantities(items)

        tx = await self._call(ctx, "tx", self._store.begin())
        async with tx:
            # The cart row lock (the database write lock on SQLite) keeps
            # concurrent merges on one cart from losing updates.
            cart = await self._call(ctx, "cart", tx.cart_with_items(cart_id, for_update=True))
            merged = merge_line_items(cart.line_items, items)
            saved = await self._call(ctx, "items", tx.upsert_line_items(cart_id, merged))
            await self._call(ctx, "commit", tx.commit())

        logger.info("Line items added", extra={"cart_id": cart_id, "line_items": len(saved)})
        return saved

    async def remove_line_item(self, ctx: OperationContext, cart_id: int, item_id: int) -> None:
        ctx.check()
        try:
            await self._call(ctx, "items", self._store.remove_line_item(cart_id, item_id))
        except ResourceNotFoundError:
            logger.debug(
                "Removing item from missing cart, nothing to do",
                extra={"cart_id": cart_id, "item_id": item_id},
            )
            return
        logger.info("Line item removed", extra={"cart_id": cart_id, "item_id": item_id})
