# app/repositories/cart_store.py
"""SQL storage backend for carts and line items.

``CartStore`` is the plain handle: its direct methods each run in their own
short transaction. ``CartStore.begin`` hands out a ``CartTransaction`` that
exposes the same primitives inside one transaction, plus ``commit`` and
``rollback``. A transaction cannot begin another one.
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import delete, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.session import SQLITE_BEGIN_OPTION
from app.domain.cart import Cart, LineItem
from app.models.cart import CartModel, LineItemModel
from app.services.exceptions import CartNotFoundError, TransactionStateError

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands timestamps back without tzinfo.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_line_item(row: LineItemModel) -> LineItem:
    return LineItem(
        id=row.id,
        cart_id=row.cart_id,
        product_id=row.product_id,
        quantity=row.quantity,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


class _CartOperations:
    """Cart and line item primitives bound to one session."""

    def __init__(self, session: AsyncSession, *, read_only: bool = False) -> None:
        self._session = session
        self._read_only = read_only
        self._finished = False

    @property
    def read_only(self) -> bool:
        return self._read_only

    def _ensure_active(self) -> None:
        if self._finished:
            raise TransactionStateError("transaction already finished")

    def _ensure_writable(self) -> None:
        self._ensure_active()
        if self._read_only:
            raise TransactionStateError("write attempted in a read-only transaction")

    async def create_cart(self, user_id: int) -> Cart:
        self._ensure_writable()
        now = _utcnow()
        row = CartModel(user_id=user_id, created_at=now, updated_at=now)
        self._session.add(row)
        await self._session.flush()
        return Cart(id=row.id, user_id=user_id, created_at=now, updated_at=now)

    async def cart_with_items(self, cart_id: int, *, for_update: bool = False) -> Cart:
        self._ensure_active()
        stmt = select(CartModel).where(CartModel.id == cart_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        cart = result.scalar_one_or_none()
        if cart is None:
            raise CartNotFoundError(cart_id)

        items = await self._session.execute(
            select(LineItemModel)
            .where(LineItemModel.cart_id == cart_id)
            .order_by(LineItemModel.id)
            .execution_options(populate_existing=True)
        )
        return Cart(
            id=cart.id,
            user_id=cart.user_id,
            line_items=[_to_line_item(row) for row in items.scalars()],
            created_at=_as_utc(cart.created_at),
            updated_at=_as_utc(cart.updated_at),
        )

    async def empty_cart(self, cart_id: int) -> None:
        self._ensure_writable()
        await self._session.execute(
            delete(LineItemModel)
            .where(LineItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )

    async def upsert_line_items(self, cart_id: int, items: Iterable[LineItem]) -> list[LineItem]:
        """Insert items keyed by (cart_id, product_id); existing rows get the new quantity."""
        self._ensure_writable()
        dialect = (await self._session.connection()).dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise InvalidRequestError(f"Line item upsert is not supported on {dialect}")

        saved: list[LineItem] = []
        for item in items:
            now = _utcnow()
            stmt = insert(LineItemModel).values(
                cart_id=cart_id,
                product_id=item.product_id,
                quantity=item.quantity,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["cart_id", "product_id"],
                set_={"quantity": stmt.excluded.quantity, "updated_at": stmt.excluded.updated_at},
            ).returning(LineItemModel.id, LineItemModel.created_at, LineItemModel.updated_at)

            row = (await self._session.execute(stmt)).one()
            saved.append(
                LineItem(
                    id=row.id,
                    cart_id=cart_id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    created_at=_as_utc(row.created_at),
                    updated_at=_as_utc(row.updated_at),
                )
            )
        return saved

    async def remove_line_item(self, cart_id: int, item_id: int) -> None:
        """Delete one item. Raises CartNotFoundError only when the cart itself is absent."""
        self._ensure_writable()
        result = await self._session.execute(
            delete(LineItemModel)
            .where(LineItemModel.cart_id == cart_id, LineItemModel.id == item_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return
        exists = await self._session.scalar(select(CartModel.id).where(CartModel.id == cart_id))
        if exists is None:
            raise CartNotFoundError(cart_id)


class CartTransaction(_CartOperations):
    """Transaction-scoped handle. Leaving the ``async with`` block without commit rolls back."""

    async def commit(self) -> None:
        self._ensure_active()
        self._finished = True
        await self._session.commit()

    async def rollback(self) -> None:
        if self._finished:
            return
        self._finished = True
        await self._session.rollback()

    async def close(self) -> None:
        self._finished = True
        await self._session.close()

    async def __aenter__(self) -> "CartTransaction":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class CartStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def begin(self, *, read_only: bool = False) -> CartTransaction:
        session = self._session_factory()
        try:
            # SQLite has no row locks; writers take the database lock up front.
            conn = await session.connection(
                execution_options={SQLITE_BEGIN_OPTION: "DEFERRED" if read_only else "IMMEDIATE"}
            )
            if read_only and conn.dialect.name == "postgresql":
                await session.execute(text("SET TRANSACTION READ ONLY"))
        except BaseException:
            await session.close()
            raise
        return CartTransaction(session, read_only=read_only)

    async def cart_with_items(self, cart_id: int) -> Cart:
        async with await self.begin(read_only=True) as tx:
            return await tx.cart_with_items(cart_id)

    async def empty_cart(self, cart_id: int) -> None:
        async with await self.begin() as tx:
            await tx.empty_cart(cart_id)
            await tx.commit()

    async def remove_line_item(self, cart_id: int, item_id: int) -> None:
        async with await self.begin() as tx:
            await tx.remove_line_item(cart_id, item_id)
            await tx.commit()
