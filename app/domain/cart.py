# app/domain/cart.py
"""Cart values handed between the store, the engine and the API layer.

They are detached from any ORM session, so they can outlive the transaction
that produced them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class LineItem:
    product_id: int
    quantity: int
    id: int | None = None
    cart_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Cart:
    user_id: int
    id: int | None = None
    line_items: list[LineItem] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
