# app/schemas/cart.py
from __future__ import annotations
from pydantic import BaseModel, Field, ConfigDict
from typing import List
from datetime import datetime

from app.domain.cart import LineItem


class LineItemCreate(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)

    def to_domain(self) -> LineItem:
        return LineItem(product_id=self.product_id, quantity=self.quantity)


class CartCreate(BaseModel):
    user_id: int = Field(..., gt=0, description="Owner of the new cart")
    line_items: List[LineItemCreate] = Field(default_factory=list)


class LineItemRead(BaseModel):
    id: int
    cart_id: int
    product_id: int
    quantity: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CartRead(BaseModel):
    id: int
    user_id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    line_items: List[LineItemRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
