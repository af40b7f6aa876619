from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path, Response, status

from app.api.deps import get_cart_service, get_operation_context, require_token
from app.schemas.cart import CartCreate, CartRead, LineItemCreate, LineItemRead
from app.services.cart_service import CartService
from app.services.context import OperationContext

router = APIRouter(prefix="/cart", tags=["cart"], dependencies=[Depends(require_token)])


@router.post("", response_model=CartRead, status_code=status.HTTP_201_CREATED)
async def create_cart(
    payload: CartCreate,
    ctx: OperationContext = Depends(get_operation_context),
    service: CartService = Depends(get_cart_service),
):
    items = [item.to_domain() for item in payload.line_items]
    return await service.create_cart(ctx, payload.user_id, items)


@router.get("/{cart_id}", response_model=CartRead)
async def show_cart(
    cart_id: int = Path(..., gt=0),
    ctx: OperationContext = Depends(get_operation_context),
    service: CartService = Depends(get_cart_service),
):
    return await service.show_cart(ctx, cart_id)


@router.delete("/{cart_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def empty_cart(
    cart_id: int = Path(..., gt=0),
    ctx: OperationContext = Depends(get_operation_context),
    service: CartService = Depends(get_cart_service),
):
    """Empties the cart's items; the cart itself is kept."""
    await service.empty_cart(ctx, cart_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{cart_id}/items", response_model=List[LineItemRead], status_code=status.HTTP_201_CREATED)
async def add_line_items(
    items: List[LineItemCreate],
    cart_id: int = Path(..., gt=0),
    ctx: OperationContext = Depends(get_operation_context),
    service: CartService = Depends(get_cart_service),
):
    return await service.add_line_items(ctx, cart_id, [item.to_domain() for item in items])


@router.delete("/{cart_id}/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def remove_line_item(
    cart_id: int = Path(..., gt=0),
    item_id: int = Path(..., gt=0),
    ctx: OperationContext = Depends(get_operation_context),
    service: CartService = Depends(get_cart_service),
):
    await service.remove_line_item(ctx, cart_id, item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
