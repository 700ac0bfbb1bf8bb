# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from storefront.context import AppContext, get_context
from storefront.errors import NOT_AUTHORIZED
from storefront.permissions import require_user
from storefront.schemas import CartItemRequest, CartUpdateRequest, validated
from storefront.store.users import UserRecord

router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.post("/get")
async def get_cart(user: UserRecord = Depends(require_user)):
    return {"success": True, "cartData": user.cart_data}


@router.post("/add")
async def add_to_cart(
    user: UserRecord = Depends(require_user),
    payload: CartItemRequest = Depends(validated(CartItemRequest)),
    ctx: AppContext = Depends(get_context),
):
    if await run_in_threadpool(ctx.store.add_cart_item, user.id, payload.itemId, payload.size) is None:
        return {"success": False, "message": NOT_AUTHORIZED}
    return {"success": True, "message": "Added To Cart"}


@router.post("/update")
async def update_cart(
    user: UserRecord = Depends(require_user),
    payload: CartUpdateRequest = Depends(validated(CartUpdateRequest)),
    ctx: AppContext = Depends(get_context),
):
    updated = await run_in_threadpool(ctx.store.set_cart_quantity, user.id, payload.itemId, payload.size, payload.quantity)
    if updated is None:
        return {"success": False, "message": NOT_AUTHORIZED}
    return {"success": True, "message": "Cart Updated"}
