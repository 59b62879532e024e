"""
api/routes/v1/cart.py -- Shopping cart endpoints.

Routes (all require a session):
  GET    /api/v1/cart                       -- caller's cart, created empty on first read
  POST   /api/v1/cart/add                   -- add a line or increase its quantity
  PUT    /api/v1/cart/update/{variant_id}   -- set a line's quantity
  DELETE /api/v1/cart/remove/{variant_id}   -- remove a line
  DELETE /api/v1/cart/clear                 -- remove every line
  GET    /api/v1/cart/count                 -- item_count (units) and total_items (lines)
  GET    /api/v1/cart/admin/all             -- every cart, with owner (admin)
  DELETE /api/v1/cart/admin/{cart_id}       -- delete a cart (admin)

New lines get their image from the Shopify Admin API when a client is
configured. The lookup never blocks the add: no image is stored on failure.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.limiter import GENERAL_LIMIT, limiter
from api.models import (
    CartCountResponse,
    CartItemIn,
    CartListResponse,
    CartOut,
    MessageResponse,
    Pagination,
    QuantityUpdate,
)
from auth.dependencies import require_admin, require_user
from auth.models import SessionClaims
from commerce.store import CartStore
from core.errors import NotFoundError

router = APIRouter()


@router.get("/cart", response_model=CartOut)
def get_cart(request: Request, claims: SessionClaims = Depends(require_user)) -> CartOut:
    carts: CartStore = request.app.state.cart_store
    return CartOut.from_cart(carts.get_or_create(claims.user_id))


@limiter.limit(GENERAL_LIMIT)
@router.post("/cart/add", response_model=CartOut)
def add_to_cart(request: Request, body: CartItemIn, claims: SessionClaims = Depends(require_user)) -> CartOut:
    carts: CartStore = request.app.state.cart_store
    shopify = request.app.state.shopify
    resolver = shopify.fetch_product_image if shopify is not None and shopify.configured else None
    cart = carts.add_item(claims.user_id, body.to_domain(), image_resolver=resolver)
    return CartOut.from_cart(cart)


@limiter.limit(GENERAL_LIMIT)
@router.put("/cart/update/{variant_id:path}", response_model=CartOut)
def update_cart_item(
    request: Request,
    variant_id: str,
    body: QuantityUpdate,
    claims: SessionClaims = Depends(require_user),
) -> CartOut:
    carts: CartStore = request.app.state.cart_store
    return CartOut.from_cart(carts.update_quantity(claims.user_id, variant_id, body.quantity))


@router.delete("/cart/remove/{variant_id:path}", response_model=CartOut)
def remove_cart_item(request: Request, variant_id: str, claims: SessionClaims = Depends(require_user)) -> CartOut:
    carts: CartStore = request.app.state.cart_store
    return CartOut.from_cart(carts.remove_item(claims.user_id, variant_id))


@router.delete("/cart/clear", response_model=CartOut)
def clear_cart(request: Request, claims: SessionClaims = Depends(require_user)) -> CartOut:
    carts: CartStore = request.app.state.cart_store
    return CartOut.from_cart(carts.clear(claims.user_id))


@router.get("/cart/count", response_model=CartCountResponse)
def cart_count(request: Request, claims: SessionClaims = Depends(require_user)) -> CartCountResponse:
    carts: CartStore = request.app.state.cart_store
    cart = carts.get(claims.user_id)
    if cart is None:
        return CartCountResponse(item_count=0, total_items=0)
    return CartCountResponse(item_count=cart.item_count, total_items=len(cart.items))


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get("/cart/admin/all", response_model=CartListResponse)
def list_all_carts(
    request: Request,
    user_id: Optional[int] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    claims: SessionClaims = Depends(require_admin),
) -> CartListResponse:
    carts: CartStore = request.app.state.cart_store
    rows, total = carts.list_carts(user_id=user_id, page=page, limit=limit)
    owners = request.app.state.user_store.get_many(c.user_id for c in rows)
    return CartListResponse(
        carts=[CartOut.from_cart(c, owners.get(c.user_id)) for c in rows],
        pagination=Pagination.build(page, limit, total),
    )


@router.delete("/cart/admin/{cart_id}", response_model=MessageResponse)
def delete_cart(request: Request, cart_id: int, claims: SessionClaims = Depends(require_admin)) -> MessageResponse:
    carts: CartStore = request.app.state.cart_store
    if not carts.delete_cart(cart_id):
        raise NotFoundError("Cart not found.")
    return MessageResponse(message="Cart deleted successfully.")
