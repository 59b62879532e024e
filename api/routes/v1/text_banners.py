"""
api/routes/v1/text_banners.py -- Announcement strips above the storefront header.

Routes:
  GET    /api/v1/text-banners/active                -- active banners, newest first (public)
  POST   /api/v1/text-banners                       -- (admin)
  GET    /api/v1/text-banners                       -- list, search by content (admin)
  GET    /api/v1/text-banners/{id}                  -- (admin)
  PUT    /api/v1/text-banners/{id}                  -- change content and/or is_active (admin)
  PATCH  /api/v1/text-banners/{id}/toggle-status    -- flip is_active (admin)
  DELETE /api/v1/text-banners/{id}                  -- (admin)

/active is declared before /{id} so it is not captured as an id.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.limiter import GENERAL_LIMIT, limiter
from api.models import (
    MessageResponse,
    Pagination,
    TextBannerCreate,
    TextBannerListResponse,
    TextBannerOut,
    TextBannerUpdate,
)
from auth.dependencies import require_admin
from auth.models import SessionClaims
from core.errors import NotFoundError

router = APIRouter()


@limiter.limit(GENERAL_LIMIT)
@router.get("/text-banners/active", response_model=list[TextBannerOut])
def active_banners(request: Request) -> list[TextBannerOut]:
    return [TextBannerOut.from_banner(b) for b in request.app.state.text_banner_store.active()]


@limiter.limit(GENERAL_LIMIT)
@router.post("/text-banners", response_model=TextBannerOut, status_code=201)
def create_banner(
    request: Request,
    body: TextBannerCreate,
    claims: SessionClaims = Depends(require_admin),
) -> TextBannerOut:
    return TextBannerOut.from_banner(request.app.state.text_banner_store.create(body.content, body.is_active))


@router.get("/text-banners", response_model=TextBannerListResponse)
def list_banners(
    request: Request,
    search: Optional[str] = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    claims: SessionClaims = Depends(require_admin),
) -> TextBannerListResponse:
    rows, total = request.app.state.text_banner_store.list_banners(search=search, page=page, limit=limit)
    return TextBannerListResponse(
        text_banners=[TextBannerOut.from_banner(b) for b in rows], pagination=Pagination.build(page, limit, total)
    )


@router.get("/text-banners/{banner_id}", response_model=TextBannerOut)
def get_banner(request: Request, banner_id: int, claims: SessionClaims = Depends(require_admin)) -> TextBannerOut:
    banner = request.app.state.text_banner_store.get(banner_id)
    if banner is None:
        raise NotFoundError("Text banner not found.")
    return TextBannerOut.from_banner(banner)


@limiter.limit(GENERAL_LIMIT)
@router.put("/text-banners/{banner_id}", response_model=TextBannerOut)
def update_banner(
    request: Request,
    banner_id: int,
    body: TextBannerUpdate,
    claims: SessionClaims = Depends(require_admin),
) -> TextBannerOut:
    banner = request.app.state.text_banner_store.update(banner_id, content=body.content, is_active=body.is_active)
    return TextBannerOut.from_banner(banner)


@router.patch("/text-banners/{banner_id}/toggle-status", response_model=TextBannerOut)
def toggle_banner(request: Request, banner_id: int, claims: SessionClaims = Depends(require_admin)) -> TextBannerOut:
    return TextBannerOut.from_banner(request.app.state.text_banner_store.toggle(banner_id))


@router.delete("/text-banners/{banner_id}", response_model=MessageResponse)
def delete_banner(
    request: Request,
    banner_id: int,
    claims: SessionClaims = Depends(require_admin),
) -> MessageResponse:
    if not request.app.state.text_banner_store.delete(banner_id):
        raise NotFoundError("Text banner not found.")
    return MessageResponse(message="Text banner deleted successfully.")
