"""
api/routes/v1/pages.py -- CMS page endpoints.

Public reads:
  GET /api/v1/pages/homepage            -- 404 until an admin saves one
  GET /api/v1/pages/navbar              -- default structure until one is saved
  GET /api/v1/pages/legal               -- every saved legal page
  GET /api/v1/pages/legal/types         -- the supported legal page types
  GET /api/v1/pages/legal/{type}        -- 400 for an unsupported type

Admin writes:
  PUT|DELETE /api/v1/pages/homepage
  PUT|DELETE /api/v1/pages/navbar       -- DELETE restores the default
  PUT|DELETE /api/v1/pages/legal/{type}
  GET    /api/v1/pages                  -- list, filter is_active / kind
  GET    /api/v1/pages/{identifier}     -- numeric id or path
  POST   /api/v1/pages                  -- 409 on duplicate path
  PUT    /api/v1/pages/{id}
  DELETE /api/v1/pages/{id}

Literal paths are declared before the parameterized ones so /pages/homepage
never reaches /pages/{id}.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.limiter import GENERAL_LIMIT, limiter
from api.models import (
    LegalBody,
    LegalTypeOut,
    MessageResponse,
    PageCreate,
    PageListResponse,
    PageOut,
    Pagination,
    PageUpdate,
)
from auth.dependencies import require_admin
from auth.models import SessionClaims
from content.models import Page
from content.pages import (
    HOMEPAGE_PATH,
    LEGAL_TYPES,
    NAVBAR_PATH,
    HomepageContent,
    LegalContent,
    NavbarContent,
    default_navbar,
    legal_path,
    normalize_navbar,
    stamp_legal,
)
from content.store import PageStore
from core.errors import NotFoundError, ValidationError

router = APIRouter()


def _prepare(content) -> dict:
    """Apply save-time normalization for the content's kind and dump it."""
    if isinstance(content, NavbarContent):
        content = normalize_navbar(content)
    elif isinstance(content, LegalContent):
        content = stamp_legal(content)
    return content.model_dump(mode="json")


def _check_legal_type(legal_type: str) -> None:
    if legal_type not in LEGAL_TYPES:
        raise ValidationError(
            f"Unsupported legal page type: {legal_type}.",
            code="invalid_legal_type",
            detail=f"Supported types: {', '.join(LEGAL_TYPES)}",
        )


def _active_page(store: PageStore, path: str) -> Optional[Page]:
    page = store.get_by_path(path)
    if page is None or not page.is_active:
        return None
    return page


# ---------------------------------------------------------------------------
# Homepage
# ---------------------------------------------------------------------------


@router.get("/pages/homepage", response_model=PageOut)
def get_homepage(request: Request) -> PageOut:
    page = _active_page(request.app.state.page_store, HOMEPAGE_PATH)
    if page is None:
        raise NotFoundError("Homepage not found.")
    return PageOut.from_page(page)


@limiter.limit(GENERAL_LIMIT)
@router.put("/pages/homepage", response_model=PageOut)
def save_homepage(request: Request, body: HomepageContent, claims: SessionClaims = Depends(require_admin)) -> PageOut:
    store: PageStore = request.app.state.page_store
    page = store.upsert_by_path(HOMEPAGE_PATH, "Homepage", "homepage", _prepare(body), claims.user_id)
    return PageOut.from_page(page)


@router.delete("/pages/homepage", response_model=MessageResponse)
def delete_homepage(request: Request, claims: SessionClaims = Depends(require_admin)) -> MessageResponse:
    if not request.app.state.page_store.delete_by_path(HOMEPAGE_PATH):
        raise NotFoundError("Homepage not found.")
    return MessageResponse(message="Homepage deleted successfully.")


# ---------------------------------------------------------------------------
# Navbar
# ---------------------------------------------------------------------------


@router.get("/pages/navbar", response_model=PageOut)
def get_navbar(request: Request) -> PageOut:
    page = _active_page(request.app.state.page_store, NAVBAR_PATH)
    if page is None:
        return PageOut(name="Navbar", path=NAVBAR_PATH, kind="navbar", content=default_navbar().model_dump(mode="json"))
    return PageOut.from_page(page)


@limiter.limit(GENERAL_LIMIT)
@router.put("/pages/navbar", response_model=PageOut)
def save_navbar(request: Request, body: NavbarContent, claims: SessionClaims = Depends(require_admin)) -> PageOut:
    if not body.sections:
        raise ValidationError("Navbar must have at least one section.")
    store: PageStore = request.app.state.page_store
    page = store.upsert_by_path(NAVBAR_PATH, "Navbar", "navbar", _prepare(body), claims.user_id)
    return PageOut.from_page(page)


@router.delete("/pages/navbar", response_model=MessageResponse)
def reset_navbar(request: Request, claims: SessionClaims = Depends(require_admin)) -> MessageResponse:
    request.app.state.page_store.delete_by_path(NAVBAR_PATH)
    return MessageResponse(message="Navbar configuration reset to default.")


# ---------------------------------------------------------------------------
# Legal pages
# ---------------------------------------------------------------------------


@router.get("/pages/legal", response_model=list[PageOut])
def list_legal_pages(request: Request) -> list[PageOut]:
    store: PageStore = request.app.state.page_store
    pages, _ = store.list_pages(is_active=True, kind="legal", path_prefix="legal/", limit=len(LEGAL_TYPES))
    return [PageOut.from_page(p) for p in sorted(pages, key=lambda p: p.path)]


@router.get("/pages/legal/types", response_model=list[LegalTypeOut])
def legal_page_types() -> list[LegalTypeOut]:
    return LegalTypeOut.all()


@router.get("/pages/legal/{legal_type}", response_model=PageOut)
def get_legal_page(request: Request, legal_type: str) -> PageOut:
    _check_legal_type(legal_type)
    page = _active_page(request.app.state.page_store, legal_path(legal_type))
    if page is None:
        raise NotFoundError(f"{LEGAL_TYPES[legal_type]} not found.")
    return PageOut.from_page(page)


@limiter.limit(GENERAL_LIMIT)
@router.put("/pages/legal/{legal_type}", response_model=PageOut)
def save_legal_page(
    request: Request,
    legal_type: str,
    body: LegalBody,
    claims: SessionClaims = Depends(require_admin),
) -> PageOut:
    _check_legal_type(legal_type)
    title = body.title or LEGAL_TYPES[legal_type]
    content = LegalContent(title=title, body=body.body)
    store: PageStore = request.app.state.page_store
    page = store.upsert_by_path(legal_path(legal_type), title, "legal", _prepare(content), claims.user_id)
    return PageOut.from_page(page)


@router.delete("/pages/legal/{legal_type}", response_model=MessageResponse)
def delete_legal_page(
    request: Request,
    legal_type: str,
    claims: SessionClaims = Depends(require_admin),
) -> MessageResponse:
    _check_legal_type(legal_type)
    if not request.app.state.page_store.delete_by_path(legal_path(legal_type)):
        raise NotFoundError(f"{LEGAL_TYPES[legal_type]} not found.")
    return MessageResponse(message=f"{LEGAL_TYPES[legal_type]} deleted successfully.")


# ---------------------------------------------------------------------------
# Generic pages (admin)
# ---------------------------------------------------------------------------


@router.get("/pages", response_model=PageListResponse)
def list_pages(
    request: Request,
    is_active: Optional[bool] = None,
    kind: Optional[str] = Query(default=None, pattern="^(homepage|navbar|legal|generic)$"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    claims: SessionClaims = Depends(require_admin),
) -> PageListResponse:
    store: PageStore = request.app.state.page_store
    rows, total = store.list_pages(is_active=is_active, kind=kind, page=page, limit=limit)
    return PageListResponse(pages=[PageOut.from_page(p) for p in rows], pagination=Pagination.build(page, limit, total))


@router.get("/pages/{identifier}", response_model=PageOut)
def get_page(request: Request, identifier: str, claims: SessionClaims = Depends(require_admin)) -> PageOut:
    page = request.app.state.page_store.get_by_identifier(identifier)
    if page is None:
        raise NotFoundError("Page not found.")
    return PageOut.from_page(page)


@limiter.limit(GENERAL_LIMIT)
@router.post("/pages", response_model=PageOut, status_code=201)
def create_page(request: Request, body: PageCreate, claims: SessionClaims = Depends(require_admin)) -> PageOut:
    store: PageStore = request.app.state.page_store
    page = store.create(body.name, body.path, body.content.kind, _prepare(body.content), claims.user_id)
    return PageOut.from_page(page)


@limiter.limit(GENERAL_LIMIT)
@router.put("/pages/{page_id}", response_model=PageOut)
def update_page(
    request: Request,
    page_id: int,
    body: PageUpdate,
    claims: SessionClaims = Depends(require_admin),
) -> PageOut:
    store: PageStore = request.app.state.page_store
    content = _prepare(body.content) if body.content is not None else None
    kind = body.content.kind if body.content is not None else None
    page = store.update(page_id, claims.user_id, name=body.name, content=content, kind=kind, is_active=body.is_active)
    if page is None:
        raise NotFoundError("Page not found.")
    return PageOut.from_page(page)


@router.delete("/pages/{page_id}", response_model=MessageResponse)
def delete_page(request: Request, page_id: int, claims: SessionClaims = Depends(require_admin)) -> MessageResponse:
    if not request.app.state.page_store.delete(page_id):
        raise NotFoundError("Page not found.")
    return MessageResponse(message="Page deleted successfully.")
