"""
api/routes/v1/inquiries.py -- Contact form submissions and their triage.

Routes:
  POST   /api/v1/inquiries                    -- submit (public, rate-limited)
  GET    /api/v1/inquiries                    -- list, filter resolved / search (admin)
  GET    /api/v1/inquiries/stats              -- totals, last 7 days, resolution rate (admin)
  GET    /api/v1/inquiries/{id}               -- (admin)
  PATCH  /api/v1/inquiries/{id}/resolve       -- record resolver and message (admin)
  PATCH  /api/v1/inquiries/{id}/unresolve     -- clear resolution (admin)
  DELETE /api/v1/inquiries/{id}               -- (admin)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.limiter import GENERAL_LIMIT, limiter
from api.models import (
    InquiryCreate,
    InquiryListResponse,
    InquiryOut,
    InquiryStatsResponse,
    MessageResponse,
    Pagination,
    ResolveRequest,
)
from auth.dependencies import require_admin
from auth.models import SessionClaims
from content.models import Inquiry
from core.errors import NotFoundError

router = APIRouter()

_RECENT_DAYS = 7


def _to_out(request: Request, inquiries: list[Inquiry]) -> list[InquiryOut]:
    resolvers = request.app.state.user_store.get_many(i.resolved_by for i in inquiries)
    return [InquiryOut.from_inquiry(i, resolvers.get(i.resolved_by)) for i in inquiries]


@limiter.limit(GENERAL_LIMIT)
@router.post("/inquiries", response_model=InquiryOut, status_code=201)
def submit_inquiry(request: Request, body: InquiryCreate) -> InquiryOut:
    inquiry = request.app.state.inquiry_store.create(body.to_domain())
    return InquiryOut.from_inquiry(inquiry)


@router.get("/inquiries", response_model=InquiryListResponse)
def list_inquiries(
    request: Request,
    resolved: Optional[bool] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    claims: SessionClaims = Depends(require_admin),
) -> InquiryListResponse:
    rows, total = request.app.state.inquiry_store.list_inquiries(
        resolved=resolved, search=search, page=page, limit=limit
    )
    return InquiryListResponse(inquiries=_to_out(request, rows), pagination=Pagination.build(page, limit, total))


@router.get("/inquiries/stats", response_model=InquiryStatsResponse)
def inquiry_stats(request: Request, claims: SessionClaims = Depends(require_admin)) -> InquiryStatsResponse:
    since = datetime.now(timezone.utc) - timedelta(days=_RECENT_DAYS)
    return InquiryStatsResponse(**request.app.state.inquiry_store.stats(since))


@router.get("/inquiries/{inquiry_id}", response_model=InquiryOut)
def get_inquiry(request: Request, inquiry_id: int, claims: SessionClaims = Depends(require_admin)) -> InquiryOut:
    inquiry = request.app.state.inquiry_store.get(inquiry_id)
    if inquiry is None:
        raise NotFoundError("Inquiry not found.")
    return _to_out(request, [inquiry])[0]


@router.patch("/inquiries/{inquiry_id}/resolve", response_model=InquiryOut)
def resolve_inquiry(
    request: Request,
    inquiry_id: int,
    body: ResolveRequest,
    claims: SessionClaims = Depends(require_admin),
) -> InquiryOut:
    inquiry = request.app.state.inquiry_store.resolve(inquiry_id, claims.user_id, body.resolving_message)
    return _to_out(request, [inquiry])[0]


@router.patch("/inquiries/{inquiry_id}/unresolve", response_model=InquiryOut)
def unresolve_inquiry(request: Request, inquiry_id: int, claims: SessionClaims = Depends(require_admin)) -> InquiryOut:
    return InquiryOut.from_inquiry(request.app.state.inquiry_store.unresolve(inquiry_id))


@router.delete("/inquiries/{inquiry_id}", response_model=MessageResponse)
def delete_inquiry(
    request: Request,
    inquiry_id: int,
    claims: SessionClaims = Depends(require_admin),
) -> MessageResponse:
    if not request.app.state.inquiry_store.delete(inquiry_id):
        raise NotFoundError("Inquiry not found.")
    return MessageResponse(message="Inquiry deleted successfully.")
