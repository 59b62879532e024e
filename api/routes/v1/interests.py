"""
api/routes/v1/interests.py -- "Notify me" email sign-ups.

Routes:
  POST   /api/v1/interests          -- register an email (public, rate-limited)
  GET    /api/v1/interests          -- list, search by email (admin)
  DELETE /api/v1/interests/{id}     -- (admin)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.limiter import GENERAL_LIMIT, limiter
from api.models import InterestCreate, InterestListResponse, InterestOut, MessageResponse, Pagination
from auth.dependencies import require_admin
from auth.models import SessionClaims
from core.errors import NotFoundError

router = APIRouter()


@limiter.limit(GENERAL_LIMIT)
@router.post("/interests", response_model=InterestOut, status_code=201)
def register_interest(request: Request, body: InterestCreate) -> InterestOut:
    return InterestOut.from_interest(request.app.state.interest_store.create(body.email))


@router.get("/interests", response_model=InterestListResponse)
def list_interests(
    request: Request,
    search: Optional[str] = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    claims: SessionClaims = Depends(require_admin),
) -> InterestListResponse:
    rows, total = request.app.state.interest_store.list_interests(search=search, page=page, limit=limit)
    return InterestListResponse(
        interests=[InterestOut.from_interest(i) for i in rows], pagination=Pagination.build(page, limit, total)
    )


@router.delete("/interests/{interest_id}", response_model=MessageResponse)
def delete_interest(
    request: Request,
    interest_id: int,
    claims: SessionClaims = Depends(require_admin),
) -> MessageResponse:
    if not request.app.state.interest_store.delete(interest_id):
        raise NotFoundError("Interest not found.")
    return MessageResponse(message="Interest deleted successfully.")
