"""
api/routes/v1/testimonials.py -- Customer testimonial endpoints.

Public reads, admin writes. Stars range 0..5.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.limiter import GENERAL_LIMIT, limiter
from api.models import (
    MessageResponse,
    Pagination,
    PublishRequest,
    TestimonialCreate,
    TestimonialListResponse,
    TestimonialOut,
    TestimonialUpdate,
)
from auth.dependencies import require_admin
from auth.models import SessionClaims
from core.errors import NotFoundError

router = APIRouter()


def _page(rows, total: int, page: int, limit: int) -> TestimonialListResponse:
    return TestimonialListResponse(
        testimonials=[TestimonialOut.from_testimonial(t) for t in rows],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/testimonials", response_model=TestimonialListResponse)
def list_testimonials(
    request: Request,
    published: Optional[bool] = None,
    stars: Optional[int] = Query(default=None, ge=0, le=5, description="Minimum stars"),
    search: Optional[str] = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> TestimonialListResponse:
    store = request.app.state.testimonial_store
    rows, total = store.list_testimonials(published=published, min_stars=stars, search=search, page=page, limit=limit)
    return _page(rows, total, page, limit)


@router.get("/testimonials/published", response_model=TestimonialListResponse)
def published_testimonials(
    request: Request,
    stars: Optional[int] = Query(default=None, ge=0, le=5),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=6, ge=1, le=100),
) -> TestimonialListResponse:
    store = request.app.state.testimonial_store
    rows, total = store.list_testimonials(published=True, min_stars=stars, page=page, limit=limit)
    return _page(rows, total, page, limit)


@router.get("/testimonials/{testimonial_id}", response_model=TestimonialOut)
def get_testimonial(request: Request, testimonial_id: int) -> TestimonialOut:
    testimonial = request.app.state.testimonial_store.get(testimonial_id)
    if testimonial is None:
        raise NotFoundError("Testimonial not found.")
    return TestimonialOut.from_testimonial(testimonial)


@limiter.limit(GENERAL_LIMIT)
@router.post("/testimonials", response_model=TestimonialOut, status_code=201)
def create_testimonial(
    request: Request, body: TestimonialCreate, claims: SessionClaims = Depends(require_admin)
) -> TestimonialOut:
    return TestimonialOut.from_testimonial(request.app.state.testimonial_store.create(body.to_domain()))


@limiter.limit(GENERAL_LIMIT)
@router.put("/testimonials/{testimonial_id}", response_model=TestimonialOut)
def update_testimonial(
    request: Request,
    testimonial_id: int,
    body: TestimonialUpdate,
    claims: SessionClaims = Depends(require_admin),
) -> TestimonialOut:
    store = request.app.state.testimonial_store
    if store.get(testimonial_id) is None:
        raise NotFoundError("Testimonial not found.")
    return TestimonialOut.from_testimonial(store.update(testimonial_id, **body.model_dump(exclude_unset=True)))


@router.patch("/testimonials/{testimonial_id}/publish", response_model=TestimonialOut)
def publish_testimonial(
    request: Request,
    testimonial_id: int,
    body: PublishRequest,
    claims: SessionClaims = Depends(require_admin),
) -> TestimonialOut:
    store = request.app.state.testimonial_store
    if store.get(testimonial_id) is None:
        raise NotFoundError("Testimonial not found.")
    return TestimonialOut.from_testimonial(store.set_published(testimonial_id, body.published))


@router.delete("/testimonials/{testimonial_id}", response_model=MessageResponse)
def delete_testimonial(
    request: Request, testimonial_id: int, claims: SessionClaims = Depends(require_admin)
) -> MessageResponse:
    if not request.app.state.testimonial_store.delete(testimonial_id):
        raise NotFoundError("Testimonial not found.")
    return MessageResponse(message="Testimonial deleted successfully.")
