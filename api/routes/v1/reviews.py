"""
api/routes/v1/reviews.py -- Product review endpoints.

Routes:
  GET    /api/v1/reviews/product/{product_id}/distribution  -- rating histogram (public)
  GET    /api/v1/reviews/product/{product_id}               -- reviews + average (public)
  GET    /api/v1/reviews/user/my-reviews                    -- caller's reviews (auth)
  GET    /api/v1/reviews                                    -- all reviews, filterable (admin)
  POST   /api/v1/reviews                                    -- create (auth)
  GET    /api/v1/reviews/{id}                               -- single review (public)
  PUT    /api/v1/reviews/{id}                               -- edit (author only)
  DELETE /api/v1/reviews/{id}                               -- delete (author or admin)
  PATCH  /api/v1/reviews/{id}/helpful                       -- vote helpful / not helpful (auth)
  PATCH  /api/v1/reviews/{id}/verified-buyer                -- set the badge (admin)

product_id uses the :path converter so Shopify global ids
(gid://shopify/Product/123) work unencoded. The distribution route is
registered first so its suffix is not swallowed by the greedy match.
"""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request

from api.limiter import GENERAL_LIMIT, limiter
from api.models import (
    HelpfulRequest,
    MessageResponse,
    Pagination,
    RatingDistributionResponse,
    ReviewCreate,
    ReviewListResponse,
    ReviewOut,
    ReviewUpdate,
    VerifiedBuyerRequest,
)
from auth.dependencies import authorize, require_admin, require_user
from auth.models import Role, SessionClaims
from commerce.models import Review
from commerce.store import ReviewStore, rating_summary
from core.errors import ForbiddenError, NotFoundError

router = APIRouter()

_SortField = Literal["created_at", "rating", "found_helpful"]
_SortOrder = Literal["asc", "desc"]


def _load_review(request: Request, review_id: int) -> Review:
    review = request.app.state.review_store.get(review_id)
    if review is None:
        raise NotFoundError("Review not found.")
    return review


def _with_authors(request: Request, reviews: list[Review]) -> list[ReviewOut]:
    authors = request.app.state.user_store.get_many(r.user_id for r in reviews)
    return [ReviewOut.from_review(r, authors.get(r.user_id)) for r in reviews]


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@router.get("/reviews/product/{product_id:path}/distribution", response_model=RatingDistributionResponse)
def rating_distribution(request: Request, product_id: str) -> RatingDistributionResponse:
    """Counts for each rating 1..5, with the average and percentages."""
    reviews: ReviewStore = request.app.state.review_store
    summary = rating_summary(reviews.rating_counts(product_id))
    return RatingDistributionResponse(product_id=product_id, **summary)


@router.get("/reviews/product/{product_id:path}", response_model=ReviewListResponse)
def product_reviews(
    request: Request,
    product_id: str,
    rating: Optional[int] = Query(default=None, ge=1, le=5),
    sort_by: _SortField = "created_at",
    sort_order: _SortOrder = "desc",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> ReviewListResponse:
    reviews: ReviewStore = request.app.state.review_store
    rows, total = reviews.list_reviews(
        product_id=product_id, rating=rating, sort_by=sort_by, sort_order=sort_order, page=page, limit=limit
    )
    summary = rating_summary(reviews.rating_counts(product_id))
    return ReviewListResponse(
        reviews=_with_authors(request, rows),
        pagination=Pagination.build(page, limit, total),
        average_rating=summary["average_rating"],
        total_reviews=summary["total_reviews"],
    )


# ---------------------------------------------------------------------------
# Authenticated
# ---------------------------------------------------------------------------


@router.get("/reviews/user/my-reviews", response_model=ReviewListResponse)
def my_reviews(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    claims: SessionClaims = Depends(require_user),
) -> ReviewListResponse:
    reviews: ReviewStore = request.app.state.review_store
    rows, total = reviews.list_reviews(user_id=claims.user_id, page=page, limit=limit)
    return ReviewListResponse(reviews=_with_authors(request, rows), pagination=Pagination.build(page, limit, total))


@router.get("/reviews", response_model=ReviewListResponse)
def all_reviews(
    request: Request,
    rating: Optional[int] = Query(default=None, ge=1, le=5),
    user_id: Optional[int] = None,
    product_id: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    claims: SessionClaims = Depends(require_admin),
) -> ReviewListResponse:
    reviews: ReviewStore = request.app.state.review_store
    rows, total = reviews.list_reviews(
        product_id=product_id, user_id=user_id, rating=rating, page=page, limit=limit
    )
    return ReviewListResponse(reviews=_with_authors(request, rows), pagination=Pagination.build(page, limit, total))


@limiter.limit(GENERAL_LIMIT)
@router.post("/reviews", response_model=ReviewOut, status_code=201)
def create_review(request: Request, body: ReviewCreate, claims: SessionClaims = Depends(require_user)) -> ReviewOut:
    """Create a review. 409 if the caller already reviewed this product."""
    author = request.app.state.user_store.get_by_id(claims.user_id)
    if author is None:
        raise NotFoundError("User not found.")
    reviews: ReviewStore = request.app.state.review_store
    review = reviews.create(
        Review(
            user_id=claims.user_id,
            product_id=body.product_id,
            rating=body.rating,
            comment=body.comment,
            image_urls=body.image_urls,
            verified_buyer=author.verified,
        )
    )
    return ReviewOut.from_review(review, author)


@router.get("/reviews/{review_id}", response_model=ReviewOut)
def get_review(request: Request, review_id: int) -> ReviewOut:
    return _with_authors(request, [_load_review(request, review_id)])[0]


@limiter.limit(GENERAL_LIMIT)
@router.put("/reviews/{review_id}", response_model=ReviewOut)
def update_review(
    request: Request,
    review_id: int,
    body: ReviewUpdate,
    claims: SessionClaims = Depends(require_user),
) -> ReviewOut:
    review = _load_review(request, review_id)
    if review.user_id != claims.user_id:
        raise ForbiddenError("You can only update your own reviews.")
    reviews: ReviewStore = request.app.state.review_store
    updated = reviews.update(review_id, **body.model_dump(exclude_unset=True))
    return _with_authors(request, [updated])[0]


@router.delete("/reviews/{review_id}", response_model=MessageResponse)
def delete_review(request: Request, review_id: int, claims: SessionClaims = Depends(require_user)) -> MessageResponse:
    review = _load_review(request, review_id)
    if review.user_id != claims.user_id:
        authorize(claims, Role.ADMIN)
    request.app.state.review_store.delete(review_id)
    return MessageResponse(message="Review deleted successfully.")


@limiter.limit(GENERAL_LIMIT)
@router.patch("/reviews/{review_id}/helpful", response_model=ReviewOut)
def mark_helpful(
    request: Request,
    review_id: int,
    body: HelpfulRequest,
    claims: SessionClaims = Depends(require_user),
) -> ReviewOut:
    _load_review(request, review_id)
    updated = request.app.state.review_store.mark_helpful(review_id, body.helpful)
    return _with_authors(request, [updated])[0]


@router.patch("/reviews/{review_id}/verified-buyer", response_model=ReviewOut)
def set_verified_buyer(
    request: Request,
    review_id: int,
    body: VerifiedBuyerRequest,
    claims: SessionClaims = Depends(require_admin),
) -> ReviewOut:
    _load_review(request, review_id)
    updated = request.app.state.review_store.set_verified_buyer(review_id, body.verified_buyer)
    return _with_authors(request, [updated])[0]
