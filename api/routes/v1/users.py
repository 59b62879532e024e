"""
api/routes/v1/users.py -- Account management endpoints.

Routes:
  GET    /api/v1/users                  -- list users (super_admin)
  GET    /api/v1/users/stats/overview   -- counts per role, recent signups (super_admin)
  GET    /api/v1/users/{id}             -- view account (self or super_admin)
  PUT    /api/v1/users/{id}             -- edit name/phone/email/address (self or super_admin)
  GET    /api/v1/users/{id}/address     -- (self or super_admin)
  PUT    /api/v1/users/{id}/address     -- (self or super_admin)
  DELETE /api/v1/users/{id}/address     -- (self or super_admin)
  PATCH  /api/v1/users/{id}/role        -- change role (super_admin)
  DELETE /api/v1/users/{id}             -- delete account (super_admin)

Guards:
  A super admin cannot demote or delete themselves (400), and cannot change
  the role of, or delete, another super admin (403).
  /stats/overview is declared before /{id} so the literal path wins.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.limiter import GENERAL_LIMIT, limiter
from api.models import (
    AddressModel,
    MessageResponse,
    Pagination,
    RoleUpdateRequest,
    UserListResponse,
    UserOut,
    UserStatsResponse,
    UserUpdateRequest,
)
from auth.dependencies import authorize, require_super_admin, require_user
from auth.models import Role, SessionClaims, User
from auth.store import UserStore
from core.errors import ForbiddenError, NotFoundError, ValidationError

router = APIRouter()

_RECENT_SIGNUP_DAYS = 30


def _load_owned_user(request: Request, claims: SessionClaims, user_id: int) -> User:
    """Return the target account if the caller is its owner or a super admin."""
    if claims.user_id != user_id:
        authorize(claims, Role.SUPER_ADMIN)
    store: UserStore = request.app.state.user_store
    user = store.get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return user


# ---------------------------------------------------------------------------
# Super-admin listings
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
def list_users(
    request: Request,
    role: Optional[Role] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    claims: SessionClaims = Depends(require_super_admin),
) -> UserListResponse:
    store: UserStore = request.app.state.user_store
    users, total = store.list_users(role=role, search=search, page=page, limit=limit)
    return UserListResponse(
        users=[UserOut.from_user(u) for u in users],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/users/stats/overview", response_model=UserStatsResponse)
def user_stats(request: Request, claims: SessionClaims = Depends(require_super_admin)) -> UserStatsResponse:
    """Total accounts, per-role counts and percentages, and signups in the last 30 days."""
    store: UserStore = request.app.state.user_store
    total = store.count_users()
    by_role = {role.value: store.count_users(role=role) for role in Role}
    since = datetime.now(timezone.utc) - timedelta(days=_RECENT_SIGNUP_DAYS)
    percentages = {
        role: (round(count / total * 100, 1) if total else 0.0) for role, count in by_role.items()
    }
    return UserStatsResponse(
        total_users=total,
        by_role=by_role,
        recent_signups=store.count_users(since=since),
        percentages=percentages,
    )


# ---------------------------------------------------------------------------
# Self-or-super-admin endpoints
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}", response_model=UserOut)
def get_user(request: Request, user_id: int, claims: SessionClaims = Depends(require_user)) -> UserOut:
    return UserOut.from_user(_load_owned_user(request, claims, user_id))


@limiter.limit(GENERAL_LIMIT)
@router.put("/users/{user_id}", response_model=UserOut)
def update_user(
    request: Request,
    user_id: int,
    body: UserUpdateRequest,
    claims: SessionClaims = Depends(require_user),
) -> UserOut:
    """Edit profile fields. A changed email must not belong to another account."""
    _load_owned_user(request, claims, user_id)
    store: UserStore = request.app.state.user_store
    fields = body.model_dump(exclude_unset=True, exclude={"address"})
    user = store.update_user(user_id, **fields)
    if body.address is not None:
        user = store.set_address(user_id, body.address.to_domain())
    return UserOut.from_user(user)


@router.get("/users/{user_id}/address", response_model=Optional[AddressModel])
def get_address(request: Request, user_id: int, claims: SessionClaims = Depends(require_user)):
    user = _load_owned_user(request, claims, user_id)
    return AddressModel(**user.address.to_dict()) if user.address else None


@limiter.limit(GENERAL_LIMIT)
@router.put("/users/{user_id}/address", response_model=UserOut)
def set_address(
    request: Request,
    user_id: int,
    body: AddressModel,
    claims: SessionClaims = Depends(require_user),
) -> UserOut:
    _load_owned_user(request, claims, user_id)
    store: UserStore = request.app.state.user_store
    return UserOut.from_user(store.set_address(user_id, body.to_domain()))


@router.delete("/users/{user_id}/address", response_model=UserOut)
def delete_address(request: Request, user_id: int, claims: SessionClaims = Depends(require_user)) -> UserOut:
    _load_owned_user(request, claims, user_id)
    store: UserStore = request.app.state.user_store
    return UserOut.from_user(store.clear_address(user_id))


# ---------------------------------------------------------------------------
# Super-admin mutations
# ---------------------------------------------------------------------------


@router.patch("/users/{user_id}/role", response_model=UserOut)
def change_role(
    request: Request,
    user_id: int,
    body: RoleUpdateRequest,
    claims: SessionClaims = Depends(require_super_admin),
) -> UserOut:
    """Change an account's role. Takes effect on the account's next session."""
    store: UserStore = request.app.state.user_store
    target = store.get_by_id(user_id)
    if target is None:
        raise NotFoundError("User not found.")
    if target.id == claims.user_id and body.role != Role.SUPER_ADMIN:
        raise ValidationError("You cannot demote yourself.", code="self_demotion")
    if target.role == Role.SUPER_ADMIN and target.id != claims.user_id:
        raise ForbiddenError("Cannot change the role of another super admin.")
    return UserOut.from_user(store.update_user(user_id, role=body.role))


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    request: Request,
    user_id: int,
    claims: SessionClaims = Depends(require_super_admin),
) -> MessageResponse:
    store: UserStore = request.app.state.user_store
    target = store.get_by_id(user_id)
    if target is None:
        raise NotFoundError("User not found.")
    if target.id == claims.user_id:
        raise ValidationError("You cannot delete your own account.", code="self_delete")
    if target.role == Role.SUPER_ADMIN:
        raise ForbiddenError("Cannot delete another super admin.")
    store.delete_user(user_id)
    return MessageResponse(message="User deleted successfully.")
