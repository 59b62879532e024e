"""
api/routes/v1/dashboard.py -- Aggregated store metrics for the admin dashboard.

Returns payloads suitable for driving dashboard widgets:
  - Counts of users, carts, inquiries, reviews and testimonials
  - Total value across all carts, rounded to cents
  - The most recently updated carts as "recent orders"

This is a read-only aggregate route -- no mutations here.
"""

from fastapi import APIRouter, Depends, Query, Request

from api.models import DashboardStatsResponse, RecentOrder, RecentOrdersResponse
from auth.dependencies import require_admin
from commerce.store import CartStore

# Router-level dependency enforces admin; the handlers do not repeat it.
router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/dashboard/stats", response_model=DashboardStatsResponse)
def dashboard_stats(request: Request) -> DashboardStatsResponse:
    state = request.app.state
    return DashboardStatsResponse(
        users=state.user_store.count_users(),
        carts=state.cart_store.count(),
        inquiries=state.inquiry_store.count(),
        reviews=state.review_store.count(),
        testimonials=state.testimonial_store.count(),
        total_sales=round(state.cart_store.total_sales(), 2),
    )


@router.get("/dashboard/recent-orders", response_model=RecentOrdersResponse)
def recent_orders(request: Request, limit: int = Query(default=10, ge=1, le=50)) -> RecentOrdersResponse:
    """Latest carts with their customer. Deleted accounts show as "Unknown"."""
    carts: CartStore = request.app.state.cart_store
    rows = carts.recent(limit)
    customers = request.app.state.user_store.get_many(c.user_id for c in rows)

    orders = []
    for cart in rows:
        customer = customers.get(cart.user_id)
        orders.append(
            RecentOrder(
                id=cart.id,
                customer_name=customer.name if customer else "Unknown",
                customer_email=customer.email if customer else "",
                amount=f"${cart.total_price:.2f}",
                items=cart.item_count,
                date=cart.updated_at,
            )
        )
    return RecentOrdersResponse(orders=orders)
