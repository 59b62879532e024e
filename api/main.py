"""
api/main.py -- FastAPI application factory for the Storefront API.

Run with:  uvicorn asgi:app --reload

create_app() takes a Settings instance plus optional mailer and Shopify client
overrides (tests pass a recording mailer and a fake catalog), and returns a
fully wired app. Nothing here reads the environment.

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan handles startup (engine, stores, OTP ledger, session issuer, mailer,
auth flow, purge task) and shutdown (cancel purge task, dispose engine)
symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.cart import router as cart_router
from api.routes.v1.dashboard import router as dashboard_router
from api.routes.v1.inquiries import router as inquiries_router
from api.routes.v1.interests import router as interests_router
from api.routes.v1.pages import router as pages_router
from api.routes.v1.reviews import router as reviews_router
from api.routes.v1.testimonials import router as testimonials_router
from api.routes.v1.text_banners import router as text_banners_router
from api.routes.v1.users import router as users_router
from api.routes.v1.webhooks import router as webhooks_router
from auth.dependencies import require_admin
from auth.flows import AuthFlow
from auth.otp import OtpLedger
from auth.store import UserStore
from auth.tokens import SessionIssuer
from commerce.shopify import ShopifyClient
from commerce.store import CartStore, ReviewStore
from content.store import InquiryStore, InterestStore, PageStore, TestimonialStore, TextBannerStore
from core.config import Settings
from core.db import create_db_engine
from core.errors import AppError
from notify.mailer import Mailer, build_mailer
from webhooks.store import WebhookEventStore

API_VERSION = "1.0.0"

logger = logging.getLogger("storefront.api")


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(ledger: OtpLedger, interval_seconds: int) -> None:
    """Delete expired passcodes every interval_seconds.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and ends the loop. A failed sweep is logged and retried on
    the next tick.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(ledger.purge_expired)
        except SQLAlchemyError:
            logger.exception("Passcode purge failed")


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Map the application error taxonomy onto the shared envelope."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the request body, path or query params fail validation."""
    return _error_response(400, "validation_error", "Request validation failed.", str(exc.errors()))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unmatched routes and disallowed methods arrive here from Starlette."""
    response = _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings,
    mailer: Optional[Mailer] = None,
    shopify: Optional[ShopifyClient] = None,
) -> FastAPI:
    """Build the Storefront API for settings.

    mailer and shopify replace the clients that would otherwise be built from
    settings.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Startup
        logger.info("Storefront API starting up")
        engine = create_db_engine(settings.database_url)
        app.state.engine = engine
        app.state.user_store = UserStore(engine, bcrypt_rounds=settings.bcrypt_rounds)
        app.state.otp_ledger = OtpLedger(engine, ttl_seconds=settings.otp_ttl_seconds)
        app.state.cart_store = CartStore(engine)
        app.state.review_store = ReviewStore(engine)
        app.state.testimonial_store = TestimonialStore(engine)
        app.state.inquiry_store = InquiryStore(engine)
        app.state.interest_store = InterestStore(engine)
        app.state.text_banner_store = TextBannerStore(engine)
        app.state.page_store = PageStore(engine)
        app.state.webhook_store = WebhookEventStore(engine)
        logger.info("Database initialized")

        app.state.sessions = SessionIssuer.from_settings(settings)
        app.state.mailer = mailer if mailer is not None else build_mailer(settings)
        app.state.auth_flow = AuthFlow(
            app.state.user_store, app.state.otp_ledger, app.state.sessions, app.state.mailer
        )
        app.state.shopify = shopify if shopify is not None else ShopifyClient.from_settings(settings)
        if not app.state.shopify.configured:
            logger.warning("Shopify is not configured; cart images will not be looked up")

        app.state.purge_task = asyncio.create_task(
            _purge_loop(app.state.otp_ledger, settings.otp_purge_interval_seconds)
        )

        yield

        # Shutdown
        app.state.purge_task.cancel()
        engine.dispose()
        logger.info("Storefront API shutdown complete")

    app = FastAPI(
        title="Storefront API",
        description="Accounts, carts, reviews and CMS content for a Shopify storefront.",
        version=API_VERSION,
        lifespan=lifespan,
        # Replaced below with admin-only equivalents.
        docs_url=None,
        redoc_url=None,
    )
    app.state.settings = settings

    # -----------------------------------------------------------------------
    # Middleware stack. Register in the order the request should meet them:
    # TrustedHost -> CORS -> SlowAPI.
    # -----------------------------------------------------------------------

    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )
    app.add_middleware(SlowAPIMiddleware)

    # SlowAPI looks for app.state.limiter by convention. The limiter is shared
    # by every app in the process, so the last create_app() call decides.
    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        return response

    # -----------------------------------------------------------------------
    # Exception handlers. All return the same ErrorResponse envelope.
    # -----------------------------------------------------------------------

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------

    app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
    app.include_router(users_router, prefix="/api/v1", tags=["Users"])
    app.include_router(cart_router, prefix="/api/v1", tags=["Cart"])
    app.include_router(reviews_router, prefix="/api/v1", tags=["Reviews"])
    app.include_router(testimonials_router, prefix="/api/v1", tags=["Testimonials"])
    app.include_router(inquiries_router, prefix="/api/v1", tags=["Inquiries"])
    app.include_router(interests_router, prefix="/api/v1", tags=["Interests"])
    app.include_router(text_banners_router, prefix="/api/v1", tags=["Text Banners"])
    app.include_router(pages_router, prefix="/api/v1", tags=["Pages"])
    app.include_router(dashboard_router, prefix="/api/v1", tags=["Dashboard"])
    app.include_router(webhooks_router, prefix="/api/v1", tags=["Shopify Webhooks"])

    @app.get("/docs", include_in_schema=False, dependencies=[Depends(require_admin)])
    async def docs():
        """Swagger UI -- admin only."""
        return get_swagger_ui_html(openapi_url="/openapi.json", title="Storefront API")

    @app.get("/redoc", include_in_schema=False, dependencies=[Depends(require_admin)])
    async def redoc():
        """ReDoc UI -- admin only."""
        return get_redoc_html(openapi_url="/openapi.json", title="Storefront API")

    # No rate limit on health: load balancers and monitors must not be throttled.
    @app.get("/api/v1/health", response_model=HealthResponse, tags=["Health"])
    def health(request: Request) -> HealthResponse:
        """Return liveness, version and per-component status."""
        components = {"app": "ok"}
        try:
            with request.app.state.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            components["database"] = "ok"
        except SQLAlchemyError:
            logger.exception("Health check could not reach the database")
            components["database"] = "unavailable"
        status = "ok" if all(v == "ok" for v in components.values()) else "degraded"
        return HealthResponse(status=status, version=API_VERSION, components=components)

    return app
