"""
api/routes/v1/webhooks.py -- Shopify webhook receiver and event log.

Routes:
  POST /api/v1/shopify/webhook/{slug}     -- slug is one of webhooks.models.TOPICS
  GET  /api/v1/shopify/webhook-events     -- recorded events, filter topic (admin)

Validation order for a delivery:
  1. Unknown slug                         -> 404
  2. X-Shopify-Hmac-Sha256 over raw body  -> 401 on any failure
  3. X-Shopify-Shop-Domain vs store URL   -> 401 on mismatch
  4. X-Shopify-Topic present              -> 400 if missing

After validation the endpoint always answers 200. Shopify retries any non-2xx
delivery, so recording failures are logged here rather than surfaced.

The receiver is async so it can read the raw body before anything parses it;
the blocking store call runs in the threadpool. No rate limit: Shopify
delivers in bursts from a small set of addresses.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from starlette.concurrency import run_in_threadpool

from api.models import Pagination, WebhookAck, WebhookEventListResponse, WebhookEventOut
from auth.dependencies import require_admin
from auth.models import SessionClaims
from core.errors import NotFoundError, UnauthenticatedError, ValidationError
from webhooks.models import TOPICS, WebhookEvent, resource_id_of
from webhooks.signature import shop_domain_matches, validate
from webhooks.store import WebhookEventStore

logger = logging.getLogger("storefront.webhooks")

router = APIRouter()


@router.post("/shopify/webhook/{slug}", response_model=WebhookAck)
async def receive_webhook(request: Request, slug: str) -> WebhookAck:
    if slug not in TOPICS:
        raise NotFoundError(f"Unknown webhook: {slug}.")

    settings = request.app.state.settings
    raw_body = await request.body()
    if not validate(request.headers.get("X-Shopify-Hmac-Sha256"), raw_body, settings.shopify_webhook_secret):
        logger.warning("Rejected %s webhook: bad signature", slug)
        raise UnauthenticatedError("Invalid webhook signature.", code="invalid_signature")

    shop_domain = request.headers.get("X-Shopify-Shop-Domain")
    if not shop_domain_matches(shop_domain, settings.shopify_store_url):
        logger.warning("Rejected %s webhook from unexpected shop %s", slug, shop_domain)
        raise UnauthenticatedError("Invalid shop domain.", code="invalid_shop_domain")

    topic = request.headers.get("X-Shopify-Topic")
    if not topic:
        raise ValidationError("Missing webhook topic.", code="missing_topic")
    if topic != TOPICS[slug]:
        logger.warning("Webhook %s delivered with topic %s", slug, topic)

    try:
        payload = json.loads(raw_body) if raw_body else {}
    except ValueError:
        logger.warning("Webhook %s body is not valid JSON; recording without payload", slug)
        payload = {}

    event = WebhookEvent(
        topic=topic,
        shop_domain=shop_domain,
        webhook_id=request.headers.get("X-Shopify-Webhook-Id"),
        resource_id=resource_id_of(payload),
        payload=payload,
    )
    store: WebhookEventStore = request.app.state.webhook_store
    try:
        stored, created = await run_in_threadpool(store.record, event)
    except Exception:
        logger.exception("Failed to record %s webhook %s", topic, event.webhook_id)
        return WebhookAck()

    if not created:
        logger.info("Duplicate %s webhook %s acknowledged", topic, event.webhook_id)
        return WebhookAck(duplicate=True)
    logger.info("Recorded %s webhook (event %s, resource %s)", topic, stored.id, stored.resource_id)
    return WebhookAck()


@router.get("/shopify/webhook-events", response_model=WebhookEventListResponse)
def list_webhook_events(
    request: Request,
    topic: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    claims: SessionClaims = Depends(require_admin),
) -> WebhookEventListResponse:
    store: WebhookEventStore = request.app.state.webhook_store
    events, total = store.list_events(topic=topic, page=page, limit=limit)
    return WebhookEventListResponse(
        events=[WebhookEventOut.from_event(e) for e in events],
        pagination=Pagination.build(page, limit, total),
    )
