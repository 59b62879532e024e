"""
webhooks/models.py -- Domain dataclass for received Shopify webhooks.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Route slug -> the X-Shopify-Topic value Shopify sends for it.
TOPICS = {
    "order-created": "orders/create",
    "order-updated": "orders/updated",
    "product-updated": "products/update",
    "inventory-updated": "inventory_levels/update",
}


@dataclass
class WebhookEvent:
    """One accepted webhook delivery.

    webhook_id is Shopify's X-Shopify-Webhook-Id. Shopify retries deliveries
    it believes failed, so the same id can arrive more than once; the store
    records it only the first time.
    """

    topic: str
    shop_domain: str | None = None
    webhook_id: str | None = None
    resource_id: str | None = None
    payload: dict = field(default_factory=dict)
    id: int | None = None
    received_at: str | None = None


def resource_id_of(payload) -> str | None:
    """Best-effort id of the order, product or inventory item the event is about."""
    if not isinstance(payload, dict):
        return None
    for key in ("id", "inventory_item_id", "admin_graphql_api_id"):
        value = payload.get(key)
        if value is not None:
            return str(value)
    return None
