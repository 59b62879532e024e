"""
commerce/shopify.py -- Read-only Shopify Admin REST lookups.

The only outbound Shopify call this service makes is a product lookup to find
an image URL for new cart lines. Every failure (not configured, network
error, non-2xx, unexpected JSON) returns None and is logged; a missing image
never blocks adding to the cart.
"""

import logging
import re
from typing import TYPE_CHECKING, Any, Optional

import requests

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("storefront.shopify")

_TRAILING_DIGITS = re.compile(r"(\d+)$")

# Module-level session shared across lookups for connection pooling.
# max_redirects=3 replaces the requests default of 30. The Admin API does not
# redirect in normal operation.
_session = requests.Session()
_session.max_redirects = 3


def numeric_product_id(product_id: str) -> Optional[str]:
    """Return the numeric id from "123" or "gid://shopify/Product/123", else None."""
    match = _TRAILING_DIGITS.search(str(product_id or "").strip())
    return match.group(1) if match else None


class ShopifyClient:
    def __init__(self, store_url: str, access_token: str, api_version: str = "2023-07", timeout: int = 10) -> None:
        store = (store_url or "").strip().rstrip("/")
        for prefix in ("https://", "http://"):
            if store.startswith(prefix):
                store = store[len(prefix) :]
        self.store = store
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ShopifyClient":
        return cls(settings.shopify_store_url, settings.shopify_access_token, settings.shopify_api_version)

    @property
    def configured(self) -> bool:
        return bool(self.store and self.access_token)

    @property
    def base_url(self) -> str:
        return f"https://{self.store}/admin/api/{self.api_version}"

    def get_product(self, product_id: str) -> Optional[dict[str, Any]]:
        """Fetch a product record from the Admin REST API, or None."""
        if not self.configured:
            return None
        numeric_id = numeric_product_id(product_id)
        if numeric_id is None:
            logger.warning("Cannot derive a numeric Shopify product id from %r", product_id)
            return None
        try:
            resp = _session.get(
                f"{self.base_url}/products/{numeric_id}.json",
                headers={"X-Shopify-Access-Token": self.access_token, "Accept": "application/json"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Shopify product fetch failed for %s: %s", numeric_id, e)
            return None
        return data.get("product") if isinstance(data, dict) else None

    def fetch_product_image(self, product_id: str) -> Optional[str]:
        """Return the first image URL of the product, or None."""
        product = self.get_product(product_id)
        if not isinstance(product, dict):
            return None
        images = product.get("images") or []
        if images and isinstance(images[0], dict):
            return images[0].get("src")
        image = product.get("image")
        if isinstance(image, dict):
            return image.get("src")
        return None
