"""
webhooks/signature.py -- Shopify webhook authentication.

Shopify signs every webhook body with the app's shared secret:

    X-Shopify-Hmac-Sha256: base64(HMAC-SHA256(secret, raw_body))

The digest must be computed over the raw request bytes exactly as received.
Re-serializing parsed JSON changes whitespace and key order and breaks the
comparison.
"""

from __future__ import annotations

import base64
import hashlib
import hmac


def compute_signature(raw_body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def validate(signature_header: str | None, raw_body: bytes, secret: str) -> bool:
    """Return True only if signature_header is the correct signature of raw_body.

    Fails closed: a missing header, an empty secret, or any mismatch is False.
    The comparison is constant-time.
    """
    if not signature_header or not secret:
        return False
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected.encode("ascii"), signature_header.strip().encode("utf-8"))


def normalize_shop_domain(value: str) -> str:
    """Reduce a store URL or domain header to a bare lowercase host name."""
    value = (value or "").strip().lower()
    for prefix in ("https://", "http://"):
        if value.startswith(prefix):
            value = value[len(prefix) :]
    return value.split("/", 1)[0]


def shop_domain_matches(header_value: str | None, store_url: str) -> bool:
    """Check X-Shopify-Shop-Domain against the configured store.

    Only enforced when both sides are present.
    """
    if not header_value or not store_url:
        return True
    return normalize_shop_domain(header_value) == normalize_shop_domain(store_url)
