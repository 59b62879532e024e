"""commerce/ -- Carts, product reviews and the read-only Shopify product lookup.

Layer rule: imports only from core/.
"""
