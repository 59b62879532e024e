"""webhooks/ -- Shopify webhook signature checks and the received-event log.

Layer rule: imports only from core/.
"""
