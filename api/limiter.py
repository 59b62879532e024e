"""
api/limiter.py -- Shared slowapi rate limiter instance and per-route limits.

Import this in api/main.py (to mount as middleware) and in every router that
applies per-route limits with @limiter.limit().

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

create_app() sets limiter.enabled from Settings.rate_limit_enabled, so tests
and trusted internal deployments can switch limiting off.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Per-client-address limits. Keep auth limits tight: each login or register
# runs bcrypt, and each OTP request sends an email.
AUTH_LIMIT = "5/15minutes"
OTP_LIMIT = "3/10minutes"
PASSWORD_RESET_LIMIT = "3/hour"
GENERAL_LIMIT = "100/15minutes"
