"""Per-client HTTP throttling using slowapi.

This guards public endpoints (storefront chat) against a single client
flooding them. The shared upstream AI budget is enforced separately by
app.gateway.rate_limiter.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Keyed by remote address
limiter = Limiter(key_func=get_remote_address)
