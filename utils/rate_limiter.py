"""
Rate limiting for the allocation API
"""
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

import config

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[config.RATE_LIMIT_DEFAULT],
    storage_uri=config.RATE_LIMIT_STORAGE,
    strategy="fixed-window",
    enabled=config.RATE_LIMIT_ENABLED,
)

# Applied to every endpoint that mutates allocations
MUTATION_LIMIT = config.RATE_LIMIT_MUTATIONS


def setup_rate_limiting(app):
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    return limiter
