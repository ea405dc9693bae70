"""
Request guards: session-bound CSRF tokens and moving-window rate limiting.
"""

from zoo_portal.auth.csrf import CSRFGuard, FlaskSessionStorage, InMemorySessionStorage
from zoo_portal.auth.rate_limiting import RateLimiter, RateLimiterRegistry

__all__ = [
    'CSRFGuard',
    'FlaskSessionStorage',
    'InMemorySessionStorage',
    'RateLimiter',
    'RateLimiterRegistry',
]
