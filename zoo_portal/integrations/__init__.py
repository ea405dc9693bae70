"""
External service integrations.

The catalog client wakes a cold-starting host by polling its health endpoint
and then fetches the animal catalog, each phase under its own tenacity retry
policy.
"""

from zoo_portal.integrations.catalog_client import CatalogState, ResilientCatalogClient
from zoo_portal.integrations.exceptions import CatalogUnavailableError, IntegrationError
from zoo_portal.integrations.retry import RetryAttempt, RetryPolicy

__all__ = [
    'CatalogState',
    'ResilientCatalogClient',
    'CatalogUnavailableError',
    'IntegrationError',
    'RetryAttempt',
    'RetryPolicy',
]
