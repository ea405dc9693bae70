"""
Application-scoped service container.

Collaborators shared across requests (sanitizer, rate-limiter registry, stores)
live on ``app.extensions['zoo_portal']`` so blueprints can reach them without
importing the application factory.
"""

from dataclasses import dataclass
from typing import Optional

from flask import Flask, current_app

from zoo_portal.auth.rate_limiting import RateLimiterRegistry
from zoo_portal.data.storage import CatalogStore, CollectionStore
from zoo_portal.utils.sanitizers import Sanitizer

EXTENSION_KEY = 'zoo_portal'


@dataclass
class PortalServices:
    sanitizer: Sanitizer
    rate_limiters: RateLimiterRegistry
    collections: CollectionStore
    catalog: CatalogStore
    catalog_load_error: Optional[str] = None


def init_services(app: Flask, services: PortalServices) -> None:
    app.extensions[EXTENSION_KEY] = services


def get_services(app: Optional[Flask] = None) -> PortalServices:
    return (app or current_app).extensions[EXTENSION_KEY]


__all__ = ['PortalServices', 'init_services', 'get_services']
