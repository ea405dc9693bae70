"""
Zoo Portal - Submission-Safety Layer and Catalog Service

Flask application package for the zoo management demo. The package bundles the
input-safety pipeline applied to every visitor-facing form together with a small
catalog service and a resilient client for reaching that service when it sits
behind a cold-starting host.

Package Layout:
- utils: input sanitization, phone and field validation, error taxonomy
- auth: CSRF token guard and per-form rate limiting
- integrations: tenacity retry policy and the resilient catalog HTTP client
- business: domain records, request schemas and the submission controller
- data: collection persistence and the in-memory catalog store
- config: environment-specific configuration classes loaded via python-dotenv
- monitoring: structlog configuration and Prometheus metrics
- blueprints: Flask blueprints for the catalog API and the guarded form API

Author: Zoo Portal Team
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Zoo Portal Team"


def create_app(config_name=None, **overrides):
    """Lazy proxy to :func:`zoo_portal.app.create_app` to keep imports light."""
    from zoo_portal.app import create_app as _create_app

    return _create_app(config_name, **overrides)


__all__ = ["create_app", "__version__", "__author__"]
