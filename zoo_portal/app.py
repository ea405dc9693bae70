"""
Flask Application Factory

Builds the zoo portal application: configuration, structured logging, shared
submission-safety collaborators, the catalog and form blueprints, error
handlers, the Prometheus ``/metrics`` endpoint and the ``sync-catalog`` CLI
command.

Examples:
    app = create_app('development')
    app = create_app('testing', collections=InMemoryCollectionStore())

    $ flask --app zoo_portal.app sync-catalog --base-url https://zoo.example.com

Author: Zoo Portal Team
Version: 1.0.0
"""

import asyncio
from typing import Optional

import click
import structlog
from flask import Flask, Response

from zoo_portal.auth.rate_limiting import RateLimiterRegistry
from zoo_portal.blueprints.catalog import catalog_blueprint
from zoo_portal.blueprints.forms import forms_blueprint
from zoo_portal.config.settings import get_config, validate_configuration
from zoo_portal.data.storage import (
    CatalogStore,
    CollectionStore,
    InMemoryCollectionStore,
    JsonFileCollectionStore,
    StorageError,
)
from zoo_portal.extensions import PortalServices, get_services, init_services
from zoo_portal.integrations.catalog_client import ResilientCatalogClient
from zoo_portal.integrations.exceptions import CatalogUnavailableError
from zoo_portal.monitoring.logging import init_request_logging, setup_structured_logging
from zoo_portal.monitoring.metrics import render_metrics
from zoo_portal.utils.exceptions import register_error_handlers
from zoo_portal.utils.sanitizers import Sanitizer

logger = structlog.get_logger(__name__)


def _build_services(
    app: Flask,
    collections: Optional[CollectionStore],
    catalog: Optional[CatalogStore]
) -> PortalServices:
    config = app.config
    catalog_load_error = None

    if catalog is None:
        try:
            catalog = CatalogStore.from_json_file(config['ANIMALS_PATH'])
        except StorageError as e:
            logger.error("Catalog file could not be loaded", path=config['ANIMALS_PATH'], reason=str(e))
            catalog = CatalogStore()
            catalog_load_error = str(e)

    if collections is None:
        if config['COLLECTION_BACKEND'] == 'memory':
            collections = InMemoryCollectionStore()
        else:
            collections = JsonFileCollectionStore(config['DATA_DIR'])

    return PortalServices(
        sanitizer=Sanitizer(max_length=config['SANITIZER_MAX_LENGTH']),
        rate_limiters=RateLimiterRegistry(
            max_attempts=config['RATE_LIMIT_MAX_SUBMISSIONS'],
            window_seconds=config['RATE_LIMIT_WINDOW_SECONDS'],
            storage_uri=config['RATELIMIT_STORAGE_URL']
        ),
        collections=collections,
        catalog=catalog,
        catalog_load_error=catalog_load_error
    )


def _register_cli(app: Flask) -> None:

    @app.cli.command('sync-catalog')
    @click.option('--base-url', default=None, help='Catalog service root (defaults to CATALOG_BASE_URL).')
    @click.option('--output', type=click.Path(dir_okay=False), default=None,
                  help='Write the fetched catalog to this JSON file.')
    def sync_catalog(base_url: Optional[str], output: Optional[str]) -> None:
        """Wake the catalog service, fetch the catalog and load it."""
        services = get_services(app)
        client = ResilientCatalogClient.from_config(
            app.config,
            base_url=base_url,
            catalog_store=services.catalog
        )

        async def run():
            async with client:
                return await client.load()

        try:
            records = asyncio.run(run())
        except CatalogUnavailableError as e:
            logger.error("Catalog sync failed", **e.to_dict())
            raise click.ClickException(
                f"{e.user_message} ({e.phase} failed after {e.attempts} attempts)"
            ) from e

        if output:
            services.catalog.write_json_file(output)
        click.echo(f"Loaded {len(records)} animals from {client.base_url}")


def create_app(
    config_name: Optional[str] = None,
    collections: Optional[CollectionStore] = None,
    catalog: Optional[CatalogStore] = None,
    **config_overrides
) -> Flask:
    """
    Create the zoo portal Flask application.

    Args:
        config_name: Environment name (development, testing, production)
        collections: Collection store overriding the configured backend
        catalog: Catalog store overriding the catalog file
        **config_overrides: Configuration values applied after the config class

    Raises:
        ValueError: If the configuration is unsafe for a non-debug environment
    """
    config_class = get_config(config_name)

    app = Flask('zoo_portal')
    app.config.from_object(config_class)
    app.config.update(config_overrides)

    setup_structured_logging(app.config['LOG_LEVEL'], app.config['LOG_FORMAT'])

    issues = validate_configuration(config_class)
    if issues and not app.config['DEBUG']:
        raise ValueError(f"Configuration validation failed: {'; '.join(issues)}")

    init_services(app, _build_services(app, collections, catalog))
    init_request_logging(app)
    register_error_handlers(app)

    app.register_blueprint(catalog_blueprint)
    app.register_blueprint(forms_blueprint)

    @app.route('/metrics', methods=['GET'])
    def metrics():
        payload, content_type = render_metrics()
        return Response(payload, content_type=content_type)

    _register_cli(app)

    logger.info(
        "Application created",
        config_class=config_class.__name__,
        catalog_records=len(get_services(app).catalog)
    )
    return app


__all__ = ['create_app']
