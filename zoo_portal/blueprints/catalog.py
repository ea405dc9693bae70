"""
Catalog service blueprint.

Serves the health probe polled while a cold host wakes up and the animal
catalog consumed by :class:`ResilientCatalogClient`:

- ``GET /ping`` returns ``{"ok": true}``
- ``GET /api/animals`` returns the full catalog array
- ``GET /api/animals/<id>`` returns one animal or 404
"""

import structlog
from flask import Blueprint, jsonify

from zoo_portal.extensions import get_services

logger = structlog.get_logger(__name__)

catalog_blueprint = Blueprint('catalog', __name__)


@catalog_blueprint.after_request
def _disable_caching(response):
    response.headers['Cache-Control'] = 'no-store'
    return response


@catalog_blueprint.route('/ping', methods=['GET'])
def ping():
    return jsonify({'ok': True})


@catalog_blueprint.route('/api/animals', methods=['GET'])
def list_animals():
    services = get_services()
    records = services.catalog.snapshot()
    if not records and services.catalog_load_error:
        logger.error("Catalog requested but unavailable", reason=services.catalog_load_error)
        return jsonify({'error': services.catalog_load_error}), 500
    return jsonify([record.to_payload() for record in records])


@catalog_blueprint.route('/api/animals/<int:animal_id>', methods=['GET'])
def get_animal(animal_id: int):
    services = get_services()
    record = services.catalog.find(animal_id)
    if record is None:
        if services.catalog_load_error and not len(services.catalog):
            return jsonify({'error': services.catalog_load_error}), 500
        return jsonify({'error': 'Animal not found'}), 404
    return jsonify(record.to_payload())
