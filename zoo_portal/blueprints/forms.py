"""
Guarded form API.

Exposes the booking, membership and add-animal forms as JSON endpoints that
run the SubmissionController. The Flask session is the session storage for the
CSRF token, and a per-session client id scopes the rate limiters so one
visitor cannot exhaust another's budget.

Endpoints:
- ``GET  /forms/csrf-token`` issues (or returns) the session token
- ``POST /forms/booking``
- ``POST /forms/membership``
- ``POST /forms/animal``

The token may be sent in the ``X-CSRF-Token`` header or a ``csrf_token``
body field. Bodies may be JSON or form-encoded.
"""

import uuid

import structlog
from flask import Blueprint, jsonify, request, session

from zoo_portal.auth.csrf import CSRFGuard, FlaskSessionStorage
from zoo_portal.business.feedback import CollectingFeedbackSink
from zoo_portal.business.models import FormClass
from zoo_portal.business.schemas import ValidationError, load_form_payload
from zoo_portal.business.services import SubmissionController
from zoo_portal.extensions import get_services
from zoo_portal.utils.exceptions import ErrorCode

logger = structlog.get_logger(__name__)

forms_blueprint = Blueprint('forms', __name__, url_prefix='/forms')

CSRF_HEADER = 'X-CSRF-Token'
CLIENT_ID_KEY = 'clientId'


def _client_scope() -> str:
    client_id = session.get(CLIENT_ID_KEY)
    if not client_id:
        client_id = uuid.uuid4().hex
        session[CLIENT_ID_KEY] = client_id
    return client_id


def _malformed(message: str, details=None):
    body = {
        'ok': False,
        'errorCode': ErrorCode.VAL_SCHEMA_VIOLATION.value,
        'message': message,
    }
    if details:
        body['fields'] = details
    return jsonify(body), 400


def _handle_submission(form_class: FormClass):
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return _malformed('Request body must be a JSON object.')
    else:
        data = request.form.to_dict()

    try:
        fields, body_token = load_form_payload(form_class, data)
    except ValidationError as e:
        logger.info("Form payload rejected by schema", form_class=form_class.value, errors=e.messages)
        return _malformed('Request payload is malformed.', e.messages)

    services = get_services()
    feedback = CollectingFeedbackSink()
    controller = SubmissionController(
        csrf_guard=CSRFGuard(FlaskSessionStorage()),
        rate_limiters=services.rate_limiters,
        collections=services.collections,
        catalog=services.catalog,
        feedback=feedback,
        sanitizer=services.sanitizer,
        scope=_client_scope()
    )

    result = controller.submit(form_class, fields, request.headers.get(CSRF_HEADER) or body_token)

    response = jsonify(result.to_payload())
    response.status_code = result.http_status
    if result.retry_after is not None:
        response.headers['Retry-After'] = str(max(1, int(round(result.retry_after))))
    return response


@forms_blueprint.route('/csrf-token', methods=['GET'])
def csrf_token():
    _client_scope()
    token = CSRFGuard(FlaskSessionStorage()).issue()
    return jsonify({'csrfToken': token})


@forms_blueprint.route('/booking', methods=['POST'])
def submit_booking():
    return _handle_submission(FormClass.BOOKING)


@forms_blueprint.route('/membership', methods=['POST'])
def submit_membership():
    return _handle_submission(FormClass.MEMBERSHIP)


@forms_blueprint.route('/animal', methods=['POST'])
def submit_animal():
    return _handle_submission(FormClass.ANIMAL)
