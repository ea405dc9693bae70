"""
Submission Controller for the guarded forms

Orchestrates one form submission through the submission-safety layer. The
controller owns no state of its own: sanitizer, validators, CSRF guard, rate
limiters and storage are collaborators injected at construction, which lets
the Flask blueprint build a controller per request around shared limiters
and stores.

Submission sequence (serialised per form class by a lock):
1. Trim and sanitize every text field; injection aborts the submission
2. Validate every field, reporting inline feedback for each one
3. Require a matching CSRF token
4. Check the rate limit, then record the attempt
5. Build the record and commit it (bookings and members to the collection
   store, new animals to the catalog store)
6. Report global success

Any whole-submission failure is caught in one place, reported once to the
feedback sink, and returned with the raw input values so the form can be
re-populated. Nothing is written unless every guard passed.

Author: Zoo Portal Team
Version: 1.0.0
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Mapping, Optional, Tuple, Union

import structlog

from zoo_portal.auth.csrf import CSRFGuard
from zoo_portal.auth.rate_limiting import RateLimiterRegistry
from zoo_portal.business.feedback import LoggingFeedbackSink
from zoo_portal.business.models import (
    BookingRecord,
    CatalogRecord,
    FormClass,
    Location,
    MembershipRecord,
)
from zoo_portal.business.rules import FORM_DEFINITIONS, FormDefinition
from zoo_portal.data.storage import (
    BOOKINGS,
    MEMBERS,
    CatalogStore,
    CollectionStore,
    StorageError,
)
from zoo_portal.monitoring.logging import log_security_event
from zoo_portal.monitoring.metrics import submissions_total
from zoo_portal.utils.exceptions import (
    ErrorCode,
    FieldValidationError,
    PersistenceError,
    RateLimitExceededError,
    SubmissionError,
)
from zoo_portal.utils.sanitizers import Sanitizer
from zoo_portal.utils.validators import FeedbackSink, FieldResult, FieldValidator, phone_validator

logger = structlog.get_logger(__name__)

_OUTCOME_LABELS = {
    ErrorCode.VAL_INPUT_INVALID: 'invalid',
    ErrorCode.SEC_SQL_INJECTION_ATTEMPT: 'injection',
    ErrorCode.SEC_CSRF_TOKEN_INVALID: 'csrf_mismatch',
    ErrorCode.SEC_RATE_LIMIT_EXCEEDED: 'rate_limited',
    ErrorCode.SYS_PERSISTENCE_FAILED: 'persistence_failed',
}


@dataclass
class SubmissionResult:
    """
    Outcome of one submission.

    ``values`` always echoes the raw input so a rejected form can be shown
    again exactly as the visitor typed it.
    """

    ok: bool
    form_class: FormClass
    message: str
    http_status: int
    error_code: Optional[str] = None
    record: Optional[Dict[str, Any]] = None
    field_results: Dict[str, FieldResult] = field(default_factory=dict)
    values: Dict[str, Any] = field(default_factory=dict)
    retry_after: Optional[float] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            'ok': self.ok,
            'formClass': self.form_class.value,
            'message': self.message,
            'errorCode': self.error_code,
            'record': self.record,
            'fields': {
                field_id: {'ok': result.ok, 'message': result.message}
                for field_id, result in self.field_results.items()
            },
            'values': self.values,
        }


class SubmissionController:
    """
    Runs guarded submissions of the booking, membership and add-animal forms.

    Args:
        csrf_guard: Guard bound to the submitting client's session
        rate_limiters: Registry providing limiters and locks per form class
        collections: Store receiving bookings and memberships
        catalog: Store receiving newly added animals
        feedback: Sink for field and global messages
        sanitizer: Text sanitizer applied to every text field
        scope: Rate-limit scope of the submitting client
        clock: Wall clock used for new animal ids
    """

    def __init__(
        self,
        csrf_guard: CSRFGuard,
        rate_limiters: RateLimiterRegistry,
        collections: CollectionStore,
        catalog: CatalogStore,
        feedback: Optional[FeedbackSink] = None,
        sanitizer: Optional[Sanitizer] = None,
        scope: Optional[Hashable] = None,
        clock: Callable[[], float] = time.time
    ) -> None:
        self.csrf_guard = csrf_guard
        self.rate_limiters = rate_limiters
        self.collections = collections
        self.catalog = catalog
        self.feedback = feedback or LoggingFeedbackSink()
        self.sanitizer = sanitizer or Sanitizer()
        self.scope = scope
        self._clock = clock
        self.field_validator = FieldValidator(self.feedback)

    def submit_booking(self, raw_fields: Mapping[str, Any], csrf_token: Optional[str]) -> SubmissionResult:
        return self.submit(FormClass.BOOKING, raw_fields, csrf_token)

    def submit_membership(self, raw_fields: Mapping[str, Any], csrf_token: Optional[str]) -> SubmissionResult:
        return self.submit(FormClass.MEMBERSHIP, raw_fields, csrf_token)

    def submit_animal(self, raw_fields: Mapping[str, Any], csrf_token: Optional[str]) -> SubmissionResult:
        return self.submit(FormClass.ANIMAL, raw_fields, csrf_token)

    def submit(
        self,
        form_class: Union[FormClass, str],
        raw_fields: Mapping[str, Any],
        csrf_token: Optional[str]
    ) -> SubmissionResult:
        """
        Run one submission of ``form_class`` through every guard.

        Args:
            form_class: Form being submitted
            raw_fields: Untrusted field values keyed by field id
            csrf_token: Token echoed by the client

        Returns:
            SubmissionResult describing success or the single failure reason
        """
        form_class = FormClass(form_class)
        definition = FORM_DEFINITIONS[form_class]
        raw_values = {key: raw_fields.get(key) for key in definition.field_ids}
        field_results: Dict[str, FieldResult] = {}

        with self.rate_limiters.lock_for(form_class.value):
            try:
                cleaned = self._sanitize(definition, raw_fields)

                validation = self.field_validator.validate_form(cleaned, definition.rules)
                field_results = validation.results
                if not validation.ok:
                    raise FieldValidationError(
                        message=f"{form_class.value} form failed validation",
                        user_message=definition.invalid_message,
                        metadata={'failed_fields': sorted(validation.failures)}
                    )

                self.csrf_guard.require(csrf_token)
                self._check_rate_limit(form_class)

                record, message = self._commit(definition, validation.values)

            except SubmissionError as e:
                return self._reject(form_class, e, field_results, raw_values)

        self.feedback.report_global_success(message)
        submissions_total.labels(form_class=form_class.value, outcome='accepted').inc()
        logger.info(
            "Submission accepted",
            form_class=form_class.value,
            fields=len(field_results)
        )
        return SubmissionResult(
            ok=True,
            form_class=form_class,
            message=message,
            http_status=201,
            record=record,
            field_results=field_results,
            values=raw_values
        )

    def _sanitize(self, definition: FormDefinition, raw_fields: Mapping[str, Any]) -> Dict[str, Optional[str]]:
        cleaned: Dict[str, Optional[str]] = {}
        for key in definition.sanitized_fields:
            value = raw_fields.get(key)
            # Absent inputs stay None so validation fails them
            cleaned[key] = None if value is None else self.sanitizer.sanitize(str(value).strip())
        for key in definition.raw_fields:
            value = raw_fields.get(key)
            cleaned[key] = '' if value is None else str(value).strip()
        return cleaned

    def _check_rate_limit(self, form_class: FormClass) -> None:
        limiter = self.rate_limiters.limiter_for(form_class.value, self.scope)
        # A refused hit means the window filled between check and record
        if limiter.is_limited() or not limiter.record_attempt():
            retry_after = limiter.retry_after()
            log_security_event(
                'rate_limited',
                form_class=form_class.value,
                retry_after=round(retry_after, 3)
            )
            raise RateLimitExceededError(
                message=f"{form_class.value} submissions exceeded {limiter.max_attempts} "
                        f"per {limiter.window_seconds:g}s",
                form_class=form_class.value,
                retry_after=retry_after
            )

    def _commit(self, definition: FormDefinition, values: Dict[str, str]) -> Tuple[Dict[str, Any], str]:
        form_class = definition.form_class
        try:
            if form_class is FormClass.BOOKING:
                record = BookingRecord(
                    visitor_name=values['visitorName'],
                    contact=phone_validator.format(values['contact']),
                    selected_animal=values['animal'],
                    date_time=values['dateTime'],
                    group_size=int(float(values['groupSize']))
                )
                payload = record.to_payload()
                self.collections.append(BOOKINGS, payload)
                return payload, definition.success_message

            if form_class is FormClass.MEMBERSHIP:
                record = MembershipRecord(
                    name=values['name'],
                    email=values['email'],
                    membership_type=values['membershipType'],
                    start_date=values['startDate'],
                    emergency_contact=phone_validator.format(values['emergencyContact']),
                    photo_data_url=values.get('photoDataUrl') or None
                )
                payload = record.to_payload()
                self.collections.append(MEMBERS, payload)
                return payload, definition.success_message

            animal = self.catalog.append(self._build_animal(values))
            message = definition.success_message.format(name=animal.name, species=animal.species)
            return animal.to_payload(), message

        except (StorageError, OSError) as e:
            raise PersistenceError(
                message=f"Failed to store {form_class.value} submission: {e}",
                collection=getattr(e, 'collection', None)
            ) from e

    def _build_animal(self, values: Dict[str, str]) -> CatalogRecord:
        status = 'Open' if values['animalStatus'].lower() == 'open' else 'Closed'
        return CatalogRecord(
            id=int(self._clock() * 1000),
            name=values['animalName'],
            species=values['animalSpecies'],
            status=status,
            health=values['animalHealth'].capitalize(),
            location=Location(lat=float(values['animalLat']), lng=float(values['animalLng'])),
            image=values['animalImage'],
            feeding_schedule=[],
            maintenance_records=[]
        )

    def _reject(
        self,
        form_class: FormClass,
        error: SubmissionError,
        field_results: Dict[str, FieldResult],
        raw_values: Dict[str, Any]
    ) -> SubmissionResult:
        self.feedback.report_global_error(error.user_message)
        submissions_total.labels(
            form_class=form_class.value,
            outcome=_OUTCOME_LABELS.get(error.error_code, 'rejected')
        ).inc()
        logger.warning(
            "Submission rejected",
            form_class=form_class.value,
            error_code=error.error_code.value,
            error_id=error.error_id,
            reason=str(error)
        )
        return SubmissionResult(
            ok=False,
            form_class=form_class,
            message=error.user_message,
            http_status=error.http_status,
            error_code=error.error_code.value,
            field_results=field_results,
            values=raw_values,
            retry_after=getattr(error, 'retry_after', None)
        )


__all__ = ['SubmissionResult', 'SubmissionController']
