"""
Submission Error Taxonomy

Exception hierarchy shared by the submission-safety layer. Every whole-submission
failure carries a standardized error code, a user-safe message, an HTTP status and
audit metadata, so the Flask error handlers and the SubmissionController can turn
any of them into a consistent response without leaking internals.

Key Features:
- Standardized error codes grouped by category (validation, security, system)
- Unique error identifiers and UTC timestamps for log correlation
- User-safe messages kept separate from the diagnostic message
- Flask error handler registration producing structured JSON bodies

Author: Zoo Portal Team
Version: 1.0.0
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
import uuid

import structlog
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

logger = structlog.get_logger(__name__)


class ErrorCode(Enum):
    """
    Standardized error codes for submission failures.

    Codes share the prefix scheme used throughout the portal so that log
    aggregation and alerting can group failures by category.
    """

    # External Service Error Codes (3000-3999)
    EXT_CATALOG_UNAVAILABLE = "EXT_3001"
    EXT_CATALOG_BAD_PAYLOAD = "EXT_3002"

    # Validation Error Codes (4000-4999)
    VAL_INPUT_INVALID = "VAL_4001"
    VAL_SCHEMA_VIOLATION = "VAL_4002"
    VAL_SANITIZATION_FAILED = "VAL_4005"

    # Security Violation Error Codes (5000-5999)
    SEC_RATE_LIMIT_EXCEEDED = "SEC_5001"
    SEC_CSRF_TOKEN_INVALID = "SEC_5006"
    SEC_SQL_INJECTION_ATTEMPT = "SEC_5008"

    # System Error Codes (9000-9999)
    SYS_PERSISTENCE_FAILED = "SYS_9001"
    SYS_UNEXPECTED = "SYS_9999"


class SubmissionError(Exception):
    """
    Base exception for failures that abort a form submission.

    Args:
        message: Diagnostic description for logs
        error_code: Standardized error code
        user_message: Safe message surfaced through the feedback sink
        metadata: Additional audit context
        http_status: Status code used when the error reaches a Flask handler

    Example:
        try:
            controller.submit_booking(fields, csrf_token)
        except SubmissionError as e:
            return jsonify(create_safe_error_response(e)), e.http_status
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        user_message: str = "Something went wrong. Please try again.",
        metadata: Optional[Dict[str, Any]] = None,
        http_status: int = 400
    ) -> None:
        super().__init__(message)

        self.error_id = str(uuid.uuid4())
        self.error_code = error_code
        self.user_message = user_message
        self.metadata = metadata or {}
        self.http_status = http_status
        self.timestamp = datetime.now(timezone.utc)

        self.metadata.update({
            'error_id': self.error_id,
            'error_code': self.error_code.value,
            'timestamp': self.timestamp.isoformat(),
            'exception_type': self.__class__.__name__
        })


class FieldValidationError(SubmissionError):
    """
    One or more fields failed their validation rules.

    Per-field messages have already gone to the feedback sink by the time the
    SubmissionController raises this; it only carries the consolidated message.
    """

    def __init__(
        self,
        message: str,
        field_id: Optional[str] = None,
        **kwargs
    ) -> None:
        kwargs.setdefault('user_message', 'Please fix the highlighted fields and try again.')
        kwargs.setdefault('http_status', 400)
        super().__init__(message, ErrorCode.VAL_INPUT_INVALID, **kwargs)

        self.field_id = field_id
        self.metadata['field_id'] = field_id


class InjectionDetectedError(SubmissionError):
    """
    Raised by the Sanitizer when input contains SQL keywords or operators.

    The matched token is kept in metadata for the audit log; the raw input never
    is.
    """

    def __init__(self, message: str, matched: Optional[str] = None, **kwargs) -> None:
        kwargs.setdefault('user_message', 'Suspicious input detected. Please remove any SQL keywords.')
        kwargs.setdefault('http_status', 400)
        super().__init__(message, ErrorCode.SEC_SQL_INJECTION_ATTEMPT, **kwargs)

        self.matched = matched
        self.metadata['matched_token'] = matched


class CSRFMismatchError(SubmissionError):
    """Submitted token does not match the token stored for the session."""

    def __init__(self, message: str = "CSRF token mismatch", **kwargs) -> None:
        kwargs.setdefault('user_message', 'Security token mismatch. Please reload the page and try again.')
        kwargs.setdefault('http_status', 403)
        super().__init__(message, ErrorCode.SEC_CSRF_TOKEN_INVALID, **kwargs)


class RateLimitExceededError(SubmissionError):
    """
    Too many submissions of one form class inside the sliding window.

    Args:
        form_class: Form class whose limiter rejected the attempt
        retry_after: Seconds until the oldest attempt leaves the window
    """

    def __init__(
        self,
        message: str,
        form_class: Optional[str] = None,
        retry_after: Optional[float] = None,
        **kwargs
    ) -> None:
        kwargs.setdefault('user_message', 'Too many submissions. Please wait a few seconds and try again.')
        kwargs.setdefault('http_status', 429)
        super().__init__(message, ErrorCode.SEC_RATE_LIMIT_EXCEEDED, **kwargs)

        self.form_class = form_class
        self.retry_after = retry_after
        self.metadata.update({
            'form_class': form_class,
            'retry_after': retry_after
        })


class PersistenceError(SubmissionError):
    """The storage collaborator failed while committing a record."""

    def __init__(self, message: str, collection: Optional[str] = None, **kwargs) -> None:
        kwargs.setdefault('user_message', 'We could not save your submission. Please try again.')
        kwargs.setdefault('http_status', 500)
        super().__init__(message, ErrorCode.SYS_PERSISTENCE_FAILED, **kwargs)

        self.collection = collection
        self.metadata['collection'] = collection


def get_error_category(error_code: ErrorCode) -> str:
    """Map an error code onto its reporting category."""
    prefix = error_code.value.split('_')[0]
    return {
        'EXT': 'external_service',
        'VAL': 'validation',
        'SEC': 'security_violation',
        'SYS': 'system',
    }.get(prefix, 'unknown')


def create_safe_error_response(exception: SubmissionError) -> Dict[str, Any]:
    """
    Create a safe error response for client consumption.

    Args:
        exception: Submission error to convert

    Returns:
        Dictionary containing only user-safe error data
    """
    return {
        'error': True,
        'error_code': exception.error_code.value,
        'message': exception.user_message,
        'error_id': exception.error_id,
        'timestamp': exception.timestamp.isoformat(),
        'category': get_error_category(exception.error_code)
    }


def register_error_handlers(app: Flask) -> None:
    """
    Register Flask error handlers producing structured JSON error bodies.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(SubmissionError)
    def handle_submission_error(error: SubmissionError):
        logger.warning(
            "Submission error reached handler",
            error_code=error.error_code.value,
            error_id=error.error_id,
            http_status=error.http_status
        )
        response = jsonify(create_safe_error_response(error))
        response.status_code = error.http_status
        if isinstance(error, RateLimitExceededError) and error.retry_after is not None:
            response.headers['Retry-After'] = str(max(1, int(round(error.retry_after))))
        return response

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        return jsonify({
            'error': True,
            'error_code': f"HTTP_{error.code}",
            'message': error.description or error.name,
        }), error.code or 500

    @app.errorhandler(Exception)
    def handle_generic_exception(error: Exception):
        wrapped = SubmissionError(
            message="An unexpected error occurred",
            error_code=ErrorCode.SYS_UNEXPECTED,
            http_status=500,
            metadata={'exception_type': error.__class__.__name__}
        )
        logger.exception(
            "Unexpected exception occurred",
            error_id=wrapped.error_id,
            exception_type=error.__class__.__name__
        )
        return jsonify(create_safe_error_response(wrapped)), 500


__all__ = [
    'ErrorCode',
    'SubmissionError',
    'FieldValidationError',
    'InjectionDetectedError',
    'CSRFMismatchError',
    'RateLimitExceededError',
    'PersistenceError',
    'get_error_category',
    'create_safe_error_response',
    'register_error_handlers',
]
