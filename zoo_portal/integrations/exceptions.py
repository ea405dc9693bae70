"""
Exception hierarchy for the catalog backend integration.

Transient failures (transport errors, timeouts, non-success statuses and
unparsable payloads) derive from :class:`TransientCatalogError` and are the
only errors the retry policy retries. Exhausted retries surface as
:class:`CatalogUnavailableError`, the terminal network error callers see.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from zoo_portal.utils.exceptions import ErrorCode


class IntegrationError(Exception):
    """
    Base exception for external service integration failures.

    Attributes:
        service_name: Name of the external service that failed
        operation: Operation being performed (``wake``, ``fetch``, ``fetch_animal``)
        error_code: Service-specific error code or HTTP status code
        error_context: Additional context about the failure
        retry_count: Number of attempts made before the error surfaced
    """

    def __init__(
        self,
        message: str,
        service_name: str = 'catalog',
        operation: str = 'request',
        error_code: Optional[Union[str, int]] = None,
        error_context: Optional[Dict[str, Any]] = None,
        retry_count: int = 0
    ):
        super().__init__(message)
        self.service_name = service_name
        self.operation = operation
        self.error_code = error_code
        self.error_context = error_context or {}
        self.retry_count = retry_count
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error_type': self.__class__.__name__,
            'message': super().__str__(),
            'service_name': self.service_name,
            'operation': self.operation,
            'error_code': self.error_code,
            'error_context': self.error_context,
            'retry_count': self.retry_count,
            'timestamp': self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        base_msg = super().__str__()
        context_parts = [f"service={self.service_name}", f"operation={self.operation}"]
        if self.error_code:
            context_parts.append(f"code={self.error_code}")
        if self.retry_count > 0:
            context_parts.append(f"retries={self.retry_count}")
        return f"{base_msg} ({', '.join(context_parts)})"


class TransientCatalogError(IntegrationError):
    """Failure worth retrying after a backoff."""


class CatalogConnectionError(TransientCatalogError):
    """The backend could not be reached."""


class CatalogTimeoutError(TransientCatalogError):
    def __init__(self, message: str, timeout_duration: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.timeout_duration = timeout_duration


class CatalogHTTPStatusError(TransientCatalogError):
    """The backend answered with a non-success status."""

    def __init__(self, message: str, status_code: int, **kwargs):
        kwargs.setdefault('error_code', status_code)
        super().__init__(message, **kwargs)
        self.status_code = status_code


class CatalogPayloadError(TransientCatalogError):
    """The backend answered 2xx but the body was not the expected JSON."""


class CatalogUnavailableError(IntegrationError):
    """
    Terminal failure after the retry budget for a phase was spent.

    Args:
        phase: ``waking`` or ``fetching``
        attempts: Number of attempts made in that phase
        last_error: Final transient error observed
    """

    user_message = 'The animal catalog is unavailable right now. Please try again later.'
    http_status = 503

    def __init__(
        self,
        message: str,
        phase: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
        **kwargs
    ):
        kwargs.setdefault('error_code', ErrorCode.EXT_CATALOG_UNAVAILABLE.value)
        kwargs.setdefault('retry_count', attempts)
        kwargs.setdefault('operation', phase)
        super().__init__(message, **kwargs)
        self.phase = phase
        self.attempts = attempts
        self.last_error = last_error


__all__ = [
    'IntegrationError',
    'TransientCatalogError',
    'CatalogConnectionError',
    'CatalogTimeoutError',
    'CatalogHTTPStatusError',
    'CatalogPayloadError',
    'CatalogUnavailableError',
]
