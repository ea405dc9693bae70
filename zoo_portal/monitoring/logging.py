"""
Structured Logging using structlog

Configures structlog for the portal: JSON output for log aggregation in
production, a console renderer in development, correlation ids carried in a
context variable and merged into every event, and a helper for security audit
events emitted by the submission guards.

Key Features:
- Environment-driven renderer selection (json or console)
- Correlation ID tracking per request via contextvars
- Security audit events for injection, CSRF and rate-limit rejections
- Flask request hooks that bind and echo the correlation id

Author: Zoo Portal Team
Version: 1.0.0
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Optional

import structlog
from flask import Flask, g, has_request_context, request

correlation_id_context: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

CORRELATION_HEADER = 'X-Correlation-ID'


def _add_correlation_id(logger, method_name, event_dict):
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict.setdefault('correlation_id', correlation_id)
    return event_dict


def setup_structured_logging(level: str = 'INFO', log_format: str = 'json') -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Log level name applied to the root logger
        log_format: ``json`` for machine-readable output, ``console`` for humans
    """
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        _add_correlation_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == 'console':
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    if not any(getattr(h, '_zoo_portal', False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter('%(message)s'))
        handler._zoo_portal = True
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Return a structured logger, defaulting to the package logger name."""
    return structlog.get_logger(name or 'zoo_portal')


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Bind a correlation id to the current context, generating one if needed.

    Returns:
        The correlation id that was set
    """
    if correlation_id is None:
        correlation_id = uuid.uuid4().hex
    correlation_id_context.set(correlation_id)
    if has_request_context():
        g.correlation_id = correlation_id
    return correlation_id


def get_correlation_id() -> Optional[str]:
    correlation_id = correlation_id_context.get()
    if correlation_id:
        return correlation_id
    if has_request_context():
        return getattr(g, 'correlation_id', None)
    return None


def clear_correlation_id() -> None:
    correlation_id_context.set(None)


def log_security_event(event_type: str, severity: str = 'warning', **details: Any) -> None:
    """
    Emit a security audit event.

    Args:
        event_type: Short event name, e.g. ``injection_detected``
        severity: Log level name used for the event
        **details: Additional structured fields
    """
    logger = get_logger('zoo_portal.security')
    logger.log(
        getattr(logging, severity.upper(), logging.WARNING),
        f"Security event: {event_type}",
        event_category='security',
        event_type=event_type,
        security_audit=True,
        **details
    )


def init_request_logging(app: Flask) -> None:
    """Register request hooks that manage the correlation id."""
    logger = get_logger('zoo_portal.request')

    @app.before_request
    def _bind_correlation_id():
        set_correlation_id(request.headers.get(CORRELATION_HEADER))

    @app.after_request
    def _echo_correlation_id(response):
        correlation_id = get_correlation_id()
        if correlation_id:
            response.headers[CORRELATION_HEADER] = correlation_id
        logger.info(
            "Request completed",
            method=request.method,
            path=request.path,
            status_code=response.status_code
        )
        return response

    @app.teardown_request
    def _clear_correlation_id(exc):
        clear_correlation_id()


__all__ = [
    'setup_structured_logging',
    'get_logger',
    'set_correlation_id',
    'get_correlation_id',
    'clear_correlation_id',
    'log_security_event',
    'init_request_logging',
]
