"""
Feedback sinks for field and form outcomes.

The browser client rendered these as inline messages next to inputs. The form
API collects them per request, and callers without a view send them to
the log.
"""

from dataclasses import dataclass, field
from typing import Dict, List

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class FieldFeedback:
    ok: bool
    message: str


@dataclass
class CollectingFeedbackSink:
    """Keeps the latest outcome per field plus every global message."""

    fields: Dict[str, FieldFeedback] = field(default_factory=dict)
    successes: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def report_field_result(self, field_id: str, ok: bool, message: str) -> None:
        self.fields[field_id] = FieldFeedback(ok=ok, message=message)

    def report_global_success(self, message: str) -> None:
        self.successes.append(message)

    def report_global_error(self, message: str) -> None:
        self.errors.append(message)


class LoggingFeedbackSink:
    """Writes every report to the structured log."""

    def __init__(self, source: str = 'submission') -> None:
        self.logger = logger.bind(source=source)

    def report_field_result(self, field_id: str, ok: bool, message: str) -> None:
        self.logger.debug("Field feedback", field_id=field_id, ok=ok, feedback=message)

    def report_global_success(self, message: str) -> None:
        self.logger.info("Submission feedback", ok=True, feedback=message)

    def report_global_error(self, message: str) -> None:
        self.logger.warning("Submission feedback", ok=False, feedback=message)


__all__ = ['FieldFeedback', 'CollectingFeedbackSink', 'LoggingFeedbackSink']
