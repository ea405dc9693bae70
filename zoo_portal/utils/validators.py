"""
Phone and field validation for the guarded forms.

This module holds the two validators the SubmissionController composes:

- :class:`PhoneValidator` performs structural NANP checks and formatting for
  US phone numbers (no carrier or reachability lookups).
- :class:`FieldValidator` applies a :class:`ValidationRule` (anchored regex,
  closed numeric interval, or predicate) to one field value and reports the
  outcome to a :class:`FeedbackSink` on every call.

Key Features:
- Validation never raises; failures come back as :class:`FieldResult`
- Numeric ranges reject unparsable and non-finite input independent of regex
- Whole-form validation evaluates every rule so all inline messages surface
- Email checks delegate to email-validator with deliverability lookups off
"""

import math
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Mapping, Optional, Protocol

import structlog
from email_validator import EmailNotValidError, validate_email

logger = structlog.get_logger(__name__)

_NON_DIGIT_RE = re.compile(r"\D")
_DECOY_CORES = frozenset({"1234567890", "1234567891"})


@dataclass(frozen=True)
class PhoneNumber:
    """Validated 10-digit NANP number."""

    area_code: str
    exchange: str
    subscriber: str

    @property
    def core(self) -> str:
        return f"{self.area_code}{self.exchange}{self.subscriber}"

    @property
    def formatted(self) -> str:
        return f"({self.area_code}) {self.exchange}-{self.subscriber}"

    def __str__(self) -> str:
        return self.formatted


class PhoneValidator:
    """
    Structural validation and formatting of US phone numbers.

    A number is valid when it reduces to a 10-digit core (an 11-digit input
    must lead with country code ``1``), neither the area code nor the exchange
    starts with 0 or 1, and the core is not a repeated digit or a sequential
    decoy such as ``1234567890``.
    """

    def normalize(self, raw: Optional[str]) -> str:
        """Strip every non-digit character."""
        return _NON_DIGIT_RE.sub('', raw or '')

    def _core(self, raw: Optional[str]) -> Optional[str]:
        digits = self.normalize(raw)
        if len(digits) == 11 and digits.startswith('1'):
            return digits[1:]
        if len(digits) == 10:
            return digits
        return None

    def is_valid(self, raw: Optional[str]) -> bool:
        core = self._core(raw)
        if core is None:
            return False
        if core[0] in '01' or core[3] in '01':
            return False
        if len(set(core)) == 1:
            return False
        return core not in _DECOY_CORES

    def parse(self, raw: Optional[str]) -> Optional[PhoneNumber]:
        """Return a :class:`PhoneNumber` for valid input, ``None`` otherwise."""
        if not self.is_valid(raw):
            return None
        core = self._core(raw)
        return PhoneNumber(area_code=core[:3], exchange=core[3:6], subscriber=core[6:])

    def format(self, raw: Optional[str]) -> str:
        """
        Render ``raw`` as ``(AAA) EEE-DDDD``.

        Any 11-digit input has its leading digit dropped. When the remaining
        digits are not exactly ten, ``raw`` is returned unchanged.
        """
        digits = self.normalize(raw)
        core = digits[1:] if len(digits) == 11 else digits
        if len(core) != 10:
            return raw or ''
        return f"({core[:3]}) {core[3:6]}-{core[6:]}"


phone_validator = PhoneValidator()


def is_valid_email(value: str) -> bool:
    """Syntax-only email check using email-validator."""
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as e:
        logger.debug("Email validation failed", error=str(e), email_length=len(value))
        return False
    return True


class FeedbackSink(Protocol):
    """UI-feedback collaborator notified of field and form outcomes."""

    def report_field_result(self, field_id: str, ok: bool, message: str) -> None:
        ...

    def report_global_success(self, message: str) -> None:
        ...

    def report_global_error(self, message: str) -> None:
        ...


class NullFeedbackSink:
    """Feedback sink that discards every report."""

    def report_field_result(self, field_id: str, ok: bool, message: str) -> None:
        pass

    def report_global_success(self, message: str) -> None:
        pass

    def report_global_error(self, message: str) -> None:
        pass


@dataclass(frozen=True)
class ValidationRule:
    """
    Declarative rule for a single form field.

    Exactly one check kind must be configured: ``pattern`` (matched against the
    whole trimmed value), a numeric interval (``minimum``/``maximum``, closed on
    both ends, optionally ``integer``), or a ``predicate`` callable.

    Args:
        field_id: Identifier of the bound input
        label: Human label used in default messages
        pattern: Regular expression that must match the entire value
        flags: ``re`` flags applied to ``pattern``
        minimum: Inclusive lower bound for numeric rules
        maximum: Inclusive upper bound for numeric rules
        integer: Require a whole number for numeric rules
        predicate: Callable returning ``True`` for acceptable values
        message: Failure message overriding the default
        success_message: Success message overriding the default
        required: When ``False`` an empty value passes without checks
    """

    field_id: str
    label: str
    pattern: Optional[str] = None
    flags: int = 0
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    integer: bool = False
    predicate: Optional[Callable[[str], bool]] = field(default=None, compare=False)
    message: Optional[str] = None
    success_message: Optional[str] = None
    required: bool = True

    def __post_init__(self):
        kinds = [
            self.pattern is not None,
            self.minimum is not None or self.maximum is not None,
            self.predicate is not None,
        ]
        if sum(kinds) != 1:
            raise ValueError(
                f"Rule for {self.field_id!r} must define exactly one of "
                "pattern, numeric range or predicate"
            )

    @property
    def is_numeric(self) -> bool:
        return self.minimum is not None or self.maximum is not None

    @property
    def failure_text(self) -> str:
        return self.message or f"Please enter a valid {self.label}."

    @property
    def success_text(self) -> str:
        return self.success_message or f"{self.label[:1].upper()}{self.label[1:]} looks good."


@dataclass(frozen=True)
class FieldResult:
    field_id: str
    ok: bool
    value: Optional[str]
    message: str


@dataclass(frozen=True)
class FormValidation:
    """Outcome of validating every rule of a form."""

    ok: bool
    values: Dict[str, str]
    results: Dict[str, FieldResult]

    @property
    def failures(self) -> Dict[str, FieldResult]:
        return {k: r for k, r in self.results.items() if not r.ok}


class FieldValidator:
    """
    Applies validation rules to field values and reports each outcome.

    Args:
        feedback: Sink receiving one ``report_field_result`` per validated field
    """

    def __init__(self, feedback: Optional[FeedbackSink] = None) -> None:
        self.feedback = feedback or NullFeedbackSink()

    def validate(self, value: Optional[str], rule: ValidationRule) -> FieldResult:
        """
        Validate one value against ``rule``.

        A ``None`` value means the input is absent and always fails.
        """
        if value is None:
            ok = False
            trimmed = None
        else:
            trimmed = str(value).strip()
            ok = self._check(trimmed, rule)

        message = rule.success_text if ok else rule.failure_text
        self.feedback.report_field_result(rule.field_id, ok, message)

        if not ok:
            logger.debug(
                "Field validation failed",
                field_id=rule.field_id,
                missing=value is None
            )

        return FieldResult(field_id=rule.field_id, ok=ok, value=trimmed, message=message)

    def validate_form(
        self,
        values: Mapping[str, Optional[str]],
        rules: Iterable[ValidationRule]
    ) -> FormValidation:
        """
        Validate every rule against ``values`` without short-circuiting.

        Returns:
            FormValidation whose ``ok`` is true only if every field passed
        """
        results = {}
        for rule in rules:
            results[rule.field_id] = self.validate(values.get(rule.field_id), rule)

        ok = all(r.ok for r in results.values())
        cleaned = {k: r.value for k, r in results.items() if r.value is not None}
        return FormValidation(ok=ok, values=cleaned, results=results)

    def _check(self, value: str, rule: ValidationRule) -> bool:
        if not value and not rule.required:
            return True
        if rule.pattern is not None:
            return re.fullmatch(rule.pattern, value, rule.flags) is not None
        if rule.is_numeric:
            return self._in_range(value, rule)
        try:
            return bool(rule.predicate(value))
        except (TypeError, ValueError) as e:
            logger.warning("Validation predicate raised", field_id=rule.field_id, error=str(e))
            return False

    @staticmethod
    def _in_range(value: str, rule: ValidationRule) -> bool:
        try:
            number = float(value)
        except ValueError:
            return False
        if not math.isfinite(number):
            return False
        if rule.integer and not number.is_integer():
            return False
        if rule.minimum is not None and number < rule.minimum:
            return False
        if rule.maximum is not None and number > rule.maximum:
            return False
        return True


__all__ = [
    'PhoneNumber',
    'PhoneValidator',
    'phone_validator',
    'is_valid_email',
    'FeedbackSink',
    'NullFeedbackSink',
    'ValidationRule',
    'FieldResult',
    'FormValidation',
    'FieldValidator',
]
