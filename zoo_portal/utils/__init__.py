"""
Input-safety utilities.

- sanitizers: injection rejection, tag stripping and HTML entity encoding
- validators: NANP phone handling and rule-driven field validation
- exceptions: the submission error taxonomy and Flask error handlers
"""

from zoo_portal.utils.exceptions import ErrorCode, SubmissionError
from zoo_portal.utils.sanitizers import Sanitizer, sanitize_input
from zoo_portal.utils.validators import FieldValidator, PhoneValidator, ValidationRule, phone_validator

__all__ = [
    'ErrorCode',
    'SubmissionError',
    'Sanitizer',
    'sanitize_input',
    'FieldValidator',
    'PhoneValidator',
    'ValidationRule',
    'phone_validator',
]
