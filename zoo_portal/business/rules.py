"""
Validation rules and field layout of the three guarded forms.

Each :class:`FormDefinition` lists the text fields that are sanitized, the
fields passed through untouched (the membership photo is a data URL), the
validation rules, and the global message shown when any field fails.
"""

import re
from dataclasses import dataclass
from typing import Dict, Tuple

from zoo_portal.business.models import FormClass
from zoo_portal.utils.validators import ValidationRule, is_valid_email, phone_validator

_DATA_URL_RE = re.compile(r"data:image/(?:png|jpeg|gif|webp);base64,[A-Za-z0-9+/]+={0,2}")


def is_image_data_url(value: str) -> bool:
    return _DATA_URL_RE.fullmatch(value) is not None


@dataclass(frozen=True)
class FormDefinition:
    form_class: FormClass
    sanitized_fields: Tuple[str, ...]
    raw_fields: Tuple[str, ...]
    rules: Tuple[ValidationRule, ...]
    invalid_message: str
    success_message: str

    @property
    def field_ids(self) -> Tuple[str, ...]:
        return self.sanitized_fields + self.raw_fields


BOOKING_RULES = (
    ValidationRule('visitorName', 'name', pattern=r".+"),
    ValidationRule(
        'contact', 'phone number',
        predicate=phone_validator.is_valid,
        message='Invalid phone number. Must be 10 digits.',
        success_message='Phone looks good!'
    ),
    ValidationRule('animal', 'animal', pattern=r".+", message='Please choose an animal to visit.'),
    ValidationRule('dateTime', 'date and time', pattern=r".+"),
    ValidationRule(
        'groupSize', 'group size',
        minimum=1, integer=True,
        message='Group size must be a whole number of at least 1.'
    ),
)

MEMBERSHIP_RULES = (
    ValidationRule('name', 'name', pattern=r".+"),
    ValidationRule('email', 'email address', predicate=is_valid_email),
    ValidationRule('membershipType', 'membership type', pattern=r".+"),
    ValidationRule(
        'startDate', 'start date',
        pattern=r"\d{4}-\d{2}-\d{2}",
        message='Please choose a start date.'
    ),
    ValidationRule(
        'emergencyContact', 'emergency contact phone',
        predicate=phone_validator.is_valid,
        message='Please enter a valid phone number (US, 10 digits).',
        success_message='Phone looks good.'
    ),
    ValidationRule(
        'photoDataUrl', 'photo',
        predicate=is_image_data_url,
        required=False,
        message='Photo must be a PNG, JPEG, GIF or WebP image.'
    ),
)

ANIMAL_RULES = (
    ValidationRule(
        'animalName', 'name',
        pattern=r"[A-Za-z ]{3,}",
        message='Name must be 3+ letters/spaces.'
    ),
    ValidationRule(
        'animalSpecies', 'species',
        pattern=r"[A-Za-z ]+",
        message='Species must be letters only.'
    ),
    ValidationRule(
        'animalStatus', 'status',
        pattern=r"Open|Closed", flags=re.IGNORECASE,
        message='Status must be "Open" or "Closed".'
    ),
    ValidationRule(
        'animalHealth', 'health',
        pattern=r"Healthy|Sick|Injured", flags=re.IGNORECASE,
        message='Health must be Healthy, Sick, or Injured.'
    ),
    ValidationRule(
        'animalImage', 'image path',
        pattern=r"images/.+\.(?:png|jpe?g|gif|webp)", flags=re.IGNORECASE,
        message='Image must look like "images/ellie.png".'
    ),
    ValidationRule(
        'animalLat', 'latitude',
        minimum=-90, maximum=90,
        message='Latitude must be a number between -90 and 90.'
    ),
    ValidationRule(
        'animalLng', 'longitude',
        minimum=-180, maximum=180,
        message='Longitude must be a number between -180 and 180.'
    ),
)

FORM_DEFINITIONS: Dict[FormClass, FormDefinition] = {
    FormClass.BOOKING: FormDefinition(
        form_class=FormClass.BOOKING,
        sanitized_fields=('visitorName', 'contact', 'animal', 'dateTime', 'groupSize'),
        raw_fields=(),
        rules=BOOKING_RULES,
        invalid_message='Please fill in all required fields with valid data.',
        success_message='Booking confirmed!'
    ),
    FormClass.MEMBERSHIP: FormDefinition(
        form_class=FormClass.MEMBERSHIP,
        sanitized_fields=('name', 'email', 'membershipType', 'startDate', 'emergencyContact'),
        raw_fields=('photoDataUrl',),
        rules=MEMBERSHIP_RULES,
        invalid_message='Please fill in all required fields with valid data.',
        success_message='Membership registration successful!'
    ),
    FormClass.ANIMAL: FormDefinition(
        form_class=FormClass.ANIMAL,
        sanitized_fields=(
            'animalName', 'animalSpecies', 'animalStatus', 'animalHealth',
            'animalImage', 'animalLat', 'animalLng'
        ),
        raw_fields=(),
        rules=ANIMAL_RULES,
        invalid_message='Please fix the highlighted fields and try again.',
        success_message='Added {name} ({species}) to the zoo.'
    ),
}


__all__ = [
    'FormDefinition',
    'BOOKING_RULES',
    'MEMBERSHIP_RULES',
    'ANIMAL_RULES',
    'FORM_DEFINITIONS',
    'is_image_data_url',
]
