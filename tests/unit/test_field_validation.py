"""
Unit tests for rule-driven field validation.

Validation must never raise, must report every outcome to the feedback sink,
and must evaluate every rule of a form even after a failure.
"""

import re

import pytest

from zoo_portal.business.feedback import CollectingFeedbackSink
from zoo_portal.business.rules import ANIMAL_RULES, FORM_DEFINITIONS, is_image_data_url
from zoo_portal.business.models import FormClass
from zoo_portal.utils.validators import FieldValidator, ValidationRule, is_valid_email

LATITUDE = ValidationRule('animalLat', 'latitude', minimum=-90, maximum=90)
NAME = ValidationRule('animalName', 'name', pattern=r"[A-Za-z ]{3,}", message='Name must be 3+ letters/spaces.')


@pytest.fixture
def sink():
    return CollectingFeedbackSink()


@pytest.fixture
def validator(sink):
    return FieldValidator(sink)


@pytest.mark.unit
class TestValidationRule:

    def test_rule_requires_exactly_one_check(self):
        with pytest.raises(ValueError):
            ValidationRule('x', 'x')
        with pytest.raises(ValueError):
            ValidationRule('x', 'x', pattern='.+', minimum=0)

    def test_default_messages_use_label(self):
        rule = ValidationRule('species', 'species', pattern='.+')

        assert rule.failure_text == 'Please enter a valid species.'
        assert rule.success_text == 'Species looks good.'


@pytest.mark.unit
class TestFieldValidator:

    def test_pattern_match_trims_value(self, validator):
        result = validator.validate('  Kiki Koala  ', NAME)

        assert result.ok is True
        assert result.value == 'Kiki Koala'

    def test_pattern_must_match_whole_value(self, validator):
        assert validator.validate('Kiki42', NAME).ok is False

    def test_absent_input_fails(self, validator, sink):
        result = validator.validate(None, NAME)

        assert result.ok is False
        assert result.value is None
        assert sink.fields['animalName'].ok is False

    @pytest.mark.parametrize('value', ['-90', '0', '45.5', '90'])
    def test_range_accepts_closed_interval(self, validator, value):
        assert validator.validate(value, LATITUDE).ok is True

    @pytest.mark.parametrize('value', ['-90.01', '91', 'nan', 'inf', '-inf', 'north', ''])
    def test_range_rejects_out_of_range_and_non_finite(self, validator, value):
        assert validator.validate(value, LATITUDE).ok is False

    def test_integer_rule_rejects_fractions(self, validator):
        rule = ValidationRule('groupSize', 'group size', minimum=1, integer=True)

        assert validator.validate('2', rule).ok is True
        assert validator.validate('2.5', rule).ok is False
        assert validator.validate('0', rule).ok is False

    def test_predicate_errors_count_as_failure(self, validator):
        rule = ValidationRule('n', 'number', predicate=lambda v: int(v) > 0)

        assert validator.validate('abc', rule).ok is False

    def test_optional_rule_accepts_empty(self, validator):
        rule = ValidationRule('photo', 'photo', predicate=is_image_data_url, required=False)

        assert validator.validate('', rule).ok is True
        assert validator.validate('not-a-data-url', rule).ok is False

    def test_every_call_reports_feedback(self, validator, sink):
        validator.validate('Kiki', NAME)
        assert sink.fields['animalName'].ok is True

        validator.validate('K', NAME)
        assert sink.fields['animalName'].ok is False
        assert sink.fields['animalName'].message == 'Name must be 3+ letters/spaces.'

    def test_case_insensitive_pattern_flags(self, validator):
        rule = ValidationRule('animalStatus', 'status', pattern='Open|Closed', flags=re.IGNORECASE)

        assert validator.validate('oPeN', rule).ok is True
        assert validator.validate('Opened', rule).ok is False


@pytest.mark.unit
class TestFormValidation:

    def test_every_rule_is_evaluated(self, validator, sink, animal_fields):
        animal_fields['animalName'] = 'K'
        animal_fields['animalLat'] = '120'

        outcome = validator.validate_form(animal_fields, ANIMAL_RULES)

        assert outcome.ok is False
        assert set(outcome.failures) == {'animalName', 'animalLat'}
        assert set(sink.fields) == {rule.field_id for rule in ANIMAL_RULES}

    def test_valid_form_returns_trimmed_values(self, validator, animal_fields):
        animal_fields['animalSpecies'] = ' Koala '

        outcome = validator.validate_form(animal_fields, ANIMAL_RULES)

        assert outcome.ok is True
        assert outcome.values['animalSpecies'] == 'Koala'

    def test_missing_field_fails_form(self, validator, animal_fields):
        del animal_fields['animalImage']

        outcome = validator.validate_form(animal_fields, ANIMAL_RULES)

        assert outcome.ok is False
        assert 'animalImage' in outcome.failures


@pytest.mark.unit
class TestFormRules:

    def test_booking_phone_message(self, validator):
        rules = {r.field_id: r for r in FORM_DEFINITIONS[FormClass.BOOKING].rules}

        result = validator.validate('0234567890', rules['contact'])

        assert result.message == 'Invalid phone number. Must be 10 digits.'

    def test_email_rule(self):
        assert is_valid_email('keeper@zoo-portal.org') is True
        assert is_valid_email('not-an-email') is False

    def test_image_data_url(self):
        assert is_image_data_url('data:image/png;base64,iVBORw0KGgo=') is True
        assert is_image_data_url('data:text/html;base64,PHA+') is False
