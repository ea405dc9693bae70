"""
Request payload schemas for the form API using marshmallow.

The schemas only shape the incoming payload: they keep the known field ids,
drop unknown keys, and coerce scalar values to text. Content checks belong to
the submission-safety layer so visitors get inline feedback rather than a
schema error. Missing fields load as ``None`` and fail validation there.
"""

from typing import Any, Dict, Mapping, Optional, Tuple

from marshmallow import EXCLUDE, Schema, ValidationError, fields

from zoo_portal.business.models import FormClass
from zoo_portal.business.rules import FORM_DEFINITIONS


class FormText(fields.Field):
    """Scalar form value delivered as text."""

    default_error_messages = {'invalid': 'Not a valid text value.'}

    def _serialize(self, value: Any, attr: str, obj: Any, **kwargs) -> Optional[str]:
        return None if value is None else str(value)

    def _deserialize(self, value: Any, attr: Optional[str], data: Optional[Dict], **kwargs) -> str:
        # bool is an int subclass but never a meaningful form value
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise self.make_error('invalid')
        return str(value)


class FormPayloadSchema(Schema):
    """Base schema for guarded form payloads."""

    class Meta:
        unknown = EXCLUDE

    csrf_token = FormText(load_default=None, allow_none=True)


def _build_schema(form_class: FormClass) -> Schema:
    definition = FORM_DEFINITIONS[form_class]
    schema_cls = FormPayloadSchema.from_dict(
        {field_id: FormText(load_default=None, allow_none=True) for field_id in definition.field_ids},
        name=f"{form_class.value.capitalize()}FormSchema"
    )
    return schema_cls()


FORM_SCHEMAS: Dict[FormClass, Schema] = {
    form_class: _build_schema(form_class) for form_class in FormClass
}


def load_form_payload(form_class: FormClass, data: Mapping[str, Any]) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Load a raw request payload for ``form_class``.

    Returns:
        Tuple of (field values keyed by field id, csrf token from the body)

    Raises:
        marshmallow.ValidationError: If a field holds a non-scalar value
    """
    loaded = FORM_SCHEMAS[form_class].load(dict(data))
    csrf_token = loaded.pop('csrf_token', None)
    return loaded, csrf_token


__all__ = ['FormText', 'FormPayloadSchema', 'FORM_SCHEMAS', 'load_form_payload', 'ValidationError']
