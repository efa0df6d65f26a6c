"""
Flask-WTF forms fed from JSON request bodies

Fields are populated through ``data=`` rather than ``formdata`` so JSON types
(ints, booleans, nulls) reach the fields untouched. Validators that would
reject a missing value are replaced by nullable variants.
"""

from flask import request
from flask_wtf import FlaskForm
from wtforms import BooleanField, Field, IntegerField
from wtforms.utils import unset_value
from wtforms.validators import NumberRange, StopValidation

from app.utils import errors
from app.utils.timezone_utils import isoformat, parse_datetime


def as_text(value):
    """Coerce scalars to text, keeping None"""
    if value is None:
        return None
    return str(value)


def strip_text(value):
    """Coerce scalars to trimmed text, keeping None"""
    if value is None:
        return None
    return str(value).strip()


class Present:
    """Stop validation when a field has no value at all"""

    def __init__(self, message="This field is required."):
        self.message = message

    def __call__(self, form, field):
        if field.data is None or field.data == "":
            field.errors[:] = []
            raise StopValidation(self.message)


class NullableNumberRange(NumberRange):
    """NumberRange that lets a missing value through"""

    def __call__(self, form, field):
        if field.data is None:
            return
        super().__call__(form, field)


class JSONIntegerField(IntegerField):
    """Takes JSON integers only; floats, strings and booleans are rejected"""

    def process_data(self, value):
        if value is None or value is unset_value:
            self.data = None
            return
        if isinstance(value, bool) or not isinstance(value, int):
            self.data = None
            raise ValueError(self.gettext("Not a valid integer value."))
        self.data = value


class JSONBooleanField(BooleanField):
    """Takes JSON booleans only, so the string "false" is an error rather than True"""

    def process_data(self, value):
        if value is None or value is unset_value:
            self.data = None
            return
        if not isinstance(value, bool):
            self.data = None
            raise ValueError(self.gettext("Not a valid boolean value."))
        self.data = value


class ISODateTimeField(Field):
    """Accepts ISO-8601 strings and stores an aware UTC datetime"""

    def process_data(self, value):
        try:
            self.data = parse_datetime(value)
        except (TypeError, ValueError):
            self.data = None
            raise ValueError(self.gettext("Not a valid ISO-8601 datetime."))

    def _value(self):
        return isoformat(self.data) or ""


class APIForm(FlaskForm):
    class Meta:
        csrf = False

    @classmethod
    def from_json(cls, payload=None):
        """Build the form from a JSON object (defaults to the request body)"""
        if payload is None:
            payload = request.get_json(silent=True)
            if payload is None:
                payload = {}
        if not isinstance(payload, dict):
            raise errors.ValidationError("Request body must be a JSON object")

        form = cls(formdata=None, data=payload)
        form.payload = payload
        return form

    def validate_or_raise(self):
        if not self.validate():
            raise errors.ValidationError("Invalid input", details=self.errors)
        return self

    def provided_data(self):
        """Values of the fields whose keys were present in the payload"""
        return {
            name: field.data
            for name, field in self._fields.items()
            if name in self.payload
        }
