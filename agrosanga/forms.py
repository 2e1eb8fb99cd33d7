"""
Typed request structs for the registration and login forms.

`validate()` never raises for bad input: it returns the typed form, or a
list of `FieldError(field, message)` pairs, one per failing field (the
first rule that field breaks).
"""

import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, NamedTuple, Optional, Type

from pydantic import BaseModel, ValidationError, field_validator
from pydantic_core import PydanticCustomError

MOBILE_LENGTH = 10
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 100
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50

_NON_DIGITS = re.compile(r'\D')


class FieldError(NamedTuple):
    field: str
    message: str


def _fail(message):
    return PydanticCustomError('form_rule', message)


def sanitize_mobile(raw: Optional[str]) -> str:
    """Keep only the digits typed, at most ten of them."""
    return _NON_DIGITS.sub('', raw or '')[:MOBILE_LENGTH]


def _check_mobile(value):
    value = value or ''
    if len(value) != MOBILE_LENGTH:
        raise _fail("Mobile number must be 10 digits")
    if not value.isdigit() or not value.isascii():
        raise _fail("Mobile number must contain only numbers")
    return value


def _check_farm_area(value):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise _fail("Farm area is required")
    try:
        area = float(value)
    except (TypeError, ValueError):
        raise _fail("Farm area must be a positive number")
    if not math.isfinite(area) or area <= 0:
        raise _fail("Farm area must be a positive number")
    return area


def _check_password_min(value):
    value = value or ''
    if len(value) < MIN_PASSWORD_LENGTH:
        raise _fail("Password must be at least 6 characters")
    return value


class LoginForm(BaseModel):
    mobile_number: str
    password: str

    @field_validator('mobile_number', mode='before')
    @classmethod
    def _mobile(cls, value):
        return _check_mobile(value)

    @field_validator('password', mode='before')
    @classmethod
    def _password(cls, value):
        return _check_password_min(value)


class RegistrationForm(BaseModel):
    name: str
    mobile_number: str
    password: str
    survey_number: Optional[str] = None
    farm_area: float

    @field_validator('name', mode='before')
    @classmethod
    def _name(cls, value):
        value = (value or '').strip()
        if len(value) < MIN_NAME_LENGTH:
            raise _fail("Name must be at least 2 characters")
        if len(value) > MAX_NAME_LENGTH:
            raise _fail("Name must be less than 50 characters")
        return value

    @field_validator('mobile_number', mode='before')
    @classmethod
    def _mobile(cls, value):
        return _check_mobile(value)

    @field_validator('password', mode='before')
    @classmethod
    def _password(cls, value):
        value = _check_password_min(value)
        if len(value) > MAX_PASSWORD_LENGTH:
            raise _fail("Password too long")
        return value

    @field_validator('survey_number', mode='before')
    @classmethod
    def _survey_number(cls, value):
        value = (value or '').strip()
        return value or None

    @field_validator('farm_area', mode='before')
    @classmethod
    def _farm_area(cls, value):
        return _check_farm_area(value)


class FarmDetailsForm(BaseModel):
    """The crop recommendation page's farm details."""

    farm_area: float
    location: Optional[str] = None

    @field_validator('farm_area', mode='before')
    @classmethod
    def _farm_area(cls, value):
        return _check_farm_area(value)

    @field_validator('location', mode='before')
    @classmethod
    def _location(cls, value):
        value = (value or '').strip()
        return value or None


@dataclass
class ValidationResult:
    form: Optional[BaseModel] = None
    errors: List[FieldError] = field(default_factory=list)

    @property
    def ok(self):
        return not self.errors

    def by_field(self) -> Dict[str, str]:
        return {error.field: error.message for error in self.errors}


def validate(form_cls: Type[BaseModel], data: Mapping) -> ValidationResult:
    values = {name: data.get(name) for name in form_cls.model_fields}
    try:
        return ValidationResult(form=form_cls(**values))
    except ValidationError as e:
        errors = []
        seen = set()
        for err in e.errors():
            name = str(err['loc'][0]) if err['loc'] else '__all__'
            if name in seen:
                continue
            seen.add(name)
            errors.append(FieldError(name, err['msg']))
        return ValidationResult(errors=errors)


def read_form(form_cls: Type[BaseModel], form: Mapping) -> Dict[str, str]:
    """Pull the form's fields out of submitted data, filtering the mobile number as typed."""
    data = {name: form.get(name, '') for name in form_cls.model_fields}
    if 'mobile_number' in data:
        data['mobile_number'] = sanitize_mobile(data['mobile_number'])
    return data
