import pytest

from agrosanga.forms import (
    FarmDetailsForm,
    FieldError,
    LoginForm,
    RegistrationForm,
    read_form,
    sanitize_mobile,
    validate,
)
from tests.factories import registration


def test_valid_registration_yields_typed_form():
    result = validate(RegistrationForm, registration(name='  Ravi  ', survey_number='  '))

    assert result.ok
    assert result.errors == []
    assert result.form.name == 'Ravi'
    assert result.form.mobile_number == '9876543210'
    assert result.form.survey_number is None
    assert result.form.farm_area == 2.5


def test_survey_number_is_kept_when_given():
    result = validate(RegistrationForm, registration(survey_number=' SY-42/7 '))
    assert result.form.survey_number == 'SY-42/7'


@pytest.mark.parametrize('field,value,message', [
    ('name', '', "Name must be at least 2 characters"),
    ('name', ' R ', "Name must be at least 2 characters"),
    ('name', 'R' * 51, "Name must be less than 50 characters"),
    ('mobile_number', '98765', "Mobile number must be 10 digits"),
    ('mobile_number', '98765432101', "Mobile number must be 10 digits"),
    ('mobile_number', '98765abcde', "Mobile number must contain only numbers"),
    ('password', 'abc', "Password must be at least 6 characters"),
    ('password', 'x' * 101, "Password too long"),
    ('farm_area', '', "Farm area is required"),
    ('farm_area', 'abc', "Farm area must be a positive number"),
    ('farm_area', '0', "Farm area must be a positive number"),
    ('farm_area', '-1.5', "Farm area must be a positive number"),
    ('farm_area', 'nan', "Farm area must be a positive number"),
])
def test_single_failing_rule_blocks_and_marks_field(field, value, message):
    result = validate(RegistrationForm, registration(**{field: value}))

    assert not result.ok
    assert result.form is None
    assert result.errors == [FieldError(field, message)]


def test_each_field_reports_only_its_first_failure():
    result = validate(RegistrationForm, {
        'name': 'R',
        'mobile_number': '12ab',
        'password': '',
        'survey_number': None,
        'farm_area': None,
    })

    assert result.by_field() == {
        'name': "Name must be at least 2 characters",
        'mobile_number': "Mobile number must be 10 digits",
        'password': "Password must be at least 6 characters",
        'farm_area': "Farm area is required",
    }
    assert [e.field for e in result.errors] == ['name', 'mobile_number', 'password', 'farm_area']


def test_name_boundaries():
    assert validate(RegistrationForm, registration(name='Al')).ok
    assert validate(RegistrationForm, registration(name='A' * 50)).ok


def test_missing_fields_are_reported_not_raised():
    result = validate(LoginForm, {})
    assert set(result.by_field()) == {'mobile_number', 'password'}


def test_login_form():
    assert validate(LoginForm, {'mobile_number': '9876543210', 'password': 'secret1'}).ok

    result = validate(LoginForm, {'mobile_number': '9876543210', 'password': 'short'})
    assert result.errors == [FieldError('password', "Password must be at least 6 characters")]


@pytest.mark.parametrize('typed,expected', [
    ('9876543210', '9876543210'),
    ('98765-43210', '9876543210'),
    ('+91 98765 43210', '9198765432'),
    ('(987) 654-3210 ext 9', '9876543210'),
    ('abc', ''),
    ('', ''),
    (None, ''),
])
def test_sanitize_mobile_keeps_typed_digits_up_to_ten(typed, expected):
    assert sanitize_mobile(typed) == expected


def test_read_form_filters_mobile_number():
    data = read_form(LoginForm, {'mobile_number': '98 76-54 32 10', 'password': 'secret1', 'extra': 'x'})
    assert data == {'mobile_number': '9876543210', 'password': 'secret1'}


@pytest.mark.parametrize('value,message', [
    ('', "Farm area is required"),
    ('inf', "Farm area must be a positive number"),
    ('nan', "Farm area must be a positive number"),
    ('-2', "Farm area must be a positive number"),
])
def test_farm_details_follow_the_registration_rule(value, message):
    result = validate(FarmDetailsForm, {'farm_area': value, 'location': ''})
    assert result.errors == [FieldError('farm_area', message)]


def test_farm_details():
    result = validate(FarmDetailsForm, {'farm_area': '3', 'location': ' Pune '})
    assert result.form.farm_area == 3.0
    assert result.form.location == 'Pune'
