from dataclasses import dataclass
from typing import Optional

import pytest

from sqlweave.core import column
from sqlweave.validation import (
    EmailValidator,
    MaxLengthValidator,
    MinValueValidator,
    RegexValidator,
    ValidationError,
    validate_record,
)


@dataclass
class Profile:
    username: str = column(required=True, validators=[RegexValidator(r"^[a-z0-9_]+$")], default="")
    age: int = column(validators=[MinValueValidator(13)], default=18)


def test_field_validation_error():
    with pytest.raises(ValidationError) as excinfo:
        validate_record(Profile(username="Invalid-Name"))
    assert "username" in excinfo.value.errors


def test_required_field_must_be_set():
    with pytest.raises(ValidationError) as excinfo:
        validate_record(Profile(age=20))
    assert excinfo.value.errors == {"username": ["This field is required."]}


def test_errors_are_collected_across_fields():
    with pytest.raises(ValidationError) as excinfo:
        validate_record(Profile(username="BAD", age=5))
    assert set(excinfo.value.errors) == {"username", "age"}
    assert "username:" in str(excinfo.value)


def test_record_clean_hook():
    @dataclass
    class Account:
        email: str = ""
        confirm_email: str = ""

        def clean(self):
            if self.email != self.confirm_email:
                raise ValidationError({"email": ["Emails must match."]})

    with pytest.raises(ValidationError) as excinfo:
        validate_record(Account(email="a@example.com", confirm_email="b@example.com"))
    assert excinfo.value.errors["email"] == ["Emails must match."]


def test_clean_hook_value_error_is_non_field():
    @dataclass
    class Window:
        start: int = 0
        end: int = 0

        def clean(self):
            if self.end < self.start:
                raise ValueError("end before start")

    with pytest.raises(ValidationError) as excinfo:
        validate_record(Window(start=5, end=1))
    assert excinfo.value.errors == {"__all__": ["end before start"]}
    assert str(excinfo.value) == "non-field: end before start"


def test_nullable_fields_pass():
    @dataclass
    class Nickname:
        nickname: Optional[str] = column(validators=[MaxLengthValidator(3)], default=None)

    validate_record(Nickname())


def test_email_validator():
    EmailValidator()("dev@example.com")
    with pytest.raises(ValueError):
        EmailValidator()("not-an-email")
