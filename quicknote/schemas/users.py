"""
Pydantic schemas for the account forms
"""
from typing import Dict

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 20


def _required(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise PydanticCustomError("required", "field required")
    return value


def _email(value: str) -> str:
    value = _required(value)
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise PydanticCustomError("email", "invalid email")
    return value


def _password_length(value: str) -> str:
    if not value or not value.strip():
        raise PydanticCustomError("required", "field required")
    if not PASSWORD_MIN_LENGTH <= len(value) <= PASSWORD_MAX_LENGTH:
        raise PydanticCustomError(
            "password_length",
            "must have between {min} and {max} characters",
            {"min": PASSWORD_MIN_LENGTH, "max": PASSWORD_MAX_LENGTH},
        )
    return value


class SignUpForm(BaseModel):
    """Sign-up form"""
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _email(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _password_length(v)


class SignInForm(BaseModel):
    """Sign-in form, only presence and email shape are checked"""
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _email(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        if not v or not v.strip():
            raise PydanticCustomError("required", "field required")
        return v


class EmailForm(BaseModel):
    """Single email field: forgot password and resend confirmation"""
    email: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _email(v)


class ResetPasswordForm(BaseModel):
    """New password form reached from the reset link"""
    token: str
    new_password: str
    password_confirm: str

    @field_validator("token")
    @classmethod
    def check_token(cls, v: str) -> str:
        return _required(v)

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, v: str) -> str:
        return _password_length(v)

    @field_validator("password_confirm")
    @classmethod
    def check_confirmation(cls, v: str, info: ValidationInfo) -> str:
        if not v or not v.strip():
            raise PydanticCustomError("required", "field required")
        new_password = info.data.get("new_password")
        if new_password is not None and v != new_password:
            raise PydanticCustomError("password_mismatch", "passwords do not match")
        return v


def field_errors(exc: ValidationError) -> Dict[str, str]:
    """First error message per form field"""
    errors: Dict[str, str] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else "__all__"
        errors.setdefault(field, error["msg"])
    return errors
