"""
Pydantic schemas for the HTML forms
"""

from .users import (
    PASSWORD_MIN_LENGTH,
    PASSWORD_MAX_LENGTH,
    SignUpForm,
    SignInForm,
    EmailForm,
    ResetPasswordForm,
    field_errors,
)
from .notes import NoteForm


__all__ = [
    "PASSWORD_MIN_LENGTH",
    "PASSWORD_MAX_LENGTH",
    "SignUpForm",
    "SignInForm",
    "EmailForm",
    "ResetPasswordForm",
    "field_errors",
    "NoteForm",
]
