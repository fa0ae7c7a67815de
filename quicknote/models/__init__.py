"""
SQLModel models for Quicknote
"""

from .base import (
    TokenPurpose,
    TimestampMixin,
    utcnow,
)

from .account import Account
from .token import UserToken
from .note import Note, NOTE_COLORS, DEFAULT_NOTE_COLOR
from .session import WebSession


__all__ = [
    "TokenPurpose",
    "TimestampMixin",
    "utcnow",
    "Account",
    "UserToken",
    "Note",
    "NOTE_COLORS",
    "DEFAULT_NOTE_COLOR",
    "WebSession",
]
