"""
Base models and enums for Quicknote
"""
from datetime import datetime, timezone
from enum import Enum

from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every table stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TokenPurpose(str, Enum):
    """What a user token proves when it is consumed"""
    CONFIRMATION = "confirmation"
    PASSWORD_RESET = "password_reset"


class TimestampMixin(SQLModel):
    """Mixin for the common timestamp columns"""
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
