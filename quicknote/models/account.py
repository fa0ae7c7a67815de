from typing import Optional

from sqlmodel import Field

from .base import TimestampMixin


class Account(TimestampMixin, table=True):
    """Registered user: one email, one hashed credential, active once confirmed"""
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(max_length=255, unique=True, index=True)
    password_hash: str = Field(max_length=255)
    active: bool = Field(default=False, description="False until the email is confirmed")
