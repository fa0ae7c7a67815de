from typing import Optional

from sqlmodel import Field

from .base import TimestampMixin, TokenPurpose


class UserToken(TimestampMixin, table=True):
    """Single-use token for email confirmation or password reset.

    created_at anchors the expiry window and is reset when the value is
    superseded.
    """
    __tablename__ = "user_tokens"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    value: str = Field(max_length=128, unique=True, index=True)
    purpose: TokenPurpose = Field(default=TokenPurpose.CONFIRMATION, index=True)
    confirmed: bool = Field(default=False, index=True)
