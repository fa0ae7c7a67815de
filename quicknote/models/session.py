from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field


class WebSession(SQLModel, table=True):
    """Server-side session addressed by the identifier kept in the browser cookie"""
    __tablename__ = "web_sessions"

    token: str = Field(primary_key=True, max_length=128)
    account_id: Optional[int] = Field(default=None, index=True)
    data: str = Field(default="{}", description="JSON encoded session values")
    expires_at: datetime = Field(index=True)
