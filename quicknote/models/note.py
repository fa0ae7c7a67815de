from typing import Optional

from sqlmodel import Field

from .base import TimestampMixin


NOTE_COLORS = [f"color{i}" for i in range(1, 10)]
DEFAULT_NOTE_COLOR = "color3"


class Note(TimestampMixin, table=True):
    __tablename__ = "notes"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    title: str = Field(max_length=255)
    content: str
    color: str = Field(default=DEFAULT_NOTE_COLOR, max_length=16)
