"""
Pydantic schema for the note form
"""
from pydantic import BaseModel, field_validator
from pydantic_core import PydanticCustomError

from quicknote.models.note import NOTE_COLORS
from quicknote.schemas.users import _required


class NoteForm(BaseModel):
    """Create and edit form; id 0 means a new note"""
    id: int = 0
    title: str
    content: str
    color: str

    @field_validator("title", "content")
    @classmethod
    def check_not_empty(cls, v: str) -> str:
        return _required(v)

    @field_validator("color")
    @classmethod
    def check_color(cls, v: str) -> str:
        v = _required(v)
        if v not in NOTE_COLORS:
            raise PydanticCustomError("color", "unknown color")
        return v
