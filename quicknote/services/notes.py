"""
CRUD service for notes
"""
import logging
from typing import List, Optional

from sqlmodel import Session, select

from quicknote.models.base import utcnow
from quicknote.models.note import Note

logger = logging.getLogger(__name__)


class NoteService:
    """Notes are only ever read or written through their owner"""

    @staticmethod
    def list_for_owner(session: Session, owner_id: int) -> List[Note]:
        return list(
            session.exec(
                select(Note).where(Note.user_id == owner_id).order_by(Note.updated_at.desc(), Note.id.desc())
            ).all()
        )

    @staticmethod
    def get_owned(session: Session, note_id: int, owner_id: int) -> Optional[Note]:
        """Note by id, None when it does not exist or belongs to someone else"""
        note = session.get(Note, note_id)
        if note is None or note.user_id != owner_id:
            return None
        return note

    @staticmethod
    def create(session: Session, *, owner_id: int, title: str, content: str, color: str) -> Note:
        note = Note(user_id=owner_id, title=title, content=content, color=color)
        session.add(note)
        session.commit()
        session.refresh(note)
        logger.debug("Note %s created for account %s", note.id, owner_id)
        return note

    @staticmethod
    def update(session: Session, note: Note, *, title: str, content: str, color: str) -> Note:
        note.title = title
        note.content = content
        note.color = color
        note.updated_at = utcnow()
        session.add(note)
        session.commit()
        session.refresh(note)
        return note

    @staticmethod
    def delete(session: Session, note: Note) -> None:
        session.delete(note)
        session.commit()
        logger.debug("Note %s deleted", note.id)
