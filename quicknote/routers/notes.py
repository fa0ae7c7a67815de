"""
Note pages, all scoped to the signed-in account
"""
from fastapi import APIRouter, Depends, Form, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from quicknote.core.auth import CurrentAccountId
from quicknote.core.csrf import verify_csrf
from quicknote.core.deps import DbSession
from quicknote.core.render import render_page
from quicknote.models.note import DEFAULT_NOTE_COLOR, NOTE_COLORS, Note
from quicknote.schemas.notes import NoteForm
from quicknote.schemas.users import field_errors
from quicknote.services.notes import NoteService

router = APIRouter(prefix="/notes", tags=["notes"], dependencies=[Depends(verify_csrf)])


def _owned_or_404(db: DbSession, note_id: int, account_id: int) -> Note:
    note = NoteService.get_owned(db, note_id, account_id)
    if note is None:
        raise HTTPException(status_code=404, detail="note not found")
    return note


def _form_page(request: Request, note: dict, errors=None, status_code: int = 200):
    page = "note-edit.html" if note.get("id") else "create.html"
    return render_page(
        request,
        page,
        {"note": note, "colors": NOTE_COLORS, "field_errors": errors or {}},
        status_code=status_code,
    )


@router.get("")
def list_notes(request: Request, db: DbSession, account_id: CurrentAccountId):
    notes = NoteService.list_for_owner(db, account_id)
    return render_page(request, "list.html", {"notes": notes})


@router.get("/create")
def create_page(request: Request, account_id: CurrentAccountId):
    return _form_page(request, {"id": 0, "title": "", "content": "", "color": DEFAULT_NOTE_COLOR})


@router.post("")
def save_note(
    request: Request,
    db: DbSession,
    account_id: CurrentAccountId,
    id: int = Form(0),
    title: str = Form(""),
    content: str = Form(""),
    color: str = Form(""),
):
    """Create a note, or update it when the form carries its id"""
    submitted = {"id": id, "title": title, "content": content, "color": color}
    try:
        form = NoteForm(**submitted)
    except ValidationError as e:
        return _form_page(request, submitted, field_errors(e), status.HTTP_422_UNPROCESSABLE_ENTITY)

    if form.id > 0:
        note = _owned_or_404(db, form.id, account_id)
        note = NoteService.update(db, note, title=form.title, content=form.content, color=form.color)
    else:
        note = NoteService.create(db, owner_id=account_id, title=form.title, content=form.content, color=form.color)
    return RedirectResponse(f"/notes/{note.id}", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/{note_id}")
def note_detail(request: Request, note_id: int, db: DbSession, account_id: CurrentAccountId):
    note = _owned_or_404(db, note_id, account_id)
    return render_page(request, "detail.html", {"note": note})


@router.get("/{note_id}/edit")
def edit_page(request: Request, note_id: int, db: DbSession, account_id: CurrentAccountId):
    note = _owned_or_404(db, note_id, account_id)
    return _form_page(
        request,
        {"id": note.id, "title": note.title, "content": note.content, "color": note.color},
    )


@router.delete("/{note_id}")
def delete_note(note_id: int, db: DbSession, account_id: CurrentAccountId):
    note = _owned_or_404(db, note_id, account_id)
    NoteService.delete(db, note)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
