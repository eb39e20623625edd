from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import get_query_cache, require_user
from app.core.cache import QueryCache
from app.core.security import Caller
from app.db.session import get_db
from app.models.user_note import UserNote
from app.repositories.note_repository import NoteRepository
from app.repositories.question_repository import QuestionRepository
from app.schemas.note import NoteCreateRequest, NoteItem, NoteListResponse, NoteUpdateRequest

router = APIRouter(prefix="/notes", tags=["notes"])


def _to_item(note: UserNote, question_repo: QuestionRepository) -> NoteItem:
    question = question_repo.get_by_id(note.question_id)
    return NoteItem(
        id=note.id,
        question_id=note.question_id,
        question_title=question.title if question else None,
        content=note.content,
        template_used=note.template_used,
        created_at=note.created_at,
        updated_at=note.updated_at,
    )


@router.get("", response_model=NoteListResponse)
def list_notes(
    question_id: int | None = None,
    search: str | None = None,
    caller: Caller = Depends(require_user),
    db: Session = Depends(get_db),
):
    question_repo = QuestionRepository(db)
    notes = NoteRepository(db).list(caller.user_id, question_id=question_id, search=search)
    return NoteListResponse(notes=[_to_item(note, question_repo) for note in notes])


@router.post("", response_model=NoteItem)
def create_note(
    body: NoteCreateRequest,
    caller: Caller = Depends(require_user),
    cache: QueryCache = Depends(get_query_cache),
    db: Session = Depends(get_db),
):
    question_repo = QuestionRepository(db)
    if not question_repo.get_by_id(body.question_id):
        raise HTTPException(status_code=404, detail="Question not found")

    note = NoteRepository(db).create(caller.user_id, body.question_id, body.content, body.template_used)
    cache.invalidate_all()
    return _to_item(note, question_repo)


@router.put("/{note_id}", response_model=NoteItem)
def update_note(
    note_id: int,
    body: NoteUpdateRequest,
    caller: Caller = Depends(require_user),
    cache: QueryCache = Depends(get_query_cache),
    db: Session = Depends(get_db),
):
    repo = NoteRepository(db)
    note = repo.get_owned(note_id, caller.user_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")

    note = repo.update(note, body.content, body.template_used)
    cache.invalidate_all()
    return _to_item(note, QuestionRepository(db))


@router.delete("/{note_id}")
def delete_note(
    note_id: int,
    caller: Caller = Depends(require_user),
    cache: QueryCache = Depends(get_query_cache),
    db: Session = Depends(get_db),
):
    repo = NoteRepository(db)
    note = repo.get_owned(note_id, caller.user_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")

    repo.delete(note)
    cache.invalidate_all()
    return {"success": True}
