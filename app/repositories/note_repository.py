from datetime import datetime
from typing import Dict, Iterable, List

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from app.models.user_note import UserNote


class NoteRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: int, question_id: int, content: str, template_used: str | None = None) -> UserNote:
        note = UserNote(user_id=user_id, question_id=question_id, content=content, template_used=template_used)
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        return note

    def get_owned(self, note_id: int, user_id: int) -> UserNote | None:
        note = self.db.get(UserNote, note_id)
        if not note or note.user_id != user_id:
            return None
        return note

    def update(self, note: UserNote, content: str, template_used: str | None = None) -> UserNote:
        note.content = content
        note.template_used = template_used
        note.updated_at = datetime.utcnow()
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        return note

    def delete(self, note: UserNote):
        self.db.delete(note)
        self.db.commit()

    def list(self, user_id: int, question_id: int | None = None, search: str | None = None) -> List[UserNote]:
        stmt = select(UserNote).where(UserNote.user_id == user_id)
        if question_id:
            stmt = stmt.where(UserNote.question_id == question_id)
        if search:
            stmt = stmt.where(UserNote.content.ilike(f"%{search}%"))
        stmt = stmt.order_by(UserNote.updated_at.desc(), UserNote.id.desc())
        return list(self.db.scalars(stmt).all())

    def count_by_question(self, user_id: int, question_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(question_ids)
        if not ids:
            return {}
        stmt = (
            select(UserNote.question_id, func.count(UserNote.id))
            .where(UserNote.user_id == user_id, UserNote.question_id.in_(ids))
            .group_by(UserNote.question_id)
        )
        return {question_id: count for question_id, count in self.db.execute(stmt).all()}

    def delete_for_question(self, question_id: int):
        self.db.execute(delete(UserNote).where(UserNote.question_id == question_id))
