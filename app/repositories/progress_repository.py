from datetime import datetime
from typing import Dict, Iterable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.models.user_progress import UserProgress


class ProgressRepository:
    def __init__(self, db: Session):
        self.db = db

    def upsert(self, user_id: int, question_id: int, status: str) -> UserProgress:
        stmt = select(UserProgress).where(
            UserProgress.user_id == user_id,
            UserProgress.question_id == question_id,
        )
        progress = self.db.scalars(stmt).first()
        if progress is None:
            progress = UserProgress(user_id=user_id, question_id=question_id, status=status)
        else:
            progress.status = status
            progress.updated_at = datetime.utcnow()
        self.db.add(progress)
        self.db.commit()
        self.db.refresh(progress)
        return progress

    def status_map(self, user_id: int, question_ids: Iterable[int]) -> Dict[int, str]:
        ids = list(question_ids)
        if not ids:
            return {}
        stmt = select(UserProgress.question_id, UserProgress.status).where(
            UserProgress.user_id == user_id,
            UserProgress.question_id.in_(ids),
        )
        return {question_id: status for question_id, status in self.db.execute(stmt).all()}

    def delete_for_question(self, question_id: int):
        self.db.execute(delete(UserProgress).where(UserProgress.question_id == question_id))
