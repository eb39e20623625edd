import json
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.change_log import ChangeLog


class ChangeLogRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, change_type: str, changes: Dict[str, Any], question_id: int | None = None) -> ChangeLog:
        entry = ChangeLog(
            question_id=question_id,
            change_type=change_type,
            changes_json=json.dumps(changes, default=str),
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def list(self, change_type: str | None = None, offset: int = 0, limit: int = 50) -> List[ChangeLog]:
        stmt = select(ChangeLog)
        if change_type:
            stmt = stmt.where(ChangeLog.change_type == change_type)
        stmt = stmt.order_by(ChangeLog.created_at.desc(), ChangeLog.id.desc()).offset(offset).limit(limit)
        return list(self.db.scalars(stmt).all())

    def count(self, change_type: str | None = None) -> int:
        stmt = select(func.count(ChangeLog.id))
        if change_type:
            stmt = stmt.where(ChangeLog.change_type == change_type)
        return self.db.scalar(stmt) or 0

    @staticmethod
    def parse_changes(entry: ChangeLog) -> Dict[str, Any]:
        try:
            return json.loads(entry.changes_json or "{}")
        except ValueError:
            return {}
