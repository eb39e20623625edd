from typing import Any, Iterable, List

from sqlalchemy import case, exists, func, literal, or_, select
from sqlalchemy.orm import Session

from app.core.cache_keys import QuestionFilters, SortOptions
from app.models.question import Question
from app.models.user_progress import UserProgress

DIFFICULTY_ORDER = {"EASY": 1, "MEDIUM": 2, "HARD": 3}

SORT_COLUMNS = {
    "title": Question.title,
    "difficulty": case(DIFFICULTY_ORDER, value=Question.difficulty, else_=len(DIFFICULTY_ORDER) + 1),
    "frequency": Question.frequency,
    "acceptanceRate": Question.acceptance_rate,
}


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _tag_condition(column, tags: Iterable[str]):
    wrapped = literal(",").concat(column).concat(",")
    return or_(*[wrapped.like(f"%,{_escape_like(tag)},%", escape="\\") for tag in tags])


class QuestionRepository:
    def __init__(self, db: Session):
        self.db = db

    def _conditions(self, filters: QuestionFilters, user_id: int | None = None) -> List[Any]:
        filters = filters.normalized()
        conditions = []
        if filters.search:
            conditions.append(Question.title.ilike(f"%{_escape_like(filters.search)}%", escape="\\"))
        if filters.difficulty:
            conditions.append(Question.difficulty == filters.difficulty)
        if filters.topics:
            conditions.append(_tag_condition(Question.topics_csv, filters.topics))
        if filters.companies:
            conditions.append(_tag_condition(Question.companies_csv, filters.companies))
        if user_id is not None and filters.status in {"DONE", "NOT_DONE"}:
            done = exists().where(
                UserProgress.question_id == Question.id,
                UserProgress.user_id == user_id,
                UserProgress.status == "DONE",
            )
            conditions.append(done if filters.status == "DONE" else ~done)
        return conditions

    def list_page(
        self,
        filters: QuestionFilters,
        sort: SortOptions,
        offset: int,
        limit: int,
        user_id: int | None = None,
    ) -> List[Question]:
        column = SORT_COLUMNS.get(sort.field, Question.title)
        order = column.desc() if sort.direction == "desc" else column.asc()
        stmt = (
            select(Question)
            .where(*self._conditions(filters, user_id))
            .order_by(order, Question.id.asc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.scalars(stmt).all())

    def count(self, filters: QuestionFilters | None = None, user_id: int | None = None) -> int:
        stmt = select(func.count(Question.id))
        if filters is not None:
            stmt = stmt.where(*self._conditions(filters, user_id))
        return self.db.scalar(stmt) or 0

    def list_all(self) -> List[Question]:
        return list(self.db.scalars(select(Question).order_by(Question.id)).all())

    def list_tag_columns(self) -> List[tuple[str, str]]:
        rows = self.db.execute(select(Question.topics_csv, Question.companies_csv)).all()
        return [(row[0] or "", row[1] or "") for row in rows]

    def get_by_id(self, question_id: int) -> Question | None:
        return self.db.get(Question, question_id)

    def find_by_title(self, title: str) -> Question | None:
        stmt = select(Question).where(func.lower(Question.title) == title.strip().lower())
        return self.db.scalars(stmt).first()

    def create(self, **fields) -> Question:
        question = Question(**self._prepare(fields))
        self.db.add(question)
        self.db.commit()
        self.db.refresh(question)
        return question

    def update(self, question: Question, **fields) -> Question:
        for name, value in self._prepare(fields).items():
            setattr(question, name, value)
        self.db.add(question)
        self.db.commit()
        self.db.refresh(question)
        return question

    def delete(self, question: Question):
        self.db.delete(question)
        self.db.commit()

    @staticmethod
    def _prepare(fields: dict) -> dict:
        prepared = dict(fields)
        if "topics" in prepared:
            prepared["topics_csv"] = QuestionRepository.join_tags(prepared.pop("topics"))
        if "companies" in prepared:
            prepared["companies_csv"] = QuestionRepository.join_tags(prepared.pop("companies"))
        return prepared

    @staticmethod
    def join_tags(tags: Iterable[str] | None) -> str:
        seen: List[str] = []
        for tag in tags or []:
            value = tag.strip()
            if value and value not in seen:
                seen.append(value)
        return ",".join(seen)

    @staticmethod
    def split_tags(csv_value: str | None) -> List[str]:
        return [item.strip() for item in (csv_value or "").split(",") if item.strip()]

    @staticmethod
    def parse_topics(question: Question) -> List[str]:
        return QuestionRepository.split_tags(question.topics_csv)

    @staticmethod
    def parse_companies(question: Question) -> List[str]:
        return QuestionRepository.split_tags(question.companies_csv)
