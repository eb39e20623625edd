import csv
import io
import re
from dataclasses import dataclass, field
from typing import List

from sqlalchemy.orm import Session

from app.repositories.change_log_repository import ChangeLogRepository
from app.repositories.question_repository import QuestionRepository

DIFFICULTIES = {"EASY", "MEDIUM", "HARD"}

# (minimum frequency, estimated acceptance rate); popular questions skew harder
FREQUENCY_BANDS = [(80, 25.0), (60, 35.0), (40, 45.0), (20, 55.0)]
RARE_QUESTION_RATE = 65.0

_WHOLE_NUMBER = re.compile(r"[0-9]+")


class CsvFormatError(ValueError):
    pass


@dataclass
class ImportResult:
    processed: int = 0
    created: int = 0
    updated: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return self.created + self.updated


def calculate_acceptance_rate(frequency: int | None, acceptance_rate: str | None) -> float | None:
    if acceptance_rate:
        return float(acceptance_rate)
    if frequency and frequency > 0:
        for threshold, rate in FREQUENCY_BANDS:
            if frequency >= threshold:
                return rate
        return RARE_QUESTION_RATE
    return None


def _split(value: str | None) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def _merge(existing: List[str], incoming: List[str]) -> List[str]:
    merged = list(existing)
    for item in incoming:
        if item not in merged:
            merged.append(item)
    return merged


class CsvImportService:
    def __init__(self, db: Session):
        self.db = db
        self.questions = QuestionRepository(db)
        self.change_log = ChangeLogRepository(db)
        self.rows_written = 0

    @staticmethod
    def parse(text: str) -> List[dict]:
        reader = csv.DictReader(io.StringIO(text))
        if not reader.fieldnames:
            raise CsvFormatError("CSV file has no header row")
        reader.fieldnames = [name.lower().strip() for name in reader.fieldnames]
        if "title" not in reader.fieldnames or "difficulty" not in reader.fieldnames:
            raise CsvFormatError("CSV must contain title and difficulty columns")
        try:
            return [row for row in reader if any((value or "").strip() for value in row.values() if isinstance(value, str))]
        except csv.Error as exc:
            raise CsvFormatError(f"CSV parsing failed: {exc}") from exc

    @staticmethod
    def validate_row(row: dict) -> str | None:
        title = (row.get("title") or "").strip()
        difficulty = (row.get("difficulty") or "").strip()
        if not title:
            return "Title is required and cannot be empty"
        if not difficulty:
            return "Difficulty is required and cannot be empty"
        if difficulty.upper() not in DIFFICULTIES:
            return "Difficulty must be EASY, MEDIUM, or HARD"
        frequency = (row.get("frequency") or "").strip()
        if frequency and not _WHOLE_NUMBER.fullmatch(frequency):
            return "Frequency must be a whole number"
        acceptance = (row.get("acceptancerate") or "").strip()
        if acceptance:
            try:
                float(acceptance)
            except ValueError:
                return "Acceptance rate must be a number"
        return None

    def import_text(self, text: str) -> ImportResult:
        result = ImportResult()
        for index, row in enumerate(self.parse(text), start=1):
            error = self.validate_row(row)
            if error:
                result.errors.append(f"Row {index}: {error}")
                continue
            self._apply_row(row, index, result)
            result.processed += 1
        return result

    def _apply_row(self, row: dict, index: int, result: ImportResult):
        title = row["title"].strip()
        difficulty = row["difficulty"].strip().upper()
        topics = _split(row.get("topics"))
        companies = _split(row.get("companies"))
        frequency_raw = (row.get("frequency") or "").strip()
        acceptance_raw = (row.get("acceptancerate") or "").strip() or None
        link = (row.get("link") or "").strip() or None

        existing = self.questions.find_by_title(title)
        if existing is None:
            frequency = int(frequency_raw) if frequency_raw else None
            question = self.questions.create(
                title=title,
                difficulty=difficulty,
                frequency=frequency,
                acceptance_rate=calculate_acceptance_rate(frequency, acceptance_raw),
                link=link,
                topics=topics,
                companies=companies,
            )
            self.rows_written += 1
            self.change_log.add("NEW", {"new": self._snapshot(question), "csvRow": index}, question_id=question.id)
            result.created += 1
            return

        old = self._snapshot(existing)
        frequency = int(frequency_raw) if frequency_raw else existing.frequency
        question = self.questions.update(
            existing,
            difficulty=difficulty,
            frequency=frequency,
            acceptance_rate=calculate_acceptance_rate(frequency, acceptance_raw) or existing.acceptance_rate,
            link=link or existing.link,
            topics=_merge(QuestionRepository.parse_topics(existing), topics),
            companies=_merge(QuestionRepository.parse_companies(existing), companies),
        )
        self.rows_written += 1
        self.change_log.add(
            "UPDATED",
            {"old": old, "new": self._snapshot(question), "csvRow": index},
            question_id=question.id,
        )
        result.updated += 1

    @staticmethod
    def _snapshot(question) -> dict:
        return {
            "title": question.title,
            "difficulty": question.difficulty,
            "frequency": question.frequency,
            "acceptanceRate": question.acceptance_rate,
            "link": question.link,
            "topics": QuestionRepository.parse_topics(question),
            "companies": QuestionRepository.parse_companies(question),
        }
