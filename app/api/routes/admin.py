import logging
from datetime import datetime, timezone
from math import ceil
from typing import Literal

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from app.api.deps import get_query_cache, require_admin
from app.core.cache import QueryCache
from app.core.security import Caller
from app.db.session import get_db
from app.repositories.change_log_repository import ChangeLogRepository
from app.repositories.note_repository import NoteRepository
from app.repositories.progress_repository import ProgressRepository
from app.repositories.question_repository import QuestionRepository
from app.schemas.admin import (
    CacheClearResponse,
    CacheStatsBody,
    CacheStatsResponse,
    ChangeLogItem,
    ChangeLogResponse,
    ChangeQuestion,
    CsvImportResponse,
    Pagination,
    RegenerateFiltersResponse,
    TagCleanupItem,
    TagCleanupResponse,
)
from app.schemas.question import QuestionMutationResponse, QuestionPayload
from app.services.csv_import_service import CsvFormatError, CsvImportService
from app.services.question_listing_service import QuestionListingService, clean_tags, question_to_item

logger = logging.getLogger("dsa_tracker.api.admin")

router = APIRouter(prefix="/admin", tags=["admin"])


def _payload_fields(body: QuestionPayload) -> dict:
    return {
        "title": body.title.strip(),
        "difficulty": body.difficulty,
        "frequency": body.frequency,
        "acceptance_rate": body.acceptance_rate,
        "link": body.link or None,
        "topics": body.topics,
        "companies": body.companies,
    }


@router.post("/questions", response_model=QuestionMutationResponse)
def create_question(
    body: QuestionPayload,
    admin: Caller = Depends(require_admin),
    cache: QueryCache = Depends(get_query_cache),
    db: Session = Depends(get_db),
):
    repo = QuestionRepository(db)
    if repo.find_by_title(body.title):
        raise HTTPException(status_code=409, detail="A question with this title already exists")

    fields = _payload_fields(body)
    question = repo.create(**fields)
    ChangeLogRepository(db).add("NEW", {"new": fields, "adminEdit": True}, question_id=question.id)
    cache.invalidate_all()
    logger.info("Question %s created by admin %s", question.id, admin.user_id)

    return QuestionMutationResponse(question=question_to_item(question))


@router.put("/questions/{question_id}", response_model=QuestionMutationResponse)
def update_question(
    question_id: int,
    body: QuestionPayload,
    admin: Caller = Depends(require_admin),
    cache: QueryCache = Depends(get_query_cache),
    db: Session = Depends(get_db),
):
    repo = QuestionRepository(db)
    question = repo.get_by_id(question_id)
    if not question:
        raise HTTPException(status_code=404, detail="Question not found")

    fields = _payload_fields(body)
    question = repo.update(question, **fields)
    ChangeLogRepository(db).add("UPDATED", {"new": fields, "adminEdit": True}, question_id=question.id)
    cache.invalidate_all()
    logger.info("Question %s updated by admin %s", question.id, admin.user_id)

    return QuestionMutationResponse(question=question_to_item(question))


@router.delete("/questions/{question_id}", response_model=QuestionMutationResponse)
def delete_question(
    question_id: int,
    admin: Caller = Depends(require_admin),
    cache: QueryCache = Depends(get_query_cache),
    db: Session = Depends(get_db),
):
    repo = QuestionRepository(db)
    question = repo.get_by_id(question_id)
    if not question:
        raise HTTPException(status_code=404, detail="Question not found")

    deleted = question_to_item(question).model_dump(mode="json", exclude={"status", "notes_count"})
    ProgressRepository(db).delete_for_question(question_id)
    NoteRepository(db).delete_for_question(question_id)
    repo.delete(question)
    ChangeLogRepository(db).add("DELETED", {"deleted": deleted, "adminDelete": True})
    cache.invalidate_all()
    logger.info("Question %s deleted by admin %s", question_id, admin.user_id)

    return QuestionMutationResponse(message="Question deleted successfully")


@router.post("/upload", response_model=CsvImportResponse)
async def upload_questions(
    file: UploadFile = File(...),
    admin: Caller = Depends(require_admin),
    cache: QueryCache = Depends(get_query_cache),
    db: Session = Depends(get_db),
):
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="File must be a CSV")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file provided")

    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV must be UTF-8 encoded")

    importer = CsvImportService(db)
    try:
        result = importer.import_text(text)
    except CsvFormatError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    finally:
        # rows commit one by one, so a failure midway still leaves writes behind
        if importer.rows_written:
            cache.invalidate_all()

    logger.info(
        "CSV import by admin %s: %d created, %d updated, %d errors",
        admin.user_id,
        result.created,
        result.updated,
        len(result.errors),
    )

    return CsvImportResponse(
        processed=result.processed,
        created=result.created,
        updated=result.updated,
        errors=result.errors,
    )


@router.get("/cache", response_model=CacheStatsResponse)
def get_cache_stats(
    admin: Caller = Depends(require_admin),
    cache: QueryCache = Depends(get_query_cache),
):
    stats = cache.stats()
    return CacheStatsResponse(
        stats=CacheStatsBody(size=stats.size, keys=stats.keys),
        timestamp=datetime.now(timezone.utc),
    )


@router.delete("/cache", response_model=CacheClearResponse)
def clear_cache(
    admin: Caller = Depends(require_admin),
    cache: QueryCache = Depends(get_query_cache),
):
    removed = cache.invalidate_all()
    logger.info("Cache cleared by admin %s (%d entries)", admin.user_id, removed)
    return CacheClearResponse(
        message="All caches cleared successfully",
        timestamp=datetime.now(timezone.utc),
    )


@router.post("/regenerate-filters", response_model=RegenerateFiltersResponse)
def regenerate_filters(
    admin: Caller = Depends(require_admin),
    cache: QueryCache = Depends(get_query_cache),
    db: Session = Depends(get_db),
):
    options = QuestionListingService(db, cache).compute_filter_options()
    cache.invalidate_all()
    return RegenerateFiltersResponse(
        topics=options.topics,
        companies=options.companies,
        timestamp=datetime.now(timezone.utc),
    )


@router.post("/cleanup-topics", response_model=TagCleanupResponse)
def cleanup_topics(
    admin: Caller = Depends(require_admin),
    cache: QueryCache = Depends(get_query_cache),
    db: Session = Depends(get_db),
):
    repo = QuestionRepository(db)
    results = []
    topics_removed = 0
    companies_removed = 0

    for question in repo.list_all():
        old_topics = QuestionRepository.parse_topics(question)
        old_companies = QuestionRepository.parse_companies(question)
        new_topics = sorted(clean_tags(old_topics))
        new_companies = sorted(clean_tags(old_companies))
        if new_topics == old_topics and new_companies == old_companies:
            continue

        repo.update(question, topics=new_topics, companies=new_companies, updated_at=datetime.utcnow())
        topics_removed += len(old_topics) - len(new_topics)
        companies_removed += len(old_companies) - len(new_companies)
        results.append(
            TagCleanupItem(
                question_id=question.id,
                old_topics=old_topics,
                new_topics=new_topics,
                old_companies=old_companies,
                new_companies=new_companies,
            )
        )

    cache.invalidate_all()
    logger.info("Tag cleanup by admin %s rewrote %d questions", admin.user_id, len(results))

    return TagCleanupResponse(
        message=(
            f"Cleaned {len(results)} questions. Removed {topics_removed} duplicate/malformed topics "
            f"and {companies_removed} duplicate/malformed companies."
        ),
        cleaned_count=len(results),
        total_topics_cleaned=topics_removed,
        total_companies_cleaned=companies_removed,
        results=results,
    )


@router.get("/changes", response_model=ChangeLogResponse)
def list_changes(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    change_type: Literal["NEW", "UPDATED", "DELETED"] | None = Query(default=None, alias="type"),
    admin: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    repo = ChangeLogRepository(db)
    questions = QuestionRepository(db)
    total = repo.count(change_type)

    items = []
    for entry in repo.list(change_type, offset=(page - 1) * limit, limit=limit):
        question = questions.get_by_id(entry.question_id) if entry.question_id else None
        items.append(
            ChangeLogItem(
                id=entry.id,
                change_type=entry.change_type,
                question_id=entry.question_id,
                question=(
                    ChangeQuestion(id=question.id, title=question.title, difficulty=question.difficulty)
                    if question
                    else None
                ),
                changes=ChangeLogRepository.parse_changes(entry),
                created_at=entry.created_at,
            )
        )

    return ChangeLogResponse(
        changes=items,
        pagination=Pagination(page=page, limit=limit, total=total, pages=ceil(total / limit)),
    )
