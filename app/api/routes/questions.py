import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from app.api.deps import get_caller, get_query_cache, require_user
from app.core.cache import QueryCache
from app.core.cache_keys import QueryParams, QuestionFilters, SortOptions
from app.core.config import settings
from app.core.security import Caller
from app.db.session import get_db
from app.repositories.progress_repository import ProgressRepository
from app.repositories.question_repository import QuestionRepository
from app.schemas.question import ProgressUpdateRequest, ProgressUpdateResponse, QuestionListResponse
from app.services.question_listing_service import QuestionListingService

logger = logging.getLogger("dsa_tracker.api.questions")

router = APIRouter(prefix="/questions", tags=["questions"])


def _split_csv(value: str | None) -> tuple[str, ...]:
    return tuple(item.strip() for item in (value or "").split(",") if item.strip())


@router.get("", response_model=QuestionListResponse)
def list_questions(
    response: Response,
    search: str | None = None,
    difficulty: Literal["EASY", "MEDIUM", "HARD", ""] | None = None,
    topics: str | None = None,
    companies: str | None = None,
    status: Literal["DONE", "NOT_DONE", "ALL", ""] | None = None,
    sort_field: Literal["title", "difficulty", "frequency", "acceptanceRate"] = Query(default="title", alias="sortField"),
    sort_direction: Literal["asc", "desc"] = Query(default="asc", alias="sortDirection"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=max(settings.page_size_options)),
    caller: Caller = Depends(get_caller),
    cache: QueryCache = Depends(get_query_cache),
    db: Session = Depends(get_db),
):
    params = QueryParams(
        filters=QuestionFilters(
            search=search,
            difficulty=difficulty,
            topics=_split_csv(topics),
            companies=_split_csv(companies),
            status=status,
        ),
        sort=SortOptions(field=sort_field, direction=sort_direction),
        page=page,
        page_size=limit,
    )
    result = QuestionListingService(db, cache).list_questions(params, caller)
    response.headers.update(result.headers)
    return result.response


@router.post("/progress", response_model=ProgressUpdateResponse)
def update_progress(
    body: ProgressUpdateRequest,
    caller: Caller = Depends(require_user),
    cache: QueryCache = Depends(get_query_cache),
    db: Session = Depends(get_db),
):
    if not QuestionRepository(db).get_by_id(body.question_id):
        raise HTTPException(status_code=404, detail="Question not found")

    progress = ProgressRepository(db).upsert(caller.user_id, body.question_id, body.status)
    cache.invalidate_all()
    logger.info("Progress for question %s set to %s by user %s", body.question_id, body.status, caller.user_id)

    return ProgressUpdateResponse(
        question_id=progress.question_id,
        status=progress.status,
        updated_at=progress.updated_at,
    )
