import logging
import re
from dataclasses import dataclass, replace
from typing import Iterable, List

from sqlalchemy.orm import Session

from app.core.cache import QueryCache
from app.core.cache_keys import FILTERS_CACHE_KEY, QueryParams, questions_cache_key
from app.core.config import Settings, settings
from app.core.http_cache import build_cache_headers, build_etag
from app.core.security import Caller
from app.models.question import Question
from app.repositories.note_repository import NoteRepository
from app.repositories.progress_repository import ProgressRepository
from app.repositories.question_repository import QuestionRepository
from app.schemas.question import FilterOptions, QuestionItem, QuestionListResponse
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger("dsa_tracker.listing")

_EDGE_QUOTES = re.compile(r"^[\"'`]+|[\"'`]+$")
_ANY_QUOTES = re.compile(r"[\"'`]")
_WHITESPACE = re.compile(r"\s+")

ESTIMATED_ACCEPTANCE_RATIO = 0.35


def clean_tag(value) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = _EDGE_QUOTES.sub("", value.strip())
    cleaned = _ANY_QUOTES.sub("", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned if len(cleaned) >= 2 else None


def clean_tags(values: Iterable[str]) -> List[str]:
    cleaned: List[str] = []
    for value in values:
        tag = clean_tag(value)
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def build_filter_options(tag_rows: Iterable[tuple[str, str]]) -> FilterOptions:
    topics: set[str] = set()
    companies: set[str] = set()
    for topics_csv, companies_csv in tag_rows:
        topics.update(clean_tags(QuestionRepository.split_tags(topics_csv)))
        companies.update(clean_tags(QuestionRepository.split_tags(companies_csv)))
    return FilterOptions(topics=sorted(topics), companies=sorted(companies))


def estimate_acceptance_rate(frequency: int | None) -> float | None:
    if not frequency or frequency <= 0:
        return None
    accepted = round(frequency * ESTIMATED_ACCEPTANCE_RATIO)
    return accepted / frequency * 100


def question_to_item(row: Question, status: str = "NOT_DONE", notes_count: int = 0) -> QuestionItem:
    return QuestionItem(
        id=row.id,
        title=row.title,
        difficulty=row.difficulty,
        frequency=row.frequency,
        acceptance_rate=row.acceptance_rate or estimate_acceptance_rate(row.frequency),
        link=row.link,
        topics=QuestionRepository.parse_topics(row),
        companies=QuestionRepository.parse_companies(row),
        created_at=row.created_at,
        updated_at=row.updated_at,
        status=status,
        notes_count=notes_count,
    )


@dataclass
class ListingResult:
    response: QuestionListResponse
    cacheable: bool
    cache_hit: bool = False
    max_age: float = 0
    etag: str | None = None

    @property
    def headers(self) -> dict[str, str]:
        return build_cache_headers(self.cacheable, self.max_age, self.etag)


class QuestionListingService:
    """Read-through listing of the question bank.

    Only the narrow "first page, no filters" shape is memoised; every
    key carries the caller identity so personalised status and notes
    counts never cross users.
    """

    def __init__(self, db: Session, cache: QueryCache, config: Settings = settings):
        self.db = db
        self.cache = cache
        self.config = config
        self.questions = QuestionRepository(db)

    def is_cacheable(self, params: QueryParams) -> bool:
        return (
            params.filters.is_empty
            and params.page in self.config.cacheable_pages
            and params.page_size <= self.config.cacheable_max_page_size
        )

    def is_default_view(self, params: QueryParams) -> bool:
        return params.filters.is_empty and params.page == 1 and params.page_size == self.config.default_page_size

    def cache_ttl(self, params: QueryParams) -> float:
        if self.is_default_view(params):
            return self.config.default_view_ttl_seconds
        return self.config.questions_cache_ttl_seconds

    def list_questions(self, params: QueryParams, caller: Caller) -> ListingResult:
        page_restricted = not caller.is_authenticated and params.page > 1
        params = replace(params, caller_identity=caller.identity, page=1 if page_restricted else params.page)

        cacheable = not page_restricted and self.is_cacheable(params)
        key = questions_cache_key(params)

        if cacheable:
            entry = self.cache.get_entry(key)
            if entry is not None:
                logger.debug("Listing cache hit for %s", caller.identity)
                return ListingResult(
                    response=entry.value,
                    cacheable=True,
                    cache_hit=True,
                    max_age=entry.remaining(self.cache.now()),
                    etag=build_etag(entry.created_at),
                )

        response = self._build_response(params, caller, page_restricted)

        if not cacheable:
            return ListingResult(response=response, cacheable=False)

        ttl = self.cache_ttl(params)
        entry = self.cache.set(key, response, ttl)
        logger.debug("Listing cache miss for %s, stored for %.0fs", caller.identity, ttl)
        return ListingResult(response=response, cacheable=True, max_age=ttl, etag=build_etag(entry.created_at))

    def get_filter_options(self) -> FilterOptions:
        cached = self.cache.get(FILTERS_CACHE_KEY)
        if cached is not None:
            return cached
        options = self.compute_filter_options()
        self.cache.set(FILTERS_CACHE_KEY, options, self.config.filters_cache_ttl_seconds)
        return options

    def compute_filter_options(self) -> FilterOptions:
        return build_filter_options(self.questions.list_tag_columns())

    def _build_response(self, params: QueryParams, caller: Caller, page_restricted: bool) -> QuestionListResponse:
        filters = params.filters.normalized()
        user_id = caller.user_id

        subscription_service = SubscriptionService(self.db, self.config.free_tier_max_questions)
        subscription = subscription_service.resolve(caller, self.questions.count())
        tier = subscription or subscription_service.free_tier()

        total_count = self.questions.count(filters, user_id)
        offset = (params.page - 1) * params.page_size
        limit = params.page_size

        premium_required = False
        if not tier.can_access_all and total_count > tier.max_questions:
            premium_required = True
            total_count = tier.max_questions
            limit = max(0, min(params.page_size, tier.max_questions - offset))

        rows = self.questions.list_page(filters, params.sort, offset, limit, user_id) if limit > 0 else []

        return QuestionListResponse(
            questions=self._annotate(rows, user_id),
            total_count=total_count,
            filters=self.get_filter_options(),
            subscription=subscription,
            premium_required=premium_required,
            is_authenticated=caller.is_authenticated,
            is_page_restricted=page_restricted,
        )

    def _annotate(self, rows: List[Question], user_id: int | None) -> List[QuestionItem]:
        statuses: dict[int, str] = {}
        notes_counts: dict[int, int] = {}
        if user_id is not None:
            ids = [row.id for row in rows]
            statuses = ProgressRepository(self.db).status_map(user_id, ids)
            notes_counts = NoteRepository(self.db).count_by_question(user_id, ids)

        return [
            question_to_item(row, statuses.get(row.id, "NOT_DONE"), notes_counts.get(row.id, 0))
            for row in rows
        ]
