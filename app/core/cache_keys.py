"""Canonical cache keys for question-listing queries.

Both the server cache and the client cache derive keys here, so two
requests that mean the same thing (topics ``["B", "A"]`` vs ``["A", "B"]``)
always land on the same entry.
"""

import json
from dataclasses import dataclass, field
from typing import Iterable

ANONYMOUS = "anonymous"
STATUS_ALL = "ALL"

QUESTIONS_NAMESPACE = "questions"
FILTERS_CACHE_KEY = "filters:topics-companies"


def normalize_tags(values: Iterable[str] | None) -> tuple[str, ...]:
    if not values:
        return ()
    return tuple(sorted({item.strip() for item in values if item and item.strip()}))


@dataclass(frozen=True)
class QuestionFilters:
    search: str | None = None
    difficulty: str | None = None
    topics: tuple[str, ...] = field(default_factory=tuple)
    companies: tuple[str, ...] = field(default_factory=tuple)
    status: str | None = None

    def normalized(self) -> "QuestionFilters":
        return QuestionFilters(
            search=self.search or "",
            difficulty=self.difficulty or "",
            topics=normalize_tags(self.topics),
            companies=normalize_tags(self.companies),
            status=self.status or STATUS_ALL,
        )

    @property
    def is_empty(self) -> bool:
        normalized = self.normalized()
        return (
            not normalized.search
            and not normalized.difficulty
            and not normalized.topics
            and not normalized.companies
            and normalized.status == STATUS_ALL
        )


@dataclass(frozen=True)
class SortOptions:
    field: str = "title"
    direction: str = "asc"


@dataclass(frozen=True)
class QueryParams:
    filters: QuestionFilters = field(default_factory=QuestionFilters)
    sort: SortOptions = field(default_factory=SortOptions)
    page: int = 1
    page_size: int = 25
    caller_identity: str | None = None

    def with_page(self, page: int) -> "QueryParams":
        return QueryParams(
            filters=self.filters,
            sort=self.sort,
            page=page,
            page_size=self.page_size,
            caller_identity=self.caller_identity,
        )

    def to_request_params(self) -> dict[str, str]:
        """Render the HTTP query string understood by ``GET /questions``."""
        filters = self.filters.normalized()
        return {
            "page": str(self.page),
            "limit": str(self.page_size),
            "search": filters.search,
            "difficulty": filters.difficulty,
            "topics": ",".join(filters.topics),
            "companies": ",".join(filters.companies),
            "status": filters.status,
            "sortField": self.sort.field,
            "sortDirection": self.sort.direction,
        }


def encode(params: QueryParams, namespace: str | None = None) -> str:
    filters = params.filters.normalized()
    payload = {
        "search": filters.search,
        "difficulty": filters.difficulty,
        "topics": list(filters.topics),
        "companies": list(filters.companies),
        "status": filters.status,
        "sortField": params.sort.field,
        "sortDirection": params.sort.direction,
        "page": params.page,
        "pageSize": params.page_size,
        "caller": params.caller_identity or ANONYMOUS,
    }
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    if namespace:
        return f"{namespace}:{body}"
    return body


def questions_cache_key(params: QueryParams) -> str:
    return encode(params, QUESTIONS_NAMESPACE)
