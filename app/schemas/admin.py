from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CacheStatsBody(BaseModel):
    size: int
    keys: List[str]


class CacheStatsResponse(BaseModel):
    success: bool = True
    stats: CacheStatsBody
    timestamp: datetime


class CacheClearResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: datetime


class CsvImportResponse(BaseModel):
    success: bool = True
    processed: int = 0
    created: int = 0
    updated: int = 0
    errors: List[str] = Field(default_factory=list)


class RegenerateFiltersResponse(BaseModel):
    success: bool = True
    topics: List[str]
    companies: List[str]
    timestamp: datetime


class TagCleanupItem(BaseModel):
    question_id: int
    old_topics: List[str]
    new_topics: List[str]
    old_companies: List[str]
    new_companies: List[str]


class TagCleanupResponse(BaseModel):
    success: bool = True
    message: str
    cleaned_count: int
    total_topics_cleaned: int
    total_companies_cleaned: int
    results: List[TagCleanupItem] = Field(default_factory=list)


class ChangeQuestion(BaseModel):
    id: int
    title: str
    difficulty: str


class ChangeLogItem(BaseModel):
    id: int
    change_type: str
    question_id: Optional[int] = None
    question: Optional[ChangeQuestion] = None
    changes: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ChangeLogResponse(BaseModel):
    changes: List[ChangeLogItem]
    pagination: Pagination
