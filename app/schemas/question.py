from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Difficulty = Literal["EASY", "MEDIUM", "HARD"]
ProgressStatus = Literal["DONE", "NOT_DONE"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuestionItem(CamelModel):
    id: int
    title: str
    difficulty: Difficulty
    frequency: Optional[int] = None
    acceptance_rate: Optional[float] = None
    link: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    companies: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    status: ProgressStatus = "NOT_DONE"
    notes_count: int = 0


class FilterOptions(CamelModel):
    topics: List[str] = Field(default_factory=list)
    companies: List[str] = Field(default_factory=list)


class SubscriptionInfo(CamelModel):
    access_level: str = "FREE"
    max_questions: int
    is_active: bool = False
    plan_name: str = "Free Plan"
    end_date: Optional[datetime] = None
    total_questions: int = 0
    can_access_all: bool = False


class QuestionListResponse(CamelModel):
    questions: List[QuestionItem]
    total_count: int
    filters: FilterOptions
    subscription: Optional[SubscriptionInfo] = None
    premium_required: bool = False
    is_authenticated: bool = False
    is_page_restricted: bool = False


class QuestionPayload(BaseModel):
    title: str = Field(min_length=1)
    difficulty: Difficulty
    frequency: Optional[int] = Field(default=None, ge=0)
    acceptance_rate: Optional[float] = Field(default=None, ge=0, le=100)
    link: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    companies: List[str] = Field(default_factory=list)

    @field_validator("topics", "companies")
    @classmethod
    def reject_commas(cls, tags: List[str]) -> List[str]:
        # tags are stored comma-joined
        if any("," in tag for tag in tags):
            raise ValueError("tags must not contain commas")
        return tags


class PremiumStatusResponse(CamelModel):
    success: bool = True
    subscription: SubscriptionInfo


class QuestionMutationResponse(BaseModel):
    success: bool = True
    question: Optional[QuestionItem] = None
    message: Optional[str] = None


class ProgressUpdateRequest(BaseModel):
    question_id: int
    status: ProgressStatus


class ProgressUpdateResponse(BaseModel):
    success: bool = True
    question_id: int
    status: ProgressStatus
    updated_at: datetime
