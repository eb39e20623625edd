from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class NoteCreateRequest(BaseModel):
    question_id: int
    content: str = Field(min_length=1)
    template_used: Optional[str] = None


class NoteUpdateRequest(BaseModel):
    content: str = Field(min_length=1)
    template_used: Optional[str] = None


class NoteItem(BaseModel):
    id: int
    question_id: int
    question_title: Optional[str] = None
    content: str
    template_used: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class NoteListResponse(BaseModel):
    notes: List[NoteItem]
