from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SequenceCreate(BaseModel):
    term_id: UUID
    name: str = Field(..., min_length=1, max_length=50, description="e.g. Sequence 1")
    order: int = Field(..., ge=1, description="Position within the term; unique per term")
    start_date: date
    end_date: date
    is_active: bool = True
    set_as_current: bool = False


class SequenceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    order: Optional[int] = Field(None, ge=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None


class SequenceResponse(BaseModel):
    id: UUID
    school_id: UUID
    term_id: UUID
    name: str
    order: int
    start_date: date
    end_date: date
    status: str
    is_current: bool
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
