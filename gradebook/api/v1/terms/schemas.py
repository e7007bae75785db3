from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class TermCreate(BaseModel):
    academic_year_detail_id: UUID
    name: str = Field(..., min_length=1, max_length=50, description="e.g. Term 1")
    order: int = Field(..., ge=1, description="Position within the academic year; unique per year")
    start_date: date
    end_date: date
    is_active: bool = False
    set_as_current: bool = False


class TermUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    order: Optional[int] = Field(None, ge=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None


class TermResponse(BaseModel):
    id: UUID
    school_id: UUID
    academic_year_detail_id: UUID
    name: str
    order: int
    start_date: date
    end_date: date
    status: str
    is_current: bool
    is_active: bool
    sequence_ids: List[UUID] = []
    created_at: datetime

    class Config:
        from_attributes = True
