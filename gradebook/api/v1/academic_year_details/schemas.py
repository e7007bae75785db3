from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from gradebook.core.schemas import YEAR_PATTERN


class AcademicYearDetailCreate(BaseModel):
    """Create the calendar shell of a school year. name must be unique per school."""

    name: str = Field(..., pattern=YEAR_PATTERN, description="e.g. 2024-2025")
    start_date: date
    end_date: date = Field(..., description="Must be after start_date")
    set_as_current: bool = Field(False, description="If true, all other years of the school become non-current.")


class AcademicYearDetailUpdate(BaseModel):
    name: Optional[str] = Field(None, pattern=YEAR_PATTERN)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class AcademicYearDetailResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    start_date: date
    end_date: date
    is_current: bool
    term_ids: List[UUID] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
