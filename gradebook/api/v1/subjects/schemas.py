from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from gradebook.core.schemas import YEAR_PATTERN


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=10, description="Stored upper-case; unique per school and year")
    year: str = Field(..., pattern=YEAR_PATTERN)
    description: Optional[str] = Field(None, max_length=500)
    weekly_hours: int = Field(4, ge=1, le=20)


class SubjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=10)
    description: Optional[str] = Field(None, max_length=500)
    weekly_hours: Optional[int] = Field(None, ge=1, le=20)
    is_active: Optional[bool] = None


class SubjectResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    code: str
    year: str
    description: Optional[str] = None
    weekly_hours: int
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
