from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from gradebook.core.enums import Gender, Level


class StudentCreate(BaseModel):
    matricule: str = Field(..., min_length=1, max_length=50, description="Unique per school")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    level: Level


class StudentUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    level: Optional[Level] = None


class StudentResponse(BaseModel):
    id: UUID
    school_id: UUID
    matricule: str
    first_name: str
    last_name: str
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    level: str
    class_id: Optional[UUID] = None
    class_name: Optional[str] = Field(None, description="Current class name; populated when the student has a class")
    academic_year_ids: List[UUID] = Field(default_factory=list)
    created_at: datetime
