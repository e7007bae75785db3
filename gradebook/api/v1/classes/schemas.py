from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from gradebook.core.enums import ClassStatus, EducationSystem, Level
from gradebook.core.schemas import YEAR_PATTERN


class ClassSubjectItem(BaseModel):
    subject_id: UUID
    coefficient: float = Field(1, ge=0, le=100)
    teacher_id: Optional[UUID] = None
    is_active: bool = True


class ClassSubjectPatch(BaseModel):
    coefficient: Optional[float] = Field(None, ge=0, le=100)
    teacher_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    status: ClassStatus = ClassStatus.OPEN
    capacity: Optional[int] = Field(None, ge=1)
    amount_fee: float = Field(0, ge=0)
    year: str = Field(..., pattern=YEAR_PATTERN)
    level: Level
    education_system: EducationSystem = EducationSystem.FRANCOPHONE
    section: str = Field("A", max_length=10)
    main_teacher_id: Optional[UUID] = None
    subjects: List[ClassSubjectItem] = Field(default_factory=list)


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    status: Optional[ClassStatus] = None
    capacity: Optional[int] = Field(None, ge=1)
    amount_fee: Optional[float] = Field(None, ge=0)
    section: Optional[str] = Field(None, max_length=10)
    main_teacher_id: Optional[UUID] = None


class ClassSubjectResponse(BaseModel):
    id: UUID
    subject_id: UUID
    subject_name: Optional[str] = None
    coefficient: float
    teacher_id: Optional[UUID] = None
    is_active: bool


class ClassResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    description: Optional[str] = None
    status: str
    capacity: Optional[int] = None
    amount_fee: float
    year: str
    level: str
    education_system: str
    section: str
    main_teacher_id: Optional[UUID] = None
    subjects: List[ClassSubjectResponse] = []
    student_list: List[UUID] = Field(default_factory=list, description="Academic year record ids on the roster")
    created_at: datetime
    updated_at: datetime
