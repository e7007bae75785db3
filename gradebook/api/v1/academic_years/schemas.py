from datetime import datetime
from typing import Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from gradebook.core.schemas import YEAR_PATTERN

SubjectRef = Union[Literal["absences"], UUID]


class MarkModificationResponse(BaseModel):
    pre_mark: float
    mod_mark: float
    modified_by_name: str
    modified_by_id: UUID
    date_modified: datetime

    class Config:
        from_attributes = True


class SubjectMarkResponse(BaseModel):
    subject_id: UUID
    is_active: bool
    current_mark: float
    marks_active: bool
    rank: Optional[int] = None
    discipline: str
    modifications: List[MarkModificationResponse] = []

    class Config:
        from_attributes = True


class SequenceEntryResponse(BaseModel):
    sequence_id: UUID
    is_active: bool
    average: float
    rank: Optional[int] = None
    absences: int
    discipline: str
    subjects: List[SubjectMarkResponse] = []

    class Config:
        from_attributes = True


class TermEntryResponse(BaseModel):
    term_id: UUID
    average: float
    rank: Optional[int] = None
    discipline: str
    sequences: List[SequenceEntryResponse] = []

    class Config:
        from_attributes = True


class FeeResponse(BaseModel):
    bill_id: str
    type: Optional[str] = None
    amount: float
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class AcademicYearResponse(BaseModel):
    id: UUID
    school_id: UUID
    student_id: UUID
    year: str
    class_id: Optional[UUID] = None
    has_repeated: bool
    has_completed: bool
    rank: Optional[int] = None
    overall_average: float
    overall_status: str
    total_fees_paid: float
    has_failing_subjects: bool
    terms: List[TermEntryResponse] = []
    fees: List[FeeResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SequenceSkeleton(BaseModel):
    sequence_id: UUID
    subject_ids: List[UUID] = Field(default_factory=list)


class TermSkeleton(BaseModel):
    term_id: UUID
    sequences: List[SequenceSkeleton] = Field(default_factory=list)


class AcademicYearCreate(BaseModel):
    """Create a record directly, pre-seeded with a term/sequence/subject skeleton of catalog references."""

    student_id: UUID
    year: str = Field(..., pattern=YEAR_PATTERN)
    class_id: Optional[UUID] = None
    has_repeated: bool = False
    terms: List[TermSkeleton] = Field(default_factory=list)


class MarkUpdate(BaseModel):
    term_id: UUID
    sequence_id: UUID
    subject_id: SubjectRef = Field(..., description='Subject id, or "absences" to set the sequence absence count')
    new_mark: float


class BulkMarkItem(MarkUpdate):
    academic_year_id: UUID


class BulkMarkUpdate(BaseModel):
    updates: List[BulkMarkItem] = Field(..., min_length=1)


class BulkMarkFailure(BaseModel):
    academic_year_id: UUID
    error: str


class BulkMarkResult(BaseModel):
    processed: int
    failed_count: int
    failed: List[BulkMarkFailure] = []


class FeeCreate(BaseModel):
    bill_id: str = Field(..., min_length=1, max_length=100)
    type: Optional[str] = Field(None, max_length=100)
    amount: float = Field(..., ge=0)
    payment_method: Optional[str] = Field(None, max_length=50)
    payment_date: Optional[datetime] = None


class FeeUpdate(BaseModel):
    type: Optional[str] = Field(None, max_length=100)
    amount: Optional[float] = Field(None, ge=0)
    payment_method: Optional[str] = Field(None, max_length=50)
    payment_date: Optional[datetime] = None


class AtRiskEntry(BaseModel):
    academic_year_id: UUID
    student_id: UUID
    student_name: Optional[str] = None
    class_id: Optional[UUID] = None
    overall_average: float
    term_averages: List[float] = []
    has_failing_subjects: bool


class TopPerformer(BaseModel):
    academic_year_id: UUID
    student_id: UUID
    student_name: Optional[str] = None
    average: float
    status: str
    rank: Optional[int] = None


class ClassOverview(BaseModel):
    class_id: UUID
    year: str
    total_students: int
    average_class_average: float
    students_completed: int
    students_at_risk: int
    performance_distribution: Dict[str, int]
    top_performers: List[TopPerformer] = []


class SyncResult(BaseModel):
    subjects_added: int
    subjects_removed: int
    academic_year: AcademicYearResponse


class ReportStudent(BaseModel):
    id: UUID
    name: Optional[str] = None
    matricule: Optional[str] = None
    class_name: Optional[str] = None


class ReportSubjectLine(BaseModel):
    subject_id: UUID
    name: Optional[str] = None
    code: Optional[str] = None
    mark: float
    rank: Optional[int] = None
    discipline: str
    is_active: bool


class ReportSequenceLine(BaseModel):
    sequence_id: UUID
    name: Optional[str] = None
    average: float
    rank: Optional[int] = None
    absences: int
    discipline: str
    subjects: List[ReportSubjectLine] = []


class ReportTermLine(BaseModel):
    term_id: UUID
    name: Optional[str] = None
    average: float
    rank: Optional[int] = None
    discipline: str
    sequences: List[ReportSequenceLine] = []


class FeeSummary(BaseModel):
    total_paid: float
    payment_count: int
    by_type: Dict[str, float] = {}
    class_fee: Optional[float] = None
    outstanding: Optional[float] = None


class ReportCard(BaseModel):
    """Term report card when `term` is set (sequences and subject marks), otherwise the year report (term lines and fees)."""

    academic_year_id: UUID
    year: str
    student: ReportStudent
    term: Optional[ReportTermLine] = None
    overall_average: Optional[float] = None
    overall_status: Optional[str] = None
    rank: Optional[int] = None
    has_completed: Optional[bool] = None
    terms: List[ReportTermLine] = []
    fees: List[FeeResponse] = []
    total_fees_paid: Optional[float] = None


class PerformanceSummary(BaseModel):
    academic_year_id: UUID
    year: str
    student: ReportStudent
    overall_average: float
    overall_status: str
    overall_rank: Optional[int] = None
    has_completed: bool
    has_repeated: bool
    has_failing_subjects: bool
    failing_subjects: int
    total_absences: int
    terms: List[ReportTermLine] = []
    fees: FeeSummary
