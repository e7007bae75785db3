from typing import List
from uuid import UUID

from pydantic import BaseModel, Field

from gradebook.core.schemas import YEAR_PATTERN


class AssignStudentsRequest(BaseModel):
    student_ids: List[UUID] = Field(..., min_length=1)
    class_id: UUID
    year: str = Field(..., pattern=YEAR_PATTERN, description="Academic year name, e.g. 2024-2025")


class AssignmentFailure(BaseModel):
    student_id: UUID
    error: str


class AssignmentResult(BaseModel):
    created: int = 0
    updated: int = 0
    failed_count: int = 0
    failed: List[AssignmentFailure] = []
    total_processed: int = 0


class PromotionRequest(BaseModel):
    """Move a (class, year) cohort into new_year: completed records to passed_class_id, others repeat in fail_class_id."""

    class_id: UUID
    year: str = Field(..., pattern=YEAR_PATTERN)
    new_year: str = Field(..., pattern=YEAR_PATTERN)
    passed_class_id: UUID
    fail_class_id: UUID


class PromotionResult(BaseModel):
    promoted: int = 0
    repeating: int = 0
    failed_count: int = 0
    failed: List[AssignmentFailure] = []
    total_processed: int = 0
