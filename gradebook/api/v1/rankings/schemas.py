from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from gradebook.core.schemas import YEAR_PATTERN


class YearRankRequest(BaseModel):
    class_id: UUID
    year: str = Field(..., pattern=YEAR_PATTERN)


class TermRankRequest(YearRankRequest):
    term_id: UUID


class SequenceRankRequest(TermRankRequest):
    sequence_id: UUID


class SubjectRankRequest(SequenceRankRequest):
    subject_id: UUID


class RankEntry(BaseModel):
    academic_year_id: UUID
    student_id: UUID
    student_name: Optional[str] = None
    value: float
    rank: int


class RankAllResult(BaseModel):
    subject: List[RankEntry] = []
    sequence: List[RankEntry] = []
    term: List[RankEntry] = []
    year: List[RankEntry] = []


class SubjectRanking(BaseModel):
    subject_id: UUID
    ranks: List[RankEntry] = []


class SequenceRanking(BaseModel):
    sequence_id: UUID
    ranks: List[RankEntry] = []
    subjects: List[SubjectRanking] = []


class TermRanking(BaseModel):
    term_id: UUID
    ranks: List[RankEntry] = []
    sequences: List[SequenceRanking] = []


class ClassYearRanking(BaseModel):
    class_id: UUID
    year: str
    total_students: int
    terms: List[TermRanking] = []
    year_ranks: List[RankEntry] = []
