"""
Per-student, per-year grading record.

The record owns a nested ledger: terms -> sequences -> subject marks -> modification history,
plus the fee payments made for that year. Child lists are searched linearly by catalog
reference and entries are created on first use (get-or-create), so a record can start
empty and fill in as marks arrive.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Mapping, Optional, Tuple
from uuid import UUID as PyUUID

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from gradebook.core import grading
from gradebook.core.enums import Discipline
from gradebook.db.session import Base

logger = logging.getLogger(__name__)

NOT_AVAILABLE = Discipline.NOT_AVAILABLE.value


class MarkModification(Base):
    __tablename__ = "mark_modifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subject_mark_id = Column(UUID(as_uuid=True), ForeignKey("subject_marks.id", ondelete="CASCADE"), nullable=False)
    pre_mark = Column(Float, nullable=False)
    mod_mark = Column(Float, nullable=False)
    modified_by_name = Column(String(255), nullable=False)
    modified_by_id = Column(UUID(as_uuid=True), nullable=False)
    date_modified = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    subject_mark = relationship("SubjectMark", back_populates="modifications")


class SubjectMark(Base):
    """Mark ledger of one subject in one sequence."""

    __tablename__ = "subject_marks"
    __table_args__ = (UniqueConstraint("sequence_entry_id", "subject_id", name="uq_subject_mark_sequence_subject"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sequence_entry_id = Column(
        UUID(as_uuid=True),
        ForeignKey("sequence_entries.id", ondelete="CASCADE"),
        nullable=False,
    )
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id"), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    current_mark = Column(Float, nullable=False, default=0)
    marks_active = Column(Boolean, nullable=False, default=True)
    rank = Column(Integer, nullable=True)
    discipline = Column(String(20), nullable=False, default=NOT_AVAILABLE)

    sequence_entry = relationship("SequenceEntry", back_populates="subjects")
    modifications = relationship(
        "MarkModification",
        back_populates="subject_mark",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="MarkModification.date_modified",
    )

    @classmethod
    def blank(cls, subject_id: PyUUID) -> "SubjectMark":
        return cls(
            subject_id=subject_id,
            is_active=True,
            current_mark=0,
            marks_active=True,
            rank=None,
            discipline=NOT_AVAILABLE,
            modifications=[],
        )

    @property
    def counts_toward_average(self) -> bool:
        return bool(self.is_active and self.marks_active)

    def record_mark(self, new_mark: float, modified_by_name: str, modified_by_id: PyUUID) -> MarkModification:
        change = MarkModification(
            pre_mark=self.current_mark or 0,
            mod_mark=new_mark,
            modified_by_name=modified_by_name,
            modified_by_id=modified_by_id,
            date_modified=datetime.utcnow(),
        )
        self.modifications.append(change)
        self.current_mark = new_mark
        self.discipline = grading.discipline_for(new_mark)
        return change


class SequenceEntry(Base):
    """Marks of one sequence: weighted average, absences and rank."""

    __tablename__ = "sequence_entries"
    __table_args__ = (UniqueConstraint("term_entry_id", "sequence_id", name="uq_sequence_entry_term_sequence"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    term_entry_id = Column(UUID(as_uuid=True), ForeignKey("term_entries.id", ondelete="CASCADE"), nullable=False)
    sequence_id = Column(UUID(as_uuid=True), ForeignKey("sequences.id"), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    average = Column(Float, nullable=False, default=0)
    rank = Column(Integer, nullable=True)
    absences = Column(Integer, nullable=False, default=0)
    discipline = Column(String(20), nullable=False, default=NOT_AVAILABLE)

    term_entry = relationship("TermEntry", back_populates="sequences")
    subjects = relationship(
        "SubjectMark",
        back_populates="sequence_entry",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @classmethod
    def blank(cls, sequence_id: PyUUID) -> "SequenceEntry":
        return cls(
            sequence_id=sequence_id,
            is_active=True,
            average=0,
            rank=None,
            absences=0,
            discipline=NOT_AVAILABLE,
            subjects=[],
        )

    def find_subject(self, subject_id: PyUUID) -> Optional[SubjectMark]:
        for entry in self.subjects:
            if entry.subject_id == subject_id:
                return entry
        return None

    def get_or_create_subject(self, subject_id: PyUUID) -> SubjectMark:
        entry = self.find_subject(subject_id)
        if entry is None:
            entry = SubjectMark.blank(subject_id)
            self.subjects.append(entry)
        return entry

    def calculate_average(self, coefficients: Mapping[PyUUID, float]) -> float:
        pairs: List[Tuple[float, float]] = []
        for entry in self.subjects:
            if not entry.counts_toward_average:
                continue
            coefficient = coefficients.get(entry.subject_id)
            if coefficient is None:
                logger.warning(
                    "No active class coefficient for subject %s in sequence %s; skipped",
                    entry.subject_id,
                    self.sequence_id,
                )
                continue
            pairs.append((entry.current_mark or 0, coefficient))
        self.average = grading.weighted_average(pairs)
        self.discipline = grading.discipline_for(self.average)
        return self.average


class TermEntry(Base):
    __tablename__ = "term_entries"
    __table_args__ = (UniqueConstraint("academic_year_id", "term_id", name="uq_term_entry_record_term"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    academic_year_id = Column(
        UUID(as_uuid=True),
        ForeignKey("academic_years.id", ondelete="CASCADE"),
        nullable=False,
    )
    term_id = Column(UUID(as_uuid=True), ForeignKey("terms.id"), nullable=False)
    average = Column(Float, nullable=False, default=0)
    rank = Column(Integer, nullable=True)
    discipline = Column(String(20), nullable=False, default=NOT_AVAILABLE)

    academic_year = relationship("AcademicYear", back_populates="terms")
    sequences = relationship(
        "SequenceEntry",
        back_populates="term_entry",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @classmethod
    def blank(cls, term_id: PyUUID) -> "TermEntry":
        return cls(term_id=term_id, average=0, rank=None, discipline=NOT_AVAILABLE, sequences=[])

    def find_sequence(self, sequence_id: PyUUID) -> Optional[SequenceEntry]:
        for entry in self.sequences:
            if entry.sequence_id == sequence_id:
                return entry
        return None

    def get_or_create_sequence(self, sequence_id: PyUUID) -> SequenceEntry:
        entry = self.find_sequence(sequence_id)
        if entry is None:
            entry = SequenceEntry.blank(sequence_id)
            self.sequences.append(entry)
        return entry

    def calculate_average(self) -> float:
        active = [entry.average or 0 for entry in self.sequences if entry.is_active]
        self.average = grading.mean(active)
        self.discipline = grading.discipline_for(self.average)
        return self.average


class FeePayment(Base):
    __tablename__ = "fee_payments"
    __table_args__ = (UniqueConstraint("academic_year_id", "bill_id", name="uq_fee_payment_record_bill"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    academic_year_id = Column(
        UUID(as_uuid=True),
        ForeignKey("academic_years.id", ondelete="CASCADE"),
        nullable=False,
    )
    bill_id = Column(String(100), nullable=False)
    type = Column(String(100), nullable=True)
    amount = Column(Float, nullable=False, default=0)
    payment_method = Column(String(50), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)

    academic_year = relationship("AcademicYear", back_populates="fees")


class AcademicYear(Base):
    """
    Grades and fees of one student for one school year. One record per (student, year, school).
    Ranks stay null until a ranking pass runs; mark writes only refresh averages and disciplines.
    """

    __tablename__ = "academic_years"
    __table_args__ = (UniqueConstraint("student_id", "year", "school_id", name="uq_academic_year_student_year_school"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    year = Column(String(9), nullable=False, index=True)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True)
    has_repeated = Column(Boolean, nullable=False, default=False)
    has_completed = Column(Boolean, nullable=False, default=False)
    rank = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student", lazy="joined")
    terms = relationship(
        "TermEntry",
        back_populates="academic_year",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    fees = relationship(
        "FeePayment",
        back_populates="academic_year",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    roster_entries = relationship(
        "ClassRosterEntry",
        back_populates="academic_year",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    # ----- lookup / get-or-create -----

    def find_term(self, term_id: PyUUID) -> Optional[TermEntry]:
        for entry in self.terms:
            if entry.term_id == term_id:
                return entry
        return None

    def get_or_create_term(self, term_id: PyUUID) -> TermEntry:
        entry = self.find_term(term_id)
        if entry is None:
            entry = TermEntry.blank(term_id)
            self.terms.append(entry)
        return entry

    def find_sequence(self, term_id: PyUUID, sequence_id: PyUUID) -> Optional[SequenceEntry]:
        term = self.find_term(term_id)
        return term.find_sequence(sequence_id) if term else None

    def find_subject(self, term_id: PyUUID, sequence_id: PyUUID, subject_id: PyUUID) -> Optional[SubjectMark]:
        sequence = self.find_sequence(term_id, sequence_id)
        return sequence.find_subject(subject_id) if sequence else None

    def find_fee(self, bill_id: str) -> Optional[FeePayment]:
        for fee in self.fees:
            if fee.bill_id == bill_id:
                return fee
        return None

    # ----- mutations -----

    def apply_mark(
        self,
        term_id: PyUUID,
        sequence_id: PyUUID,
        subject_id,
        new_mark: float,
        modified_by_name: str,
        modified_by_id: PyUUID,
    ) -> SequenceEntry:
        """
        Write one mark (or the absence count when subject_id is "absences") into the ledger,
        materializing the term/sequence/subject entries when missing.
        Callers recalculate averages afterwards.
        """
        sequence = self.get_or_create_term(term_id).get_or_create_sequence(sequence_id)
        if subject_id == grading.ABSENCES_SENTINEL:
            sequence.absences = int(new_mark)
            return sequence
        sequence.get_or_create_subject(subject_id).record_mark(new_mark, modified_by_name, modified_by_id)
        return sequence

    def calculate_averages(self, coefficients: Mapping[PyUUID, float]) -> None:
        """Recompute every sequence then term average, bottom-up, from the class coefficient table."""
        for term in self.terms:
            for sequence in term.sequences:
                sequence.calculate_average(coefficients)
            term.calculate_average()

    def check_year_completion(self) -> bool:
        all_terms_passed = all((term.average or 0) >= grading.PASSING_MARK for term in self.terms)
        self.has_completed = all_terms_passed and not self.has_failing_subjects
        return self.has_completed

    def is_at_risk(self, threshold: float = grading.PASSING_MARK) -> bool:
        if any((term.average or 0) < threshold for term in self.terms):
            return True
        return self.has_failing_subjects

    # ----- derived values (never stored) -----

    @property
    def overall_average(self) -> float:
        return grading.mean([term.average or 0 for term in self.terms])

    @property
    def total_fees_paid(self) -> float:
        return sum(fee.amount or 0 for fee in self.fees)

    @property
    def overall_status(self) -> str:
        return grading.discipline_for(self.overall_average)

    @property
    def has_failing_subjects(self) -> bool:
        return any(
            (subject.current_mark or 0) < grading.PASSING_MARK
            for term in self.terms
            for sequence in term.sequences
            for subject in sequence.subjects
        )
