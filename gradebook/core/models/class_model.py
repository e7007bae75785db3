"""School classes and their rosters. Model named SchoolClass to avoid Python 'class' keyword."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from gradebook.core.enums import ClassStatus, EducationSystem
from gradebook.db.session import Base


class SchoolClass(Base):
    """
    Class for one academic year (e.g. "Form 2 A", 2024-2025).
    subjects carries the coefficient table used for averaging; roster lists academic year record ids.
    """

    __tablename__ = "classes"
    __table_args__ = (UniqueConstraint("school_id", "name", "year", name="uq_class_school_name_year"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(10), nullable=False, default=ClassStatus.OPEN.value)
    capacity = Column(Integer, nullable=True)
    amount_fee = Column(Float, nullable=False, default=0)
    year = Column(String(9), nullable=False)
    level = Column(String(20), nullable=False)
    education_system = Column(String(20), nullable=False, default=EducationSystem.FRANCOPHONE.value)
    section = Column(String(10), nullable=False, default="A")
    main_teacher_id = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    subjects = relationship(
        "ClassSubject",
        back_populates="school_class",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    roster = relationship(
        "ClassRosterEntry",
        back_populates="school_class",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def has_record(self, academic_year_id) -> bool:
        return any(entry.academic_year_id == academic_year_id for entry in self.roster)


class ClassRosterEntry(Base):
    """Academic year record enrolled in a class (not the student id itself)."""

    __tablename__ = "class_roster_entries"
    __table_args__ = (UniqueConstraint("class_id", "academic_year_id", name="uq_class_roster_class_record"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    academic_year_id = Column(
        UUID(as_uuid=True),
        ForeignKey("academic_years.id", ondelete="CASCADE"),
        nullable=False,
    )
    added_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass", back_populates="roster")
    academic_year = relationship("AcademicYear", back_populates="roster_entries")
