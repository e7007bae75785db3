import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from gradebook.db.session import Base


class AcademicYearDetail(Base):
    """
    Calendar shell of a school year (e.g. "2024-2025"). Only one per school can be is_current = true.
    Terms hang off it; per-student grades live in AcademicYear records keyed by the same name.
    """

    __tablename__ = "academic_year_details"
    __table_args__ = (UniqueConstraint("school_id", "name", name="uq_academic_year_detail_school_name"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    name = Column(String(9), nullable=False)  # e.g. "2024-2025"
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_current = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    terms = relationship("Term", back_populates="academic_year_detail", lazy="selectin", order_by="Term.order")
