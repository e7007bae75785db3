import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from gradebook.core.models.period import PeriodMixin
from gradebook.db.session import Base


class Term(PeriodMixin, Base):
    """School term inside an academic year detail. order is unique within the detail."""

    __tablename__ = "terms"
    __table_args__ = (UniqueConstraint("academic_year_detail_id", "order", name="uq_term_detail_order"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    academic_year_detail_id = Column(
        UUID(as_uuid=True),
        ForeignKey("academic_year_details.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = Column(String(50), nullable=False)
    order = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    academic_year_detail = relationship("AcademicYearDetail", back_populates="terms")
    sequences = relationship("Sequence", back_populates="term", lazy="selectin", order_by="Sequence.order")
