import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from gradebook.core.models.period import PeriodMixin
from gradebook.db.session import Base


class Sequence(PeriodMixin, Base):
    """Smallest graded period (a test period) inside a term. Marks are accepted only while is_active."""

    __tablename__ = "sequences"
    __table_args__ = (UniqueConstraint("term_id", "order", name="uq_sequence_term_order"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    term_id = Column(UUID(as_uuid=True), ForeignKey("terms.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(50), nullable=False)
    order = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    term = relationship("Term", back_populates="sequences")
