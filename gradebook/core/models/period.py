"""Shared columns and date-driven status for calendar periods (terms and sequences)."""

from datetime import date
from typing import Optional

from sqlalchemy import Boolean, Column, Date, String, event

from gradebook.core.enums import PeriodStatus


def status_for_dates(start_date: date, end_date: date, today: Optional[date] = None) -> str:
    today = today or date.today()
    if today < start_date:
        return PeriodStatus.UPCOMING.value
    if today > end_date:
        return PeriodStatus.COMPLETED.value
    return PeriodStatus.ACTIVE.value


class PeriodMixin:
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=PeriodStatus.UPCOMING.value)
    is_current = Column(Boolean, nullable=False, default=False)

    def refresh_status(self, today: Optional[date] = None) -> str:
        if self.start_date is not None and self.end_date is not None:
            self.status = status_for_dates(self.start_date, self.end_date, today)
        return self.status


@event.listens_for(PeriodMixin, "before_insert", propagate=True)
@event.listens_for(PeriodMixin, "before_update", propagate=True)
def _refresh_period_status(mapper, connection, target) -> None:
    target.refresh_status()
