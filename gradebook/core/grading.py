"""Discipline bands and averaging helpers shared by the academic year record."""

from typing import Iterable, List, Mapping, Optional, Tuple
from uuid import UUID

from gradebook.core.enums import Discipline

MIN_MARK = 0
MAX_MARK = 20
PASSING_MARK = 10

# (lower bound, band), checked top-down.
DISCIPLINE_BANDS: Tuple[Tuple[float, Discipline], ...] = (
    (16, Discipline.EXCELLENT),
    (14, Discipline.VERY_GOOD),
    (12, Discipline.GOOD),
    (10, Discipline.AVERAGE),
)

ABSENCES_SENTINEL = "absences"
MAX_ABSENCES = 20


def discipline_for(value: Optional[float]) -> str:
    """Map a 0..20 value onto its discipline band label."""
    if value is None:
        return Discipline.NOT_AVAILABLE.value
    for threshold, band in DISCIPLINE_BANDS:
        if value >= threshold:
            return band.value
    return Discipline.BELOW_AVERAGE.value


def round_average(value: float) -> float:
    return round(value, 2)


def weighted_average(pairs: Iterable[Tuple[float, float]]) -> float:
    """Sum(mark * coefficient) / Sum(coefficient) over (mark, coefficient) pairs, 0 when empty."""
    total = 0.0
    weight = 0.0
    for mark, coefficient in pairs:
        total += mark * coefficient
        weight += coefficient
    if weight <= 0:
        return 0.0
    return round_average(total / weight)


def mean(values: List[float]) -> float:
    if not values:
        return 0.0
    return round_average(sum(values) / len(values))


def is_valid_mark(value: float) -> bool:
    return MIN_MARK <= value <= MAX_MARK


def coefficient_table(school_class) -> Mapping[UUID, float]:
    """
    Build {subject_id: coefficient} from a loaded SchoolClass.
    Only class entries that are active and whose catalog subject is active take part.
    """
    table = {}
    for entry in school_class.subjects:
        if not entry.is_active:
            continue
        if entry.subject is not None and not entry.subject.is_active:
            continue
        table[entry.subject_id] = entry.coefficient
    return table
