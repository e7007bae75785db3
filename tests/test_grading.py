"""Unit tests for discipline bands and averaging helpers."""

import uuid
from types import SimpleNamespace

import pytest

from gradebook.core import grading


@pytest.mark.parametrize(
    "value, expected",
    [
        (20, "Excellent"),
        (16, "Excellent"),
        (15.99, "Very Good"),
        (14, "Very Good"),
        (12, "Good"),
        (10, "Average"),
        (9.99, "Below Average"),
        (0, "Below Average"),
        (None, "Not Available"),
    ],
)
def test_discipline_bands(value, expected) -> None:
    assert grading.discipline_for(value) == expected


def test_weighted_average_rounds_to_two_places() -> None:
    """15 x 4 + 10 x 2 = 80 over coefficient 6."""
    assert grading.weighted_average([(15, 4), (10, 2)]) == 13.33


def test_weighted_average_empty_is_zero() -> None:
    assert grading.weighted_average([]) == 0
    assert grading.weighted_average([(12, 0)]) == 0


def test_mean() -> None:
    assert grading.mean([14, 16]) == 15
    assert grading.mean([10, 11, 11]) == 10.67
    assert grading.mean([]) == 0


def test_is_valid_mark_bounds() -> None:
    assert grading.is_valid_mark(0)
    assert grading.is_valid_mark(20)
    assert not grading.is_valid_mark(-0.5)
    assert not grading.is_valid_mark(20.5)


def test_coefficient_table_skips_inactive_entries_and_subjects() -> None:
    active, inactive_entry, inactive_subject = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    school_class = SimpleNamespace(
        subjects=[
            SimpleNamespace(subject_id=active, coefficient=3, is_active=True, subject=SimpleNamespace(is_active=True)),
            SimpleNamespace(subject_id=inactive_entry, coefficient=2, is_active=False, subject=SimpleNamespace(is_active=True)),
            SimpleNamespace(subject_id=inactive_subject, coefficient=5, is_active=True, subject=SimpleNamespace(is_active=False)),
        ]
    )
    assert grading.coefficient_table(school_class) == {active: 3}
