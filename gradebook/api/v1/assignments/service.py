"""
Putting students into classes for a school year.

Each assignment makes sure the student has an academic year record for the year,
points the record and the student at the class and enrolls the record in the class roster.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.api.v1.academic_year_details.service import get_detail_by_name
from gradebook.api.v1.academic_years.service import find_student_record, new_record, seed_skeleton
from gradebook.api.v1.classes.service import get_class_model
from gradebook.api.v1.students.service import find_student
from gradebook.core.exceptions import NotFoundError, PreconditionError, ServiceError, ValidationFailure
from gradebook.core.models import AcademicYear, AcademicYearDetail, ClassRosterEntry, SchoolClass, Student

from .schemas import (
    AssignmentFailure,
    AssignmentResult,
    AssignStudentsRequest,
    PromotionRequest,
    PromotionResult,
)

logger = logging.getLogger(__name__)


def _enroll(school_class: SchoolClass, student: Student, record: AcademicYear) -> None:
    # a record sits in one roster per year; leaving a class drops it from the old list
    for entry in list(record.roster_entries):
        if entry.class_id != school_class.id:
            record.roster_entries.remove(entry)
    record.class_id = school_class.id
    student.school_class = school_class
    student.class_id = school_class.id
    if not school_class.has_record(record.id):
        school_class.roster.append(ClassRosterEntry(academic_year=record))


async def _attach_student(
    db: AsyncSession,
    school_id: UUID,
    school_class: SchoolClass,
    student: Student,
    year: str,
) -> bool:
    """Get-or-create the student's record for year and enroll it. Returns True when the record is new."""
    record = await find_student_record(db, school_id, student.id, year)
    created = record is None
    if created:
        record = new_record(school_id, student.id, year, school_class.id)
        db.add(record)
    _enroll(school_class, student, record)
    return created


async def _current_detail(db: AsyncSession, school_id: UUID, year: str) -> AcademicYearDetail:
    detail = await get_detail_by_name(db, school_id, year)
    if not detail:
        raise NotFoundError(f"Academic year {year} not found")
    if not detail.is_current:
        raise PreconditionError(f"Academic year {year} is not the current academic year")
    return detail


def _level_mismatch(student: Student, school_class: SchoolClass) -> Optional[str]:
    if student.level != school_class.level:
        return f"Student level {student.level} does not match class level {school_class.level}"
    return None


def _finish(result: AssignmentResult, total: int) -> AssignmentResult:
    result.failed_count = len(result.failed)
    result.total_processed = total
    return result


async def assign_students_to_class(
    db: AsyncSession,
    school_id: UUID,
    payload: AssignStudentsRequest,
) -> AssignmentResult:
    """
    Assign students one by one, committing after each.
    The year must be the school's current academic year and students must match the class level;
    students that fail are reported and the others stay assigned.
    """
    school_class = await get_class_model(db, school_id, payload.class_id)
    await _current_detail(db, school_id, payload.year)

    result = AssignmentResult()
    for student_id in payload.student_ids:
        student = await find_student(db, school_id, student_id)
        if not student:
            result.failed.append(AssignmentFailure(student_id=student_id, error="Student not found"))
            continue
        mismatch = _level_mismatch(student, school_class)
        if mismatch:
            result.failed.append(AssignmentFailure(student_id=student_id, error=mismatch))
            continue
        try:
            created = await _attach_student(db, school_id, school_class, student, payload.year)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning("Assignment of student %s to class %s failed: %s", student_id, payload.class_id, e)
            result.failed.append(AssignmentFailure(student_id=student_id, error="Could not save assignment"))
            # rollback expired the class and its roster
            school_class = await get_class_model(db, school_id, payload.class_id)
            continue
        if created:
            result.created += 1
        else:
            result.updated += 1

    _finish(result, len(payload.student_ids))
    logger.info(
        "Assigned students to class %s (%s): %d created, %d updated, %d failed",
        payload.class_id,
        payload.year,
        result.created,
        result.updated,
        result.failed_count,
    )
    return result


async def assign_students_to_class_atomic(
    db: AsyncSession,
    school_id: UUID,
    payload: AssignStudentsRequest,
) -> AssignmentResult:
    """All assignments in one transaction. Unknown students are skipped and reported; any other error saves nothing."""
    school_class = await get_class_model(db, school_id, payload.class_id)

    result = AssignmentResult()
    try:
        for student_id in payload.student_ids:
            student = await find_student(db, school_id, student_id)
            if not student:
                result.failed.append(AssignmentFailure(student_id=student_id, error="Student not found"))
                continue
            if await _attach_student(db, school_id, school_class, student, payload.year):
                result.created += 1
            else:
                result.updated += 1
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception("Atomic assignment to class %s rolled back", payload.class_id)
        raise ServiceError(
            "Failed to assign students; no changes were saved",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ) from e

    _finish(result, len(payload.student_ids))
    logger.info(
        "Atomically assigned students to class %s (%s): %d created, %d updated, %d failed",
        payload.class_id,
        payload.year,
        result.created,
        result.updated,
        result.failed_count,
    )
    return result


async def create_academic_years_for_students(
    db: AsyncSession,
    school_id: UUID,
    payload: AssignStudentsRequest,
) -> AssignmentResult:
    """
    Open records for many students in one transaction. New records start from the catalog:
    the year's terms, their sequences and the class's active subjects, all unmarked.
    Students who already hold a record for the year are only moved to the class.
    """
    school_class = await get_class_model(db, school_id, payload.class_id)
    detail = await _current_detail(db, school_id, payload.year)

    result = AssignmentResult()
    try:
        for student_id in payload.student_ids:
            student = await find_student(db, school_id, student_id)
            if not student:
                result.failed.append(AssignmentFailure(student_id=student_id, error="Student not found"))
                continue
            mismatch = _level_mismatch(student, school_class)
            if mismatch:
                result.failed.append(AssignmentFailure(student_id=student_id, error=mismatch))
                continue
            record = await find_student_record(db, school_id, student.id, payload.year)
            if record is None:
                record = new_record(school_id, student.id, payload.year, school_class.id)
                seed_skeleton(record, detail, school_class)
                db.add(record)
                result.created += 1
            else:
                result.updated += 1
            _enroll(school_class, student, record)
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception("Bulk creation of academic years for class %s rolled back", payload.class_id)
        raise ServiceError(
            "Failed to create academic years; no changes were saved",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ) from e

    _finish(result, len(payload.student_ids))
    logger.info(
        "Created academic years for class %s (%s): %d created, %d updated, %d failed",
        payload.class_id,
        payload.year,
        result.created,
        result.updated,
        result.failed_count,
    )
    return result


async def promote_class(db: AsyncSession, school_id: UUID, payload: PromotionRequest) -> PromotionResult:
    """
    Open new_year records for a whole cohort. Records with has_completed move to passed_class_id,
    the others repeat in fail_class_id with has_repeated set. Students already holding a
    new_year record are reported and left alone.
    """
    if payload.new_year <= payload.year:
        raise ValidationFailure("new_year must come after year")
    await get_class_model(db, school_id, payload.class_id)
    passed_class = await get_class_model(db, school_id, payload.passed_class_id)
    fail_class = await get_class_model(db, school_id, payload.fail_class_id)

    rows = await db.execute(
        select(AcademicYear).where(
            AcademicYear.school_id == school_id,
            AcademicYear.class_id == payload.class_id,
            AcademicYear.year == payload.year,
        )
    )
    cohort: List[AcademicYear] = list(rows.scalars().all())
    if not cohort:
        raise NotFoundError("No academic records found for this class and year")

    result = PromotionResult()
    for record in cohort:
        student = record.student
        if await find_student_record(db, school_id, record.student_id, payload.new_year):
            result.failed.append(
                AssignmentFailure(
                    student_id=record.student_id,
                    error=f"Student already has an academic year for {payload.new_year}",
                )
            )
            continue
        passed = bool(record.has_completed)
        target = passed_class if passed else fail_class
        next_record = new_record(school_id, record.student_id, payload.new_year, target.id, has_repeated=not passed)
        db.add(next_record)
        _enroll(target, student, next_record)
        student.level = target.level
        if passed:
            result.promoted += 1
        else:
            result.repeating += 1

    await db.commit()
    result.failed_count = len(result.failed)
    result.total_processed = len(cohort)
    logger.info(
        "Promoted class %s from %s to %s: %d promoted, %d repeating, %d skipped",
        payload.class_id,
        payload.year,
        payload.new_year,
        result.promoted,
        result.repeating,
        result.failed_count,
    )
    return result
