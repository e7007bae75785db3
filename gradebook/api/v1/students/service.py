from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.core.exceptions import NotFoundError, ServiceError
from gradebook.core.models import AcademicYear, Student

from .schemas import StudentCreate, StudentResponse, StudentUpdate


async def _academic_year_ids(db: AsyncSession, student_id: UUID) -> List[UUID]:
    result = await db.execute(
        select(AcademicYear.id).where(AcademicYear.student_id == student_id).order_by(AcademicYear.year)
    )
    return list(result.scalars().all())


async def _to_response(db: AsyncSession, student: Student) -> StudentResponse:
    return StudentResponse(
        id=student.id,
        school_id=student.school_id,
        matricule=student.matricule,
        first_name=student.first_name,
        last_name=student.last_name,
        gender=student.gender,
        date_of_birth=student.date_of_birth,
        level=student.level,
        class_id=student.class_id,
        class_name=student.school_class.name if student.school_class is not None else None,
        academic_year_ids=await _academic_year_ids(db, student.id),
        created_at=student.created_at,
    )


async def find_student(db: AsyncSession, school_id: UUID, student_id: UUID) -> Optional[Student]:
    result = await db.execute(select(Student).where(Student.id == student_id, Student.school_id == school_id))
    return result.scalar_one_or_none()


async def get_student_model(db: AsyncSession, school_id: UUID, student_id: UUID) -> Student:
    student = await find_student(db, school_id, student_id)
    if not student:
        raise NotFoundError("Student not found")
    return student


async def create_student(db: AsyncSession, school_id: UUID, payload: StudentCreate) -> StudentResponse:
    student = Student(
        school_id=school_id,
        matricule=payload.matricule.strip(),
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        gender=payload.gender.value if payload.gender else None,
        date_of_birth=payload.date_of_birth,
        level=payload.level.value,
    )
    db.add(student)
    try:
        await db.commit()
        await db.refresh(student)
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Matricule already exists for this school", status.HTTP_409_CONFLICT)
    return await _to_response(db, student)


async def list_students(
    db: AsyncSession,
    school_id: UUID,
    level: Optional[str] = None,
    class_id: Optional[UUID] = None,
) -> List[StudentResponse]:
    stmt = select(Student).where(Student.school_id == school_id)
    if level:
        stmt = stmt.where(Student.level == level)
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)
    result = await db.execute(stmt.order_by(Student.last_name, Student.first_name))
    return [await _to_response(db, s) for s in result.scalars().all()]


async def get_student(db: AsyncSession, school_id: UUID, student_id: UUID) -> StudentResponse:
    return await _to_response(db, await get_student_model(db, school_id, student_id))


async def update_student(
    db: AsyncSession,
    school_id: UUID,
    student_id: UUID,
    payload: StudentUpdate,
) -> StudentResponse:
    student = await get_student_model(db, school_id, student_id)
    if payload.first_name is not None:
        student.first_name = payload.first_name.strip()
    if payload.last_name is not None:
        student.last_name = payload.last_name.strip()
    if payload.gender is not None:
        student.gender = payload.gender.value
    if payload.date_of_birth is not None:
        student.date_of_birth = payload.date_of_birth
    if payload.level is not None:
        student.level = payload.level.value
    await db.commit()
    await db.refresh(student)
    return await _to_response(db, student)
