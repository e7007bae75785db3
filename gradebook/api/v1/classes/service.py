from typing import Dict, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.api.v1.subjects.service import get_subject_model
from gradebook.core import grading
from gradebook.core.exceptions import NotFoundError, ServiceError
from gradebook.core.models import ClassSubject, SchoolClass

from .schemas import (
    ClassCreate,
    ClassResponse,
    ClassSubjectItem,
    ClassSubjectPatch,
    ClassSubjectResponse,
    ClassUpdate,
)

NAME_CONFLICT = "Class name already exists for this school and year"


def _subject_to_response(cs: ClassSubject) -> ClassSubjectResponse:
    return ClassSubjectResponse(
        id=cs.id,
        subject_id=cs.subject_id,
        subject_name=cs.subject.name if cs.subject is not None else None,
        coefficient=cs.coefficient,
        teacher_id=cs.teacher_id,
        is_active=cs.is_active,
    )


def _class_to_response(c: SchoolClass) -> ClassResponse:
    return ClassResponse(
        id=c.id,
        school_id=c.school_id,
        name=c.name,
        description=c.description,
        status=c.status,
        capacity=c.capacity,
        amount_fee=c.amount_fee,
        year=c.year,
        level=c.level,
        education_system=c.education_system,
        section=c.section,
        main_teacher_id=c.main_teacher_id,
        subjects=[_subject_to_response(cs) for cs in c.subjects],
        student_list=[entry.academic_year_id for entry in c.roster],
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


async def find_class(db: AsyncSession, school_id: UUID, class_id: UUID) -> Optional[SchoolClass]:
    result = await db.execute(
        select(SchoolClass).where(SchoolClass.id == class_id, SchoolClass.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def get_class_model(db: AsyncSession, school_id: UUID, class_id: UUID) -> SchoolClass:
    school_class = await find_class(db, school_id, class_id)
    if not school_class:
        raise NotFoundError("Class not found")
    return school_class


async def get_coefficients(db: AsyncSession, school_id: UUID, class_id: Optional[UUID]) -> Dict[UUID, float]:
    """Coefficient table of the class owning a record. A record without a class averages nothing."""
    if class_id is None:
        return {}
    school_class = await find_class(db, school_id, class_id)
    if school_class is None:
        return {}
    return dict(grading.coefficient_table(school_class))


async def _build_class_subject(db: AsyncSession, school_id: UUID, item: ClassSubjectItem) -> ClassSubject:
    subject = await get_subject_model(db, school_id, item.subject_id)
    return ClassSubject(
        subject_id=subject.id,
        subject=subject,
        coefficient=item.coefficient,
        teacher_id=item.teacher_id,
        is_active=item.is_active,
    )


async def create_class(db: AsyncSession, school_id: UUID, payload: ClassCreate) -> ClassResponse:
    seen = set()
    for item in payload.subjects:
        if item.subject_id in seen:
            raise ServiceError(f"Subject listed twice: {item.subject_id}", status.HTTP_400_BAD_REQUEST)
        seen.add(item.subject_id)
    school_class = SchoolClass(
        school_id=school_id,
        name=payload.name.strip(),
        description=payload.description,
        status=payload.status.value,
        capacity=payload.capacity,
        amount_fee=payload.amount_fee,
        year=payload.year,
        level=payload.level.value,
        education_system=payload.education_system.value,
        section=payload.section,
        main_teacher_id=payload.main_teacher_id,
    )
    for item in payload.subjects:
        school_class.subjects.append(await _build_class_subject(db, school_id, item))
    db.add(school_class)
    try:
        await db.commit()
        await db.refresh(school_class)
        return _class_to_response(school_class)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(NAME_CONFLICT, status.HTTP_409_CONFLICT)


async def list_classes(
    db: AsyncSession,
    school_id: UUID,
    year: Optional[str] = None,
    level: Optional[str] = None,
) -> List[ClassResponse]:
    stmt = select(SchoolClass).where(SchoolClass.school_id == school_id)
    if year:
        stmt = stmt.where(SchoolClass.year == year)
    if level:
        stmt = stmt.where(SchoolClass.level == level)
    result = await db.execute(stmt.order_by(SchoolClass.year.desc(), SchoolClass.name))
    return [_class_to_response(c) for c in result.scalars().all()]


async def get_class(db: AsyncSession, school_id: UUID, class_id: UUID) -> ClassResponse:
    return _class_to_response(await get_class_model(db, school_id, class_id))


async def update_class(db: AsyncSession, school_id: UUID, class_id: UUID, payload: ClassUpdate) -> ClassResponse:
    school_class = await get_class_model(db, school_id, class_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("status") is not None:
        data["status"] = payload.status.value
    for field, value in data.items():
        setattr(school_class, field, value)
    try:
        await db.commit()
        await db.refresh(school_class)
        return _class_to_response(school_class)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(NAME_CONFLICT, status.HTTP_409_CONFLICT)


async def upsert_class_subject(
    db: AsyncSession,
    school_id: UUID,
    class_id: UUID,
    subject_id: UUID,
    payload: ClassSubjectPatch,
) -> ClassResponse:
    """Add a subject to the class or change its coefficient / teacher / active flag."""
    school_class = await get_class_model(db, school_id, class_id)
    entry = next((cs for cs in school_class.subjects if cs.subject_id == subject_id), None)
    if entry is None:
        item = ClassSubjectItem(
            subject_id=subject_id,
            coefficient=payload.coefficient if payload.coefficient is not None else 1,
            teacher_id=payload.teacher_id,
            is_active=payload.is_active if payload.is_active is not None else True,
        )
        school_class.subjects.append(await _build_class_subject(db, school_id, item))
    else:
        if payload.coefficient is not None:
            entry.coefficient = payload.coefficient
        if payload.teacher_id is not None:
            entry.teacher_id = payload.teacher_id
        if payload.is_active is not None:
            entry.is_active = payload.is_active
    await db.commit()
    await db.refresh(school_class)
    return _class_to_response(school_class)


async def remove_class_subject(db: AsyncSession, school_id: UUID, class_id: UUID, subject_id: UUID) -> ClassResponse:
    school_class = await get_class_model(db, school_id, class_id)
    entry = next((cs for cs in school_class.subjects if cs.subject_id == subject_id), None)
    if entry is None:
        raise NotFoundError("Subject is not assigned to this class")
    school_class.subjects.remove(entry)
    await db.commit()
    await db.refresh(school_class)
    return _class_to_response(school_class)
