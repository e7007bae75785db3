from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.core.exceptions import NotFoundError, ServiceError
from gradebook.core.models import Subject

from .schemas import SubjectCreate, SubjectResponse, SubjectUpdate

CODE_CONFLICT = "Subject code already exists for this school and year"


async def find_subject(db: AsyncSession, school_id: UUID, subject_id: UUID) -> Optional[Subject]:
    result = await db.execute(select(Subject).where(Subject.id == subject_id, Subject.school_id == school_id))
    return result.scalar_one_or_none()


async def get_subject_model(db: AsyncSession, school_id: UUID, subject_id: UUID) -> Subject:
    subject = await find_subject(db, school_id, subject_id)
    if not subject:
        raise NotFoundError(f"Subject not found: {subject_id}")
    return subject


async def create_subject(db: AsyncSession, school_id: UUID, payload: SubjectCreate) -> SubjectResponse:
    subject = Subject(
        school_id=school_id,
        name=payload.name.strip(),
        code=payload.code.strip().upper(),
        year=payload.year,
        description=payload.description,
        weekly_hours=payload.weekly_hours,
        is_active=True,
    )
    db.add(subject)
    try:
        await db.commit()
        await db.refresh(subject)
        return SubjectResponse.model_validate(subject)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(CODE_CONFLICT, status.HTTP_409_CONFLICT)


async def list_subjects(
    db: AsyncSession,
    school_id: UUID,
    year: Optional[str] = None,
    active_only: bool = False,
) -> List[SubjectResponse]:
    stmt = select(Subject).where(Subject.school_id == school_id)
    if year:
        stmt = stmt.where(Subject.year == year)
    if active_only:
        stmt = stmt.where(Subject.is_active.is_(True))
    result = await db.execute(stmt.order_by(Subject.name))
    return [SubjectResponse.model_validate(s) for s in result.scalars().all()]


async def get_subject(db: AsyncSession, school_id: UUID, subject_id: UUID) -> SubjectResponse:
    return SubjectResponse.model_validate(await get_subject_model(db, school_id, subject_id))


async def update_subject(
    db: AsyncSession,
    school_id: UUID,
    subject_id: UUID,
    payload: SubjectUpdate,
) -> SubjectResponse:
    subject = await get_subject_model(db, school_id, subject_id)
    if payload.name is not None:
        subject.name = payload.name.strip()
    if payload.code is not None:
        subject.code = payload.code.strip().upper()
    if payload.description is not None:
        subject.description = payload.description
    if payload.weekly_hours is not None:
        subject.weekly_hours = payload.weekly_hours
    if payload.is_active is not None:
        subject.is_active = payload.is_active
    try:
        await db.commit()
        await db.refresh(subject)
        return SubjectResponse.model_validate(subject)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(CODE_CONFLICT, status.HTTP_409_CONFLICT)
