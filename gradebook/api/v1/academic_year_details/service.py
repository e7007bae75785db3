from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.core.exceptions import NotFoundError, ServiceError
from gradebook.core.models import AcademicYearDetail

from .schemas import AcademicYearDetailCreate, AcademicYearDetailResponse, AcademicYearDetailUpdate


def _to_response(ayd: AcademicYearDetail) -> AcademicYearDetailResponse:
    return AcademicYearDetailResponse(
        id=ayd.id,
        school_id=ayd.school_id,
        name=ayd.name,
        start_date=ayd.start_date,
        end_date=ayd.end_date,
        is_current=ayd.is_current,
        term_ids=[t.id for t in ayd.terms],
        created_at=ayd.created_at,
        updated_at=ayd.updated_at,
    )


def _validate_dates(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise ServiceError("end_date must be after start_date", status.HTTP_400_BAD_REQUEST)


async def _clear_current(db: AsyncSession, school_id: UUID) -> None:
    await db.execute(
        update(AcademicYearDetail).where(AcademicYearDetail.school_id == school_id).values(is_current=False)
    )


async def get_detail_model(db: AsyncSession, school_id: UUID, detail_id: UUID) -> AcademicYearDetail:
    result = await db.execute(
        select(AcademicYearDetail).where(
            AcademicYearDetail.id == detail_id,
            AcademicYearDetail.school_id == school_id,
        )
    )
    ayd = result.scalar_one_or_none()
    if not ayd:
        raise NotFoundError("Academic year not found")
    return ayd


async def get_detail_by_name(db: AsyncSession, school_id: UUID, name: str) -> Optional[AcademicYearDetail]:
    result = await db.execute(
        select(AcademicYearDetail).where(
            AcademicYearDetail.school_id == school_id,
            AcademicYearDetail.name == name,
        )
    )
    return result.scalar_one_or_none()


async def create_academic_year_detail(
    db: AsyncSession,
    school_id: UUID,
    payload: AcademicYearDetailCreate,
) -> AcademicYearDetailResponse:
    """Create a calendar year. With set_as_current, unset current on all other years (same transaction)."""
    _validate_dates(payload.start_date, payload.end_date)
    if await get_detail_by_name(db, school_id, payload.name):
        raise ServiceError(
            f"Academic year '{payload.name}' already exists for this school",
            status.HTTP_409_CONFLICT,
        )
    if payload.set_as_current:
        await _clear_current(db, school_id)
    ayd = AcademicYearDetail(
        school_id=school_id,
        name=payload.name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_current=payload.set_as_current,
    )
    db.add(ayd)
    try:
        await db.commit()
        await db.refresh(ayd)
        return _to_response(ayd)
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Academic year name conflict", status.HTTP_409_CONFLICT)


async def list_academic_year_details(db: AsyncSession, school_id: UUID) -> List[AcademicYearDetailResponse]:
    result = await db.execute(
        select(AcademicYearDetail)
        .where(AcademicYearDetail.school_id == school_id)
        .order_by(AcademicYearDetail.start_date.desc())
    )
    return [_to_response(ayd) for ayd in result.scalars().all()]


async def get_academic_year_detail(
    db: AsyncSession,
    school_id: UUID,
    detail_id: UUID,
) -> AcademicYearDetailResponse:
    return _to_response(await get_detail_model(db, school_id, detail_id))


async def get_current_academic_year_detail(
    db: AsyncSession,
    school_id: UUID,
) -> Optional[AcademicYearDetailResponse]:
    result = await db.execute(
        select(AcademicYearDetail).where(
            AcademicYearDetail.school_id == school_id,
            AcademicYearDetail.is_current.is_(True),
        )
    )
    ayd = result.scalar_one_or_none()
    return _to_response(ayd) if ayd else None


async def update_academic_year_detail(
    db: AsyncSession,
    school_id: UUID,
    detail_id: UUID,
    payload: AcademicYearDetailUpdate,
) -> AcademicYearDetailResponse:
    ayd = await get_detail_model(db, school_id, detail_id)
    if payload.name is not None and payload.name != ayd.name:
        if await get_detail_by_name(db, school_id, payload.name):
            raise ServiceError(
                f"Academic year '{payload.name}' already exists",
                status.HTTP_409_CONFLICT,
            )
        ayd.name = payload.name
    if payload.start_date is not None:
        ayd.start_date = payload.start_date
    if payload.end_date is not None:
        ayd.end_date = payload.end_date
    _validate_dates(ayd.start_date, ayd.end_date)
    await db.commit()
    await db.refresh(ayd)
    return _to_response(ayd)


async def set_academic_year_detail_current(
    db: AsyncSession,
    school_id: UUID,
    detail_id: UUID,
) -> AcademicYearDetailResponse:
    """Set this year as current. All others for the school become is_current=false (transaction)."""
    ayd = await get_detail_model(db, school_id, detail_id)
    await _clear_current(db, school_id)
    ayd.is_current = True
    await db.commit()
    await db.refresh(ayd)
    return _to_response(ayd)
