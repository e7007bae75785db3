from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.api.v1.academic_year_details.service import get_detail_model
from gradebook.core.exceptions import NotFoundError, ServiceError
from gradebook.core.models import Term

from .schemas import TermCreate, TermResponse, TermUpdate

ORDER_CONFLICT = "A term with this order already exists in the academic year"


def _to_response(term: Term) -> TermResponse:
    return TermResponse(
        id=term.id,
        school_id=term.school_id,
        academic_year_detail_id=term.academic_year_detail_id,
        name=term.name,
        order=term.order,
        start_date=term.start_date,
        end_date=term.end_date,
        status=term.status,
        is_current=term.is_current,
        is_active=term.is_active,
        sequence_ids=[s.id for s in term.sequences],
        created_at=term.created_at,
    )


def _validate_dates(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise ServiceError("end_date must be after start_date", status.HTTP_400_BAD_REQUEST)


async def _clear_current(db: AsyncSession, school_id: UUID) -> None:
    await db.execute(update(Term).where(Term.school_id == school_id).values(is_current=False))


async def get_term_model(db: AsyncSession, school_id: UUID, term_id: UUID) -> Term:
    term = await find_term(db, school_id, term_id)
    if not term:
        raise NotFoundError("Term not found")
    return term


async def find_term(db: AsyncSession, school_id: UUID, term_id: UUID) -> Optional[Term]:
    result = await db.execute(select(Term).where(Term.id == term_id, Term.school_id == school_id))
    return result.scalar_one_or_none()


async def create_term(db: AsyncSession, school_id: UUID, payload: TermCreate) -> TermResponse:
    _validate_dates(payload.start_date, payload.end_date)
    await get_detail_model(db, school_id, payload.academic_year_detail_id)
    if payload.set_as_current:
        await _clear_current(db, school_id)
    term = Term(
        school_id=school_id,
        academic_year_detail_id=payload.academic_year_detail_id,
        name=payload.name.strip(),
        order=payload.order,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_active=payload.is_active,
        is_current=payload.set_as_current,
    )
    db.add(term)
    try:
        await db.commit()
        await db.refresh(term)
        return _to_response(term)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(ORDER_CONFLICT, status.HTTP_409_CONFLICT)


async def list_terms(
    db: AsyncSession,
    school_id: UUID,
    academic_year_detail_id: Optional[UUID] = None,
) -> List[TermResponse]:
    stmt = select(Term).where(Term.school_id == school_id)
    if academic_year_detail_id is not None:
        stmt = stmt.where(Term.academic_year_detail_id == academic_year_detail_id)
    result = await db.execute(stmt.order_by(Term.order))
    return [_to_response(t) for t in result.scalars().all()]


async def get_term(db: AsyncSession, school_id: UUID, term_id: UUID) -> TermResponse:
    return _to_response(await get_term_model(db, school_id, term_id))


async def update_term(db: AsyncSession, school_id: UUID, term_id: UUID, payload: TermUpdate) -> TermResponse:
    term = await get_term_model(db, school_id, term_id)
    if payload.name is not None:
        term.name = payload.name.strip()
    if payload.order is not None:
        term.order = payload.order
    if payload.start_date is not None:
        term.start_date = payload.start_date
    if payload.end_date is not None:
        term.end_date = payload.end_date
    if payload.is_active is not None:
        term.is_active = payload.is_active
    _validate_dates(term.start_date, term.end_date)
    try:
        await db.commit()
        await db.refresh(term)
        return _to_response(term)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(ORDER_CONFLICT, status.HTTP_409_CONFLICT)


async def set_term_current(db: AsyncSession, school_id: UUID, term_id: UUID) -> TermResponse:
    """Set this term as current; every other term of the school is cleared in the same transaction."""
    term = await get_term_model(db, school_id, term_id)
    await _clear_current(db, school_id)
    term.is_current = True
    await db.commit()
    await db.refresh(term)
    return _to_response(term)
