from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.api.v1.terms.service import get_term_model
from gradebook.core.exceptions import NotFoundError, ServiceError
from gradebook.core.models import Sequence

from .schemas import SequenceCreate, SequenceResponse, SequenceUpdate

ORDER_CONFLICT = "A sequence with this order already exists in the term"


def _to_response(seq: Sequence) -> SequenceResponse:
    return SequenceResponse.model_validate(seq)


async def _clear_current(db: AsyncSession, school_id: UUID) -> None:
    await db.execute(update(Sequence).where(Sequence.school_id == school_id).values(is_current=False))


async def find_sequence(db: AsyncSession, school_id: UUID, sequence_id: UUID) -> Optional[Sequence]:
    result = await db.execute(
        select(Sequence).where(Sequence.id == sequence_id, Sequence.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def get_sequence_model(db: AsyncSession, school_id: UUID, sequence_id: UUID) -> Sequence:
    seq = await find_sequence(db, school_id, sequence_id)
    if not seq:
        raise NotFoundError("Sequence not found")
    return seq


async def create_sequence(db: AsyncSession, school_id: UUID, payload: SequenceCreate) -> SequenceResponse:
    if payload.end_date <= payload.start_date:
        raise ServiceError("end_date must be after start_date", status.HTTP_400_BAD_REQUEST)
    await get_term_model(db, school_id, payload.term_id)
    if payload.set_as_current:
        await _clear_current(db, school_id)
    seq = Sequence(
        school_id=school_id,
        term_id=payload.term_id,
        name=payload.name.strip(),
        order=payload.order,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_active=payload.is_active,
        is_current=payload.set_as_current,
    )
    db.add(seq)
    try:
        await db.commit()
        await db.refresh(seq)
        return _to_response(seq)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(ORDER_CONFLICT, status.HTTP_409_CONFLICT)


async def list_sequences(
    db: AsyncSession,
    school_id: UUID,
    term_id: Optional[UUID] = None,
) -> List[SequenceResponse]:
    stmt = select(Sequence).where(Sequence.school_id == school_id)
    if term_id is not None:
        stmt = stmt.where(Sequence.term_id == term_id)
    result = await db.execute(stmt.order_by(Sequence.term_id, Sequence.order))
    return [_to_response(s) for s in result.scalars().all()]


async def get_sequence(db: AsyncSession, school_id: UUID, sequence_id: UUID) -> SequenceResponse:
    return _to_response(await get_sequence_model(db, school_id, sequence_id))


async def update_sequence(
    db: AsyncSession,
    school_id: UUID,
    sequence_id: UUID,
    payload: SequenceUpdate,
) -> SequenceResponse:
    seq = await get_sequence_model(db, school_id, sequence_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(seq, field, value.strip() if field == "name" else value)
    if seq.end_date <= seq.start_date:
        raise ServiceError("end_date must be after start_date", status.HTTP_400_BAD_REQUEST)
    try:
        await db.commit()
        await db.refresh(seq)
        return _to_response(seq)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(ORDER_CONFLICT, status.HTTP_409_CONFLICT)


async def set_sequence_current(db: AsyncSession, school_id: UUID, sequence_id: UUID) -> SequenceResponse:
    """Set this sequence as current; every other sequence of the school is cleared in the same transaction."""
    seq = await get_sequence_model(db, school_id, sequence_id)
    await _clear_current(db, school_id)
    seq.is_current = True
    await db.commit()
    await db.refresh(seq)
    return _to_response(seq)
