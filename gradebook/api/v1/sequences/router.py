from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.rbac import check_permission
from gradebook.auth.schemas import CurrentUser
from gradebook.core.exceptions import ServiceError
from gradebook.db.session import get_db

from .schemas import SequenceCreate, SequenceResponse, SequenceUpdate
from . import service

router = APIRouter(prefix="/api/v1/sequences", tags=["sequences"])


@router.post(
    "",
    response_model=SequenceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("calendar", "create"))],
)
async def create_sequence(
    payload: SequenceCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> SequenceResponse:
    try:
        return await service.create_sequence(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[SequenceResponse],
    dependencies=[Depends(check_permission("calendar", "read"))],
)
async def list_sequences(
    term_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[SequenceResponse]:
    return await service.list_sequences(db, current_user.school_id, term_id)


@router.get(
    "/{sequence_id}",
    response_model=SequenceResponse,
    dependencies=[Depends(check_permission("calendar", "read"))],
)
async def get_sequence(
    sequence_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> SequenceResponse:
    try:
        return await service.get_sequence(db, current_user.school_id, sequence_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{sequence_id}",
    response_model=SequenceResponse,
    dependencies=[Depends(check_permission("calendar", "update"))],
)
async def update_sequence(
    sequence_id: UUID,
    payload: SequenceUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> SequenceResponse:
    try:
        return await service.update_sequence(db, current_user.school_id, sequence_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{sequence_id}/set-current",
    response_model=SequenceResponse,
    dependencies=[Depends(check_permission("calendar", "update"))],
)
async def set_sequence_current(
    sequence_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> SequenceResponse:
    """Make this the school's current sequence. The previous current one is cleared."""
    try:
        return await service.set_sequence_current(db, current_user.school_id, sequence_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
