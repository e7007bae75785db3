from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.rbac import check_permission
from gradebook.auth.schemas import CurrentUser
from gradebook.core.exceptions import ServiceError
from gradebook.db.session import get_db

from .schemas import TermCreate, TermResponse, TermUpdate
from . import service

router = APIRouter(prefix="/api/v1/terms", tags=["terms"])


@router.post(
    "",
    response_model=TermResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("calendar", "create"))],
)
async def create_term(
    payload: TermCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TermResponse:
    try:
        return await service.create_term(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[TermResponse],
    dependencies=[Depends(check_permission("calendar", "read"))],
)
async def list_terms(
    academic_year_detail_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[TermResponse]:
    return await service.list_terms(db, current_user.school_id, academic_year_detail_id)


@router.get(
    "/{term_id}",
    response_model=TermResponse,
    dependencies=[Depends(check_permission("calendar", "read"))],
)
async def get_term(
    term_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TermResponse:
    try:
        return await service.get_term(db, current_user.school_id, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{term_id}",
    response_model=TermResponse,
    dependencies=[Depends(check_permission("calendar", "update"))],
)
async def update_term(
    term_id: UUID,
    payload: TermUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TermResponse:
    try:
        return await service.update_term(db, current_user.school_id, term_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{term_id}/set-current",
    response_model=TermResponse,
    dependencies=[Depends(check_permission("calendar", "update"))],
)
async def set_term_current(
    term_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TermResponse:
    """Make this the school's current term. The previous current one is cleared."""
    try:
        return await service.set_term_current(db, current_user.school_id, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
