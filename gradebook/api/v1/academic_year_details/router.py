from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.rbac import check_permission
from gradebook.auth.schemas import CurrentUser
from gradebook.core.exceptions import ServiceError
from gradebook.db.session import get_db

from .schemas import AcademicYearDetailCreate, AcademicYearDetailResponse, AcademicYearDetailUpdate
from . import service

router = APIRouter(prefix="/api/v1/academic-year-details", tags=["academic-year-details"])


@router.post(
    "",
    response_model=AcademicYearDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("calendar", "create"))],
)
async def create_academic_year_detail(
    payload: AcademicYearDetailCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AcademicYearDetailResponse:
    try:
        return await service.create_academic_year_detail(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[AcademicYearDetailResponse],
    dependencies=[Depends(check_permission("calendar", "read"))],
)
async def list_academic_year_details(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[AcademicYearDetailResponse]:
    return await service.list_academic_year_details(db, current_user.school_id)


@router.get(
    "/current",
    response_model=Optional[AcademicYearDetailResponse],
    dependencies=[Depends(check_permission("calendar", "read"))],
)
async def get_current_academic_year_detail(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Optional[AcademicYearDetailResponse]:
    """Get the current school year (is_current=true)."""
    return await service.get_current_academic_year_detail(db, current_user.school_id)


@router.get(
    "/{detail_id}",
    response_model=AcademicYearDetailResponse,
    dependencies=[Depends(check_permission("calendar", "read"))],
)
async def get_academic_year_detail(
    detail_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AcademicYearDetailResponse:
    try:
        return await service.get_academic_year_detail(db, current_user.school_id, detail_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{detail_id}",
    response_model=AcademicYearDetailResponse,
    dependencies=[Depends(check_permission("calendar", "update"))],
)
async def update_academic_year_detail(
    detail_id: UUID,
    payload: AcademicYearDetailUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AcademicYearDetailResponse:
    try:
        return await service.update_academic_year_detail(db, current_user.school_id, detail_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{detail_id}/set-current",
    response_model=AcademicYearDetailResponse,
    dependencies=[Depends(check_permission("calendar", "update"))],
)
async def set_academic_year_detail_current(
    detail_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AcademicYearDetailResponse:
    """Set this year as current. All other years of the school become non-current."""
    try:
        return await service.set_academic_year_detail_current(db, current_user.school_id, detail_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
