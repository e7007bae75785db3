from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.rbac import check_permission
from gradebook.auth.schemas import CurrentUser
from gradebook.core.exceptions import ServiceError
from gradebook.db.session import get_db

from .schemas import ClassCreate, ClassResponse, ClassSubjectPatch, ClassUpdate
from . import service

router = APIRouter(prefix="/api/v1/classes", tags=["classes"])


@router.post(
    "",
    response_model=ClassResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("classes", "create"))],
)
async def create_class(
    payload: ClassCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassResponse:
    try:
        return await service.create_class(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[ClassResponse],
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def list_classes(
    year: Optional[str] = Query(None),
    level: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ClassResponse]:
    return await service.list_classes(db, current_user.school_id, year=year, level=level)


@router.get(
    "/{class_id}",
    response_model=ClassResponse,
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def get_class(
    class_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassResponse:
    try:
        return await service.get_class(db, current_user.school_id, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{class_id}",
    response_model=ClassResponse,
    dependencies=[Depends(check_permission("classes", "update"))],
)
async def update_class(
    class_id: UUID,
    payload: ClassUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassResponse:
    try:
        return await service.update_class(db, current_user.school_id, class_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{class_id}/subjects/{subject_id}",
    response_model=ClassResponse,
    dependencies=[Depends(check_permission("classes", "update"))],
)
async def upsert_class_subject(
    class_id: UUID,
    subject_id: UUID,
    payload: ClassSubjectPatch,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassResponse:
    """Attach a subject to the class, or change its coefficient, teacher or active flag."""
    try:
        return await service.upsert_class_subject(db, current_user.school_id, class_id, subject_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{class_id}/subjects/{subject_id}",
    response_model=ClassResponse,
    dependencies=[Depends(check_permission("classes", "update"))],
)
async def remove_class_subject(
    class_id: UUID,
    subject_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassResponse:
    try:
        return await service.remove_class_subject(db, current_user.school_id, class_id, subject_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
