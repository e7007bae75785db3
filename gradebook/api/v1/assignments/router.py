from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.rbac import check_permission
from gradebook.auth.schemas import CurrentUser
from gradebook.core.exceptions import ServiceError
from gradebook.db.session import get_db

from .schemas import AssignmentResult, AssignStudentsRequest, PromotionRequest, PromotionResult
from . import service

router = APIRouter(prefix="/api/v1/academic-years", tags=["assignments"])


@router.post(
    "/assign",
    response_model=AssignmentResult,
    dependencies=[Depends(check_permission("academic_years", "create"))],
)
async def assign_students_to_class(
    payload: AssignStudentsRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AssignmentResult:
    """
    Assign students to a class for the current academic year, one commit per student.
    Unknown students and level mismatches are listed in `failed`.
    """
    try:
        return await service.assign_students_to_class(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/assign/atomic",
    response_model=AssignmentResult,
    dependencies=[Depends(check_permission("academic_years", "create"))],
)
async def assign_students_to_class_atomic(
    payload: AssignStudentsRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AssignmentResult:
    """Assign students in a single transaction; nothing is saved if an unexpected error occurs."""
    try:
        return await service.assign_students_to_class_atomic(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/bulk",
    response_model=AssignmentResult,
    dependencies=[Depends(check_permission("academic_years", "create"))],
)
async def create_academic_years_for_students(
    payload: AssignStudentsRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AssignmentResult:
    """
    Create records for the current academic year, seeded with its terms, sequences and the class subjects.
    Unknown students and level mismatches are listed in `failed`; anything else saves nothing.
    """
    try:
        return await service.create_academic_years_for_students(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/promote",
    response_model=PromotionResult,
    dependencies=[Depends(check_permission("academic_years", "create"))],
)
async def promote_class(
    payload: PromotionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PromotionResult:
    try:
        return await service.promote_class(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
