from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.rbac import check_permission
from gradebook.auth.schemas import CurrentUser
from gradebook.core.exceptions import ServiceError
from gradebook.core.grading import PASSING_MARK
from gradebook.core.schemas import YEAR_PATTERN
from gradebook.db.session import get_db

from .schemas import (
    AcademicYearCreate,
    AcademicYearResponse,
    AtRiskEntry,
    BulkMarkResult,
    BulkMarkUpdate,
    ClassOverview,
    FeeCreate,
    FeeResponse,
    FeeUpdate,
    MarkUpdate,
    PerformanceSummary,
    ReportCard,
    SyncResult,
)
from . import service

router = APIRouter(prefix="/api/v1/academic-years", tags=["academic-years"])


@router.post(
    "",
    response_model=AcademicYearResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("academic_years", "create"))],
)
async def create_academic_year(
    payload: AcademicYearCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AcademicYearResponse:
    try:
        return await service.create_academic_year(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[AcademicYearResponse],
    dependencies=[Depends(check_permission("academic_years", "read"))],
)
async def list_academic_years(
    year: Optional[str] = Query(None, pattern=YEAR_PATTERN),
    class_id: Optional[UUID] = Query(None),
    student_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[AcademicYearResponse]:
    return await service.list_academic_years(
        db, current_user.school_id, year=year, class_id=class_id, student_id=student_id
    )


@router.get(
    "/at-risk",
    response_model=List[AtRiskEntry],
    dependencies=[Depends(check_permission("academic_years", "read"))],
)
async def find_students_at_risk(
    year: str = Query(..., pattern=YEAR_PATTERN),
    threshold: float = Query(PASSING_MARK, ge=0, le=20),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[AtRiskEntry]:
    """Records of the year with a term average below threshold or any failing subject mark."""
    return await service.find_students_at_risk(db, current_user.school_id, year, threshold)


@router.get(
    "/overview",
    response_model=ClassOverview,
    dependencies=[Depends(check_permission("academic_years", "read"))],
)
async def get_class_overview(
    class_id: UUID = Query(...),
    year: str = Query(..., pattern=YEAR_PATTERN),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassOverview:
    try:
        return await service.get_class_overview(db, current_user.school_id, class_id, year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/summary",
    response_model=PerformanceSummary,
    dependencies=[Depends(check_permission("academic_years", "read"))],
)
async def get_performance_summary(
    student_id: UUID = Query(...),
    year: str = Query(..., pattern=YEAR_PATTERN),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PerformanceSummary:
    """Averages, term ranks and fee standing of one student for one year."""
    try:
        return await service.get_performance_summary(db, current_user.school_id, student_id, year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/marks/bulk",
    response_model=BulkMarkResult,
    dependencies=[Depends(check_permission("academic_years", "update"))],
)
async def bulk_update_marks(
    payload: BulkMarkUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> BulkMarkResult:
    """Apply many marks at once. Rejected items are listed in `failed`; valid ones are saved."""
    return await service.bulk_update_marks(db, current_user.school_id, payload, current_user)


@router.get(
    "/{record_id}",
    response_model=AcademicYearResponse,
    dependencies=[Depends(check_permission("academic_years", "read"))],
)
async def get_academic_year(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AcademicYearResponse:
    try:
        return await service.get_academic_year(db, current_user.school_id, record_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("academic_years", "delete"))],
)
async def delete_academic_year(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.delete_academic_year(db, current_user.school_id, record_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{record_id}/marks",
    response_model=AcademicYearResponse,
    dependencies=[Depends(check_permission("academic_years", "update"))],
)
async def update_mark(
    record_id: UUID,
    payload: MarkUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AcademicYearResponse:
    """
    Set one subject mark (0-20) or, with subject_id "absences", the absence count of a sequence.
    Missing term/sequence/subject entries are created; averages are recalculated.
    """
    try:
        return await service.update_mark(db, current_user.school_id, record_id, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{record_id}/calculate-averages",
    response_model=AcademicYearResponse,
    dependencies=[Depends(check_permission("academic_years", "update"))],
)
async def calculate_averages(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AcademicYearResponse:
    try:
        return await service.calculate_averages(db, current_user.school_id, record_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{record_id}/check-completion",
    response_model=AcademicYearResponse,
    dependencies=[Depends(check_permission("academic_years", "update"))],
)
async def check_year_completion(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AcademicYearResponse:
    try:
        return await service.check_year_completion(db, current_user.school_id, record_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{record_id}/sync-class",
    response_model=SyncResult,
    dependencies=[Depends(check_permission("academic_years", "update"))],
)
async def sync_with_class(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> SyncResult:
    try:
        return await service.sync_with_class(db, current_user.school_id, record_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{record_id}/report-card",
    response_model=ReportCard,
    dependencies=[Depends(check_permission("academic_years", "read"))],
)
async def generate_report_card(
    record_id: UUID,
    term_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ReportCard:
    try:
        return await service.generate_report_card(db, current_user.school_id, record_id, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{record_id}/fees",
    response_model=List[FeeResponse],
    dependencies=[Depends(check_permission("academic_years", "read"))],
)
async def list_fees(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeResponse]:
    try:
        return await service.list_fees(db, current_user.school_id, record_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{record_id}/fees",
    response_model=List[FeeResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("academic_years", "update"))],
)
async def add_fee(
    record_id: UUID,
    payload: FeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeResponse]:
    try:
        return await service.add_fee(db, current_user.school_id, record_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{record_id}/fees/{bill_id}",
    response_model=FeeResponse,
    dependencies=[Depends(check_permission("academic_years", "update"))],
)
async def update_fee(
    record_id: UUID,
    bill_id: str,
    payload: FeeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeResponse:
    try:
        return await service.update_fee(db, current_user.school_id, record_id, bill_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{record_id}/fees/{bill_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("academic_years", "update"))],
)
async def delete_fee(
    record_id: UUID,
    bill_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.delete_fee(db, current_user.school_id, record_id, bill_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
