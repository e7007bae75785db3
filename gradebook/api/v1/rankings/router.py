from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.rbac import check_permission
from gradebook.auth.schemas import CurrentUser
from gradebook.core.exceptions import ServiceError
from gradebook.core.schemas import YEAR_PATTERN
from gradebook.db.session import get_db

from .schemas import (
    ClassYearRanking,
    RankAllResult,
    RankEntry,
    SequenceRankRequest,
    SubjectRankRequest,
    TermRankRequest,
    YearRankRequest,
)
from . import service

router = APIRouter(prefix="/api/v1/rankings", tags=["rankings"])


@router.post(
    "/subject",
    response_model=List[RankEntry],
    dependencies=[Depends(check_permission("rankings", "update"))],
)
async def rank_subject(
    payload: SubjectRankRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[RankEntry]:
    try:
        return await service.rank_subject_in_class(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/sequence",
    response_model=List[RankEntry],
    dependencies=[Depends(check_permission("rankings", "update"))],
)
async def rank_sequence(
    payload: SequenceRankRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[RankEntry]:
    try:
        return await service.rank_sequence_in_class(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/term",
    response_model=List[RankEntry],
    dependencies=[Depends(check_permission("rankings", "update"))],
)
async def rank_term(
    payload: TermRankRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[RankEntry]:
    try:
        return await service.rank_term_in_class(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/year",
    response_model=List[RankEntry],
    dependencies=[Depends(check_permission("rankings", "update"))],
)
async def rank_year(
    payload: YearRankRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[RankEntry]:
    try:
        return await service.rank_year_in_class(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/all",
    response_model=RankAllResult,
    dependencies=[Depends(check_permission("rankings", "update"))],
)
async def rank_all(
    payload: SubjectRankRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> RankAllResult:
    try:
        return await service.rank_all(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/class-year",
    response_model=ClassYearRanking,
    dependencies=[Depends(check_permission("rankings", "update"))],
)
async def rank_class_year(
    payload: YearRankRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassYearRanking:
    """Rank every term, sequence and subject found in the class records, plus the year ranking."""
    try:
        return await service.rank_class_year(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/export",
    dependencies=[Depends(check_permission("rankings", "read"))],
)
async def export_year_ranking(
    class_id: UUID = Query(...),
    year: str = Query(..., pattern=YEAR_PATTERN),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        content = await service.build_year_ranking_excel(db, current_user.school_id, class_id, year)
        return Response(
            content=content,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f"attachment; filename=ranking_{year}.xlsx"},
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
