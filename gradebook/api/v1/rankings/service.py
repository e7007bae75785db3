"""
Ranking passes over a class cohort (every academic year record of one class and year).

Each pass ranks one level of the ledger with standard competition ranking and writes the
rank back on the ranked entries; records outside the ranked population keep their old rank.
"""

import io
import logging
from typing import Dict, List
from uuid import UUID

from openpyxl import Workbook
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.api.v1.classes.service import get_class_model
from gradebook.core.models import AcademicYear
from gradebook.core.ranking import competition_ranks

from .schemas import (
    ClassYearRanking,
    RankAllResult,
    RankEntry,
    SequenceRanking,
    SequenceRankRequest,
    SubjectRanking,
    SubjectRankRequest,
    TermRanking,
    TermRankRequest,
    YearRankRequest,
)

logger = logging.getLogger(__name__)


def _entry(record: AcademicYear, value: float, rank: int) -> RankEntry:
    return RankEntry(
        academic_year_id=record.id,
        student_id=record.student_id,
        student_name=record.student.full_name if record.student is not None else None,
        value=value,
        rank=rank,
    )


async def load_cohort(db: AsyncSession, school_id: UUID, class_id: UUID, year: str) -> List[AcademicYear]:
    await get_class_model(db, school_id, class_id)
    result = await db.execute(
        select(AcademicYear)
        .where(
            AcademicYear.school_id == school_id,
            AcademicYear.class_id == class_id,
            AcademicYear.year == year,
        )
        .order_by(AcademicYear.created_at)
    )
    return list(result.scalars().all())


# ----- in-memory passes (mutate the loaded cohort) -----


def rank_subject(cohort: List[AcademicYear], term_id: UUID, sequence_id: UUID, subject_id: UUID) -> List[RankEntry]:
    """Rank current marks of one subject; only active sequence entries with an active subject entry take part."""
    candidates = []
    for record in cohort:
        sequence = record.find_sequence(term_id, sequence_id)
        if sequence is None or not sequence.is_active:
            continue
        subject = sequence.find_subject(subject_id)
        if subject is None or not subject.is_active:
            continue
        candidates.append(((record, subject), subject.current_mark or 0))

    ranked = []
    for (record, subject), value, rank in competition_ranks(candidates):
        subject.rank = rank
        ranked.append(_entry(record, value, rank))
    return ranked


def rank_sequence(cohort: List[AcademicYear], term_id: UUID, sequence_id: UUID) -> List[RankEntry]:
    candidates = []
    for record in cohort:
        sequence = record.find_sequence(term_id, sequence_id)
        if sequence is None or not sequence.is_active:
            continue
        candidates.append(((record, sequence), sequence.average or 0))

    ranked = []
    for (record, sequence), value, rank in competition_ranks(candidates):
        sequence.rank = rank
        ranked.append(_entry(record, value, rank))
    return ranked


def rank_term(cohort: List[AcademicYear], term_id: UUID) -> List[RankEntry]:
    candidates = []
    for record in cohort:
        term = record.find_term(term_id)
        if term is None:
            continue
        candidates.append(((record, term), term.average or 0))

    ranked = []
    for (record, term), value, rank in competition_ranks(candidates):
        term.rank = rank
        ranked.append(_entry(record, value, rank))
    return ranked


def rank_year(cohort: List[AcademicYear]) -> List[RankEntry]:
    ranked = []
    for record, value, rank in competition_ranks([(record, record.overall_average) for record in cohort]):
        record.rank = rank
        ranked.append(_entry(record, value, rank))
    return ranked


def _ledger_layout(cohort: List[AcademicYear]) -> Dict[UUID, Dict[UUID, List[UUID]]]:
    """{term_id: {sequence_id: [subject_id, ...]}} of every entry present in the cohort, in first-seen order."""
    layout: Dict[UUID, Dict[UUID, List[UUID]]] = {}
    for record in cohort:
        for term in record.terms:
            sequences = layout.setdefault(term.term_id, {})
            for sequence in term.sequences:
                subjects = sequences.setdefault(sequence.sequence_id, [])
                for subject in sequence.subjects:
                    if subject.subject_id not in subjects:
                        subjects.append(subject.subject_id)
    return layout


# ----- persisted passes -----


async def rank_subject_in_class(db: AsyncSession, school_id: UUID, payload: SubjectRankRequest) -> List[RankEntry]:
    cohort = await load_cohort(db, school_id, payload.class_id, payload.year)
    ranked = rank_subject(cohort, payload.term_id, payload.sequence_id, payload.subject_id)
    await db.commit()
    logger.info("Ranked subject %s of class %s (%s): %d records", payload.subject_id, payload.class_id, payload.year, len(ranked))
    return ranked


async def rank_sequence_in_class(db: AsyncSession, school_id: UUID, payload: SequenceRankRequest) -> List[RankEntry]:
    cohort = await load_cohort(db, school_id, payload.class_id, payload.year)
    ranked = rank_sequence(cohort, payload.term_id, payload.sequence_id)
    await db.commit()
    logger.info("Ranked sequence %s of class %s (%s): %d records", payload.sequence_id, payload.class_id, payload.year, len(ranked))
    return ranked


async def rank_term_in_class(db: AsyncSession, school_id: UUID, payload: TermRankRequest) -> List[RankEntry]:
    cohort = await load_cohort(db, school_id, payload.class_id, payload.year)
    ranked = rank_term(cohort, payload.term_id)
    await db.commit()
    logger.info("Ranked term %s of class %s (%s): %d records", payload.term_id, payload.class_id, payload.year, len(ranked))
    return ranked


async def rank_year_in_class(db: AsyncSession, school_id: UUID, payload: YearRankRequest) -> List[RankEntry]:
    cohort = await load_cohort(db, school_id, payload.class_id, payload.year)
    ranked = rank_year(cohort)
    await db.commit()
    logger.info("Ranked year of class %s (%s): %d records", payload.class_id, payload.year, len(ranked))
    return ranked


async def rank_all(db: AsyncSession, school_id: UUID, payload: SubjectRankRequest) -> RankAllResult:
    """Subject, sequence, term and year ranks over a single cohort fetch, committed together."""
    cohort = await load_cohort(db, school_id, payload.class_id, payload.year)
    result = RankAllResult(
        subject=rank_subject(cohort, payload.term_id, payload.sequence_id, payload.subject_id),
        sequence=rank_sequence(cohort, payload.term_id, payload.sequence_id),
        term=rank_term(cohort, payload.term_id),
        year=rank_year(cohort),
    )
    await db.commit()
    logger.info("Ranked all levels of class %s (%s): %d records", payload.class_id, payload.year, len(cohort))
    return result


async def rank_class_year(db: AsyncSession, school_id: UUID, payload: YearRankRequest) -> ClassYearRanking:
    """Rank every term, sequence and subject present in the cohort, then the year."""
    cohort = await load_cohort(db, school_id, payload.class_id, payload.year)
    terms = []
    for term_id, sequences in _ledger_layout(cohort).items():
        sequence_rankings = []
        for sequence_id, subject_ids in sequences.items():
            subject_rankings = [
                SubjectRanking(subject_id=subject_id, ranks=rank_subject(cohort, term_id, sequence_id, subject_id))
                for subject_id in subject_ids
            ]
            sequence_rankings.append(
                SequenceRanking(
                    sequence_id=sequence_id,
                    ranks=rank_sequence(cohort, term_id, sequence_id),
                    subjects=subject_rankings,
                )
            )
        terms.append(TermRanking(term_id=term_id, ranks=rank_term(cohort, term_id), sequences=sequence_rankings))

    year_ranks = rank_year(cohort)
    await db.commit()
    logger.info("Ranked class %s for %s: %d terms, %d records", payload.class_id, payload.year, len(terms), len(cohort))
    return ClassYearRanking(
        class_id=payload.class_id,
        year=payload.year,
        total_students=len(cohort),
        terms=terms,
        year_ranks=year_ranks,
    )


async def build_year_ranking_excel(db: AsyncSession, school_id: UUID, class_id: UUID, year: str) -> bytes:
    """Spreadsheet of the cohort ordered by overall average. Ranks are computed for the sheet only, not saved."""
    school_class = await get_class_model(db, school_id, class_id)
    cohort = await load_cohort(db, school_id, class_id, year)

    wb = Workbook()
    ws = wb.active
    ws.title = "Ranking"
    ws.append([f"{school_class.name} - {year}"])
    ws.append(["rank", "matricule", "student", "overall_average", "status", "has_completed"])
    for record, value, rank in competition_ranks([(r, r.overall_average) for r in cohort]):
        student = record.student
        ws.append(
            [
                rank,
                student.matricule if student is not None else "",
                student.full_name if student is not None else "",
                value,
                record.overall_status,
                "yes" if record.has_completed else "no",
            ]
        )
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()
