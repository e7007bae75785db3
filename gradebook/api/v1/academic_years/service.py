import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.api.v1.classes.service import find_class, get_class_model, get_coefficients
from gradebook.api.v1.sequences.service import find_sequence
from gradebook.api.v1.students.service import get_student_model
from gradebook.api.v1.subjects.service import find_subject, get_subject_model
from gradebook.api.v1.terms.service import find_term
from gradebook.auth.schemas import CurrentUser
from gradebook.core import grading
from gradebook.core.enums import Discipline
from gradebook.core.exceptions import NotFoundError, PreconditionError, ServiceError, ValidationFailure
from gradebook.core.models import (
    AcademicYear,
    AcademicYearDetail,
    FeePayment,
    SchoolClass,
    Sequence,
    Subject,
    SubjectMark,
    Term,
    TermEntry,
)
from gradebook.core.ranking import competition_ranks

from .schemas import (
    AcademicYearCreate,
    AcademicYearResponse,
    AtRiskEntry,
    BulkMarkFailure,
    BulkMarkResult,
    BulkMarkUpdate,
    ClassOverview,
    FeeCreate,
    FeeResponse,
    FeeSummary,
    FeeUpdate,
    MarkUpdate,
    PerformanceSummary,
    ReportCard,
    ReportSequenceLine,
    ReportStudent,
    ReportSubjectLine,
    ReportTermLine,
    SyncResult,
    TopPerformer,
)

logger = logging.getLogger(__name__)

TOP_PERFORMERS = 5


def to_response(record: AcademicYear) -> AcademicYearResponse:
    return AcademicYearResponse.model_validate(record)


async def find_record(db: AsyncSession, school_id: UUID, record_id: UUID) -> Optional[AcademicYear]:
    result = await db.execute(
        select(AcademicYear)
        .where(AcademicYear.id == record_id, AcademicYear.school_id == school_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_record_model(db: AsyncSession, school_id: UUID, record_id: UUID) -> AcademicYear:
    record = await find_record(db, school_id, record_id)
    if not record:
        raise NotFoundError("Academic year not found")
    return record


async def find_student_record(
    db: AsyncSession,
    school_id: UUID,
    student_id: UUID,
    year: str,
) -> Optional[AcademicYear]:
    result = await db.execute(
        select(AcademicYear).where(
            AcademicYear.school_id == school_id,
            AcademicYear.student_id == student_id,
            AcademicYear.year == year,
        )
    )
    return result.scalar_one_or_none()


def new_record(school_id: UUID, student_id: UUID, year: str, class_id: Optional[UUID], has_repeated: bool = False) -> AcademicYear:
    """Empty record: no terms, no fees, ranks unset."""
    return AcademicYear(
        id=uuid.uuid4(),
        school_id=school_id,
        student_id=student_id,
        year=year,
        class_id=class_id,
        has_repeated=has_repeated,
        has_completed=False,
        rank=None,
        terms=[],
        fees=[],
        roster_entries=[],
    )


def seed_skeleton(record: AcademicYear, detail: AcademicYearDetail, school_class: SchoolClass) -> None:
    """Copy the year's terms and their sequences into the record, each sequence holding the class's active subjects."""
    subject_ids = [cs.subject_id for cs in school_class.subjects if cs.is_active]
    for term in detail.terms:
        term_entry = record.get_or_create_term(term.id)
        for sequence in term.sequences:
            sequence_entry = term_entry.get_or_create_sequence(sequence.id)
            for subject_id in subject_ids:
                sequence_entry.get_or_create_subject(subject_id)


async def recalculate(db: AsyncSession, record: AcademicYear) -> None:
    """Refresh every average of the record from its class coefficient table."""
    coefficients = await get_coefficients(db, record.school_id, record.class_id)
    record.calculate_averages(coefficients)


async def create_academic_year(db: AsyncSession, school_id: UUID, payload: AcademicYearCreate) -> AcademicYearResponse:
    """Create a record with a pre-seeded skeleton. Every term/sequence/subject reference must resolve."""
    await get_student_model(db, school_id, payload.student_id)
    if payload.class_id is not None:
        await get_class_model(db, school_id, payload.class_id)
    if await find_student_record(db, school_id, payload.student_id, payload.year):
        raise ServiceError("Academic year already exists for this student", status.HTTP_409_CONFLICT)

    record = new_record(school_id, payload.student_id, payload.year, payload.class_id, payload.has_repeated)
    for term_item in payload.terms:
        if not await find_term(db, school_id, term_item.term_id):
            raise NotFoundError(f"Term with ID {term_item.term_id} not found")
        term_entry = record.get_or_create_term(term_item.term_id)
        for seq_item in term_item.sequences:
            if not await find_sequence(db, school_id, seq_item.sequence_id):
                raise NotFoundError(f"Sequence with ID {seq_item.sequence_id} not found")
            seq_entry = term_entry.get_or_create_sequence(seq_item.sequence_id)
            for subject_id in seq_item.subject_ids:
                if not await find_subject(db, school_id, subject_id):
                    raise NotFoundError(f"Subject with ID {subject_id} not found")
                seq_entry.get_or_create_subject(subject_id)

    db.add(record)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Academic year already exists for this student", status.HTTP_409_CONFLICT)
    return to_response(await get_record_model(db, school_id, record.id))


async def list_academic_years(
    db: AsyncSession,
    school_id: UUID,
    year: Optional[str] = None,
    class_id: Optional[UUID] = None,
    student_id: Optional[UUID] = None,
) -> List[AcademicYearResponse]:
    stmt = select(AcademicYear).where(AcademicYear.school_id == school_id)
    if year:
        stmt = stmt.where(AcademicYear.year == year)
    if class_id is not None:
        stmt = stmt.where(AcademicYear.class_id == class_id)
    if student_id is not None:
        stmt = stmt.where(AcademicYear.student_id == student_id)
    result = await db.execute(stmt.order_by(AcademicYear.year.desc(), AcademicYear.created_at))
    return [to_response(r) for r in result.scalars().all()]


async def get_academic_year(db: AsyncSession, school_id: UUID, record_id: UUID) -> AcademicYearResponse:
    return to_response(await get_record_model(db, school_id, record_id))


async def delete_academic_year(db: AsyncSession, school_id: UUID, record_id: UUID) -> None:
    """Delete the record; its roster entries go with it, so it leaves the student's history and the class list."""
    record = await get_record_model(db, school_id, record_id)
    await db.delete(record)
    await db.commit()
    logger.info("Deleted academic year %s of student %s (%s)", record_id, record.student_id, record.year)


# ----- marks -----


async def _apply_mark(
    db: AsyncSession,
    record: AcademicYear,
    payload: MarkUpdate,
    current_user: CurrentUser,
) -> None:
    """Validate references, write one mark into the ledger and refresh the record's averages."""
    school_id = record.school_id
    is_absences = payload.subject_id == grading.ABSENCES_SENTINEL
    if is_absences:
        if not 0 <= payload.new_mark <= grading.MAX_ABSENCES or payload.new_mark != int(payload.new_mark):
            raise ValidationFailure(f"Absences must be a whole number between 0 and {grading.MAX_ABSENCES}")
    elif not grading.is_valid_mark(payload.new_mark):
        raise ValidationFailure(f"Mark must be between {grading.MIN_MARK} and {grading.MAX_MARK}")

    term = await find_term(db, school_id, payload.term_id)
    if not term:
        raise NotFoundError("Term not found")
    sequence = await find_sequence(db, school_id, payload.sequence_id)
    if not sequence:
        raise NotFoundError("Sequence not found")
    if sequence.term_id != term.id:
        raise PreconditionError("Sequence does not belong to the given term")
    if not sequence.is_active:
        raise PreconditionError("Sequence is not Active")
    if not is_absences:
        await get_subject_model(db, school_id, payload.subject_id)

    record.apply_mark(
        term.id,
        sequence.id,
        payload.subject_id,
        payload.new_mark,
        current_user.name,
        current_user.id,
    )
    await recalculate(db, record)


async def update_mark(
    db: AsyncSession,
    school_id: UUID,
    record_id: UUID,
    payload: MarkUpdate,
    current_user: CurrentUser,
) -> AcademicYearResponse:
    record = await get_record_model(db, school_id, record_id)
    await _apply_mark(db, record, payload, current_user)
    await db.commit()
    return to_response(await get_record_model(db, school_id, record_id))


async def bulk_update_marks(
    db: AsyncSession,
    school_id: UUID,
    payload: BulkMarkUpdate,
    current_user: CurrentUser,
) -> BulkMarkResult:
    """Apply many marks in one commit. A rejected item is reported and skipped; the rest still apply."""
    processed = 0
    failed: List[BulkMarkFailure] = []
    for item in payload.updates:
        try:
            record = await get_record_model(db, school_id, item.academic_year_id)
            await _apply_mark(db, record, item, current_user)
            processed += 1
        except ServiceError as e:
            failed.append(BulkMarkFailure(academic_year_id=item.academic_year_id, error=e.message))
    await db.commit()
    logger.info("Bulk mark update: %d processed, %d failed", processed, len(failed))
    return BulkMarkResult(processed=processed, failed_count=len(failed), failed=failed)


async def calculate_averages(db: AsyncSession, school_id: UUID, record_id: UUID) -> AcademicYearResponse:
    record = await get_record_model(db, school_id, record_id)
    await recalculate(db, record)
    await db.commit()
    return to_response(await get_record_model(db, school_id, record_id))


# ----- completion / risk -----


async def check_year_completion(db: AsyncSession, school_id: UUID, record_id: UUID) -> AcademicYearResponse:
    record = await get_record_model(db, school_id, record_id)
    record.check_year_completion()
    await db.commit()
    return to_response(await get_record_model(db, school_id, record_id))


async def find_students_at_risk(
    db: AsyncSession,
    school_id: UUID,
    year: str,
    threshold: float = grading.PASSING_MARK,
) -> List[AtRiskEntry]:
    """
    Records of the year with a term average below threshold or any failing subject.
    has_failing_subjects is derived, so the filter runs here after the fetch.
    """
    result = await db.execute(
        select(AcademicYear).where(AcademicYear.school_id == school_id, AcademicYear.year == year)
    )
    at_risk = []
    for record in result.scalars().all():
        if not record.is_at_risk(threshold):
            continue
        at_risk.append(
            AtRiskEntry(
                academic_year_id=record.id,
                student_id=record.student_id,
                student_name=record.student.full_name if record.student is not None else None,
                class_id=record.class_id,
                overall_average=record.overall_average,
                term_averages=[t.average for t in record.terms],
                has_failing_subjects=record.has_failing_subjects,
            )
        )
    return at_risk


async def get_class_overview(db: AsyncSession, school_id: UUID, class_id: UUID, year: str) -> ClassOverview:
    await get_class_model(db, school_id, class_id)
    result = await db.execute(
        select(AcademicYear).where(
            AcademicYear.school_id == school_id,
            AcademicYear.class_id == class_id,
            AcademicYear.year == year,
        )
    )
    records = list(result.scalars().all())
    if not records:
        raise NotFoundError("No academic records found for this class and year")

    distribution = {
        band.value: 0
        for band in Discipline
        if band is not Discipline.NOT_AVAILABLE
    }
    for record in records:
        distribution[record.overall_status] += 1

    ranked = competition_ranks([(r, r.overall_average) for r in records])
    top = [
        TopPerformer(
            academic_year_id=r.id,
            student_id=r.student_id,
            student_name=r.student.full_name if r.student is not None else None,
            average=average,
            status=r.overall_status,
            rank=r.rank,
        )
        for r, average, _ in ranked[:TOP_PERFORMERS]
    ]
    return ClassOverview(
        class_id=class_id,
        year=year,
        total_students=len(records),
        average_class_average=grading.mean([r.overall_average for r in records]),
        students_completed=sum(1 for r in records if r.has_completed),
        students_at_risk=sum(1 for r in records if r.overall_average < grading.PASSING_MARK or r.has_failing_subjects),
        performance_distribution=distribution,
        top_performers=top,
    )


async def sync_with_class(db: AsyncSession, school_id: UUID, record_id: UUID) -> SyncResult:
    """
    Align every active sequence of the record with the class subject list:
    missing active class subjects are added, subjects no longer active in the class are dropped.
    """
    record = await get_record_model(db, school_id, record_id)
    if record.class_id is None:
        raise PreconditionError("Academic year has no class")
    school_class = await get_class_model(db, school_id, record.class_id)
    active_ids = [cs.subject_id for cs in school_class.subjects if cs.is_active]

    added = 0
    removed = 0
    for term in record.terms:
        for sequence in term.sequences:
            if not sequence.is_active:
                continue
            for subject_id in active_ids:
                if sequence.find_subject(subject_id) is None:
                    sequence.subjects.append(SubjectMark.blank(subject_id))
                    added += 1
            for entry in list(sequence.subjects):
                if entry.subject_id not in active_ids:
                    sequence.subjects.remove(entry)
                    removed += 1

    record.calculate_averages(grading.coefficient_table(school_class))
    await db.commit()
    logger.info("Synced academic year %s with class %s: +%d -%d subjects", record_id, school_class.id, added, removed)
    return SyncResult(
        subjects_added=added,
        subjects_removed=removed,
        academic_year=to_response(await get_record_model(db, school_id, record_id)),
    )


# ----- fees -----


async def list_fees(db: AsyncSession, school_id: UUID, record_id: UUID) -> List[FeeResponse]:
    record = await get_record_model(db, school_id, record_id)
    return [FeeResponse.model_validate(f) for f in record.fees]


async def add_fee(db: AsyncSession, school_id: UUID, record_id: UUID, payload: FeeCreate) -> List[FeeResponse]:
    record = await get_record_model(db, school_id, record_id)
    bill_id = payload.bill_id.strip()
    if record.find_fee(bill_id) is not None:
        raise ServiceError("Fee with this billID already exists", status.HTTP_409_CONFLICT)
    record.fees.append(
        FeePayment(
            bill_id=bill_id,
            type=payload.type.strip() if payload.type else None,
            amount=payload.amount,
            payment_method=payload.payment_method,
            payment_date=payload.payment_date,
        )
    )
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Fee with this billID already exists", status.HTTP_409_CONFLICT)
    return await list_fees(db, school_id, record_id)


async def update_fee(
    db: AsyncSession,
    school_id: UUID,
    record_id: UUID,
    bill_id: str,
    payload: FeeUpdate,
) -> FeeResponse:
    record = await get_record_model(db, school_id, record_id)
    fee = record.find_fee(bill_id)
    if fee is None:
        raise NotFoundError("Fee not found")
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(fee, field, value)
    await db.commit()
    return FeeResponse.model_validate(fee)


async def delete_fee(db: AsyncSession, school_id: UUID, record_id: UUID, bill_id: str) -> None:
    record = await get_record_model(db, school_id, record_id)
    fee = record.find_fee(bill_id)
    if fee is None:
        raise NotFoundError("Fee not found")
    record.fees.remove(fee)
    await db.commit()


# ----- reports -----


async def _by_id(db: AsyncSession, model, ids) -> Dict[UUID, Any]:
    if not ids:
        return {}
    result = await db.execute(select(model).where(model.id.in_(list(ids))))
    return {row.id: row for row in result.scalars().all()}


async def _report_student(db: AsyncSession, record: AcademicYear) -> Tuple[ReportStudent, Optional[SchoolClass]]:
    school_class = await find_class(db, record.school_id, record.class_id) if record.class_id else None
    student = record.student
    return (
        ReportStudent(
            id=record.student_id,
            name=student.full_name if student is not None else None,
            matricule=student.matricule if student is not None else None,
            class_name=school_class.name if school_class is not None else None,
        ),
        school_class,
    )


def _term_line(entry: TermEntry, terms: Dict[UUID, Term]) -> ReportTermLine:
    term = terms.get(entry.term_id)
    return ReportTermLine(
        term_id=entry.term_id,
        name=term.name if term else None,
        average=entry.average or 0,
        rank=entry.rank,
        discipline=entry.discipline,
    )


def _ordered_terms(record: AcademicYear, terms: Dict[UUID, Term]) -> List[TermEntry]:
    return sorted(record.terms, key=lambda t: terms[t.term_id].order if t.term_id in terms else 0)


def _fee_summary(record: AcademicYear, school_class: Optional[SchoolClass]) -> FeeSummary:
    by_type: Dict[str, float] = {}
    for fee in record.fees:
        key = fee.type or "Other"
        by_type[key] = by_type.get(key, 0) + (fee.amount or 0)
    total = record.total_fees_paid
    class_fee = school_class.amount_fee if school_class is not None else None
    return FeeSummary(
        total_paid=total,
        payment_count=len(record.fees),
        by_type=by_type,
        class_fee=class_fee,
        outstanding=max(class_fee - total, 0) if class_fee is not None else None,
    )


async def generate_report_card(
    db: AsyncSession,
    school_id: UUID,
    record_id: UUID,
    term_id: Optional[UUID] = None,
) -> ReportCard:
    """
    Report card of one record. With term_id: that term's sequences and subject marks,
    with catalog names. Without: the year view (term lines, overall status, fees).
    """
    record = await get_record_model(db, school_id, record_id)
    student, _ = await _report_student(db, record)

    if term_id is None:
        terms = await _by_id(db, Term, {t.term_id for t in record.terms})
        return ReportCard(
            academic_year_id=record.id,
            year=record.year,
            student=student,
            overall_average=record.overall_average,
            overall_status=record.overall_status,
            rank=record.rank,
            has_completed=record.has_completed,
            terms=[_term_line(t, terms) for t in _ordered_terms(record, terms)],
            fees=[FeeResponse.model_validate(f) for f in record.fees],
            total_fees_paid=record.total_fees_paid,
        )

    entry = record.find_term(term_id)
    if entry is None:
        raise NotFoundError("Term not found")
    terms = await _by_id(db, Term, [term_id])
    sequences = await _by_id(db, Sequence, {s.sequence_id for s in entry.sequences})
    subjects = await _by_id(
        db, Subject, {m.subject_id for s in entry.sequences for m in s.subjects}
    )

    line = _term_line(entry, terms)
    for seq_entry in sorted(
        entry.sequences,
        key=lambda s: sequences[s.sequence_id].order if s.sequence_id in sequences else 0,
    ):
        sequence = sequences.get(seq_entry.sequence_id)
        line.sequences.append(
            ReportSequenceLine(
                sequence_id=seq_entry.sequence_id,
                name=sequence.name if sequence else None,
                average=seq_entry.average or 0,
                rank=seq_entry.rank,
                absences=seq_entry.absences or 0,
                discipline=seq_entry.discipline,
                subjects=[
                    ReportSubjectLine(
                        subject_id=mark.subject_id,
                        name=subjects[mark.subject_id].name if mark.subject_id in subjects else None,
                        code=subjects[mark.subject_id].code if mark.subject_id in subjects else None,
                        mark=mark.current_mark or 0,
                        rank=mark.rank,
                        discipline=mark.discipline,
                        is_active=mark.counts_toward_average,
                    )
                    for mark in seq_entry.subjects
                ],
            )
        )
    return ReportCard(academic_year_id=record.id, year=record.year, student=student, term=line)


async def get_performance_summary(
    db: AsyncSession,
    school_id: UUID,
    student_id: UUID,
    year: str,
) -> PerformanceSummary:
    """Grades and fee standing of one student for one year."""
    record = await find_student_record(db, school_id, student_id, year)
    if record is None:
        raise NotFoundError("Academic year not found for this student and year")
    student, school_class = await _report_student(db, record)
    terms = await _by_id(db, Term, {t.term_id for t in record.terms})

    marks = [m for t in record.terms for s in t.sequences for m in s.subjects]
    return PerformanceSummary(
        academic_year_id=record.id,
        year=record.year,
        student=student,
        overall_average=record.overall_average,
        overall_status=record.overall_status,
        overall_rank=record.rank,
        has_completed=record.has_completed,
        has_repeated=record.has_repeated,
        has_failing_subjects=record.has_failing_subjects,
        failing_subjects=sum(1 for m in marks if (m.current_mark or 0) < grading.PASSING_MARK),
        total_absences=sum(s.absences or 0 for t in record.terms for s in t.sequences),
        terms=[_term_line(t, terms) for t in _ordered_terms(record, terms)],
        fees=_fee_summary(record, school_class),
    )
