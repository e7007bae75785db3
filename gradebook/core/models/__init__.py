from gradebook.core.models.academic_year import (
    AcademicYear,
    FeePayment,
    MarkModification,
    SequenceEntry,
    SubjectMark,
    TermEntry,
)
from gradebook.core.models.academic_year_detail import AcademicYearDetail
from gradebook.core.models.class_model import ClassRosterEntry, SchoolClass
from gradebook.core.models.class_subject import ClassSubject
from gradebook.core.models.sequence import Sequence
from gradebook.core.models.student import Student
from gradebook.core.models.subject import Subject
from gradebook.core.models.term import Term

__all__ = [
    "AcademicYear",
    "AcademicYearDetail",
    "ClassRosterEntry",
    "ClassSubject",
    "FeePayment",
    "MarkModification",
    "SchoolClass",
    "Sequence",
    "SequenceEntry",
    "Student",
    "Subject",
    "SubjectMark",
    "Term",
    "TermEntry",
]
