from enum import Enum


class Discipline(str, Enum):
    EXCELLENT = "Excellent"
    VERY_GOOD = "Very Good"
    GOOD = "Good"
    AVERAGE = "Average"
    BELOW_AVERAGE = "Below Average"
    NOT_AVAILABLE = "Not Available"


class PeriodStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class ClassStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"


class EducationSystem(str, Enum):
    FRANCOPHONE = "francophone"
    ANGLOPHONE = "anglophone"


class Level(str, Enum):
    SIXIEME = "6ème"
    CINQUIEME = "5ème"
    QUATRIEME = "4ème"
    TROISIEME = "3ème"
    SECONDE = "2nde"
    PREMIERE = "1ère"
    TERMINALE = "Terminale"
    FORM_1 = "Form 1"
    FORM_2 = "Form 2"
    FORM_3 = "Form 3"
    FORM_4 = "Form 4"
    FORM_5 = "Form 5"
    LOWER_SIXTH = "Lower Sixth"
    UPPER_SIXTH = "Upper Sixth"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
