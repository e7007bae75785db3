# Academic years are named "YYYY-YYYY" everywhere (records, classes, subjects, calendar).
YEAR_PATTERN = r"^\d{4}-\d{4}$"
