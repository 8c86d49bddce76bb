class ScreeningError(ValueError):
    """Base class for errors raised by the collaborators around the scoring engine."""


class SpreadsheetError(ScreeningError):
    """The uploaded workbook could not be turned into an answer row."""


class HistoryError(ScreeningError):
    """Stored assessment records are not in the expected shape."""
