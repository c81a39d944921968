"""
Domain Exceptions Module

Exception hierarchy shared by the domain, infrastructure and application layers.
"""


class TimesheetError(Exception):
    """Base exception for timesheet-related errors."""
    pass


class ValidationError(TimesheetError):
    """Raised when an explicit action is rejected before anything is applied."""
    pass


class DuplicateCodeError(ValidationError):
    """
    Raised when an employee code is already taken in the master list.

    The comparison is case-insensitive.
    """
    def __init__(self, code: str, message: str = None):
        self.code = code
        self.message = message or f"Employee code '{code}' already exists."
        super().__init__(self.message)


class NotFoundError(TimesheetError):
    """Raised when an explicit operation references an unknown record."""
    pass


class FileFormatError(TimesheetError):
    """Raised when an import file cannot be read at all."""
    pass


class SpreadsheetFormatError(FileFormatError):
    """Raised when a spreadsheet file cannot be opened as a workbook."""
    pass


class StoreError(TimesheetError):
    """Raised when a document store call fails."""
    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")
