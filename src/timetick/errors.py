# timetick/errors.py


class TimetickError(Exception):
    """Base class for every error the CLI reports to the user."""


# --- Storage ---
class StorageError(TimetickError):
    """Underlying database I/O or transaction failure."""


class DuplicateNameError(StorageError):
    def __init__(self, name: str):
        super().__init__(f"Sheet '{name}' already exists.")
        self.name = name


class SheetNotFoundError(StorageError):
    def __init__(self, name: str):
        super().__init__(f"No sheet found with name: {name}")
        self.name = name


# --- Tracking ---
class TrackingError(TimetickError):
    pass


class NoActiveSheetError(TrackingError):
    def __init__(self):
        super().__init__(
            "No active sheet selected, use 'timetick sheet <name>' to select or create one."
        )


class AlreadyTrackingError(TrackingError):
    def __init__(self, sheet_name: str):
        super().__init__(
            f"Already tracking time on sheet '{sheet_name}'. Run 'timetick stop' first."
        )
        self.sheet_name = sheet_name


class NoOpenEntryError(TrackingError):
    def __init__(self):
        super().__init__("No entry is being tracked. Run 'timetick start' first.")


class InvalidTimeError(TrackingError):
    pass


# --- Reporting ---
class InvalidPeriodError(TimetickError):
    def __init__(self, period: str):
        super().__init__(f"Invalid display mode: {period}. Use one of: day, week, month, year.")
        self.period = period


# --- Import ---
class ImportFailedError(TimetickError):
    pass


class ImportTransportError(ImportFailedError):
    """Connection failure, timeout or non-OK HTTP status."""


class ImportProtocolError(ImportFailedError):
    """The source answered with success=false or an unreadable payload."""
