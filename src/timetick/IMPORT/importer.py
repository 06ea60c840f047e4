# IMPORT/importer.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from timetick.errors import (
    AlreadyTrackingError, ImportFailedError, InvalidTimeError, SheetNotFoundError, TimetickError
)
from timetick.IMPORT.client import DEFAULT_TIMEOUT, APIClient, APIEntry
from timetick.TIMETRACK import database
from timetick.utils.logging import get_logger

logger = get_logger("import")


@dataclass
class ImportResult:
    total: int
    imported_ids: List[int] = field(default_factory=list)
    # First failure; the rest of the batch was not attempted
    error: Optional[TimetickError] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


def _import_one(entry: APIEntry, default_sheet: Optional[str], sheet_ids: Dict[str, int]) -> None:
    sheet_name = entry.sheet or default_sheet
    if not sheet_name:
        raise ImportFailedError(
            f"Entry {entry.id} has no target sheet; pass --sheet or select a sheet first."
        )

    if sheet_name not in sheet_ids:
        sheet = database.get_sheet_by_name(sheet_name)
        if sheet is None:
            raise SheetNotFoundError(sheet_name)
        sheet_ids[sheet_name] = sheet.id

    start, end = entry.start, entry.end
    if end is not None and end < start:
        raise InvalidTimeError(f"Entry {entry.id} ends before it starts.")
    if end is None:
        # Only one entry may be running at a time
        open_entry = database.find_open_entry()
        if open_entry is not None:
            sheet = database.get_sheet_by_id(open_entry.sheet_id)
            raise AlreadyTrackingError(sheet.name if sheet else str(open_entry.sheet_id))

    database.create_full_entry(sheet_ids[sheet_name], start, end, entry.note or "")


def import_entries(entries: Sequence[APIEntry], default_sheet: Optional[str] = None) -> ImportResult:
    """Persist entries one at a time, stopping at the first failure.

    Entries persisted before the failure are kept and reported in
    `imported_ids`, so the source can be told about them.
    """
    result = ImportResult(total=len(entries))
    sheet_ids: Dict[str, int] = {}
    for entry in entries:
        try:
            _import_one(entry, default_sheet, sheet_ids)
        except TimetickError as e:
            logger.error(f"Import of entry {entry.id} failed, aborting batch: {e}")
            result.error = e
            break
        result.imported_ids.append(entry.id)
    return result


def run_import(url: str, sheet: Optional[str] = None, timeout: int = DEFAULT_TIMEOUT) -> ImportResult:
    client = APIClient(url, timeout=timeout)

    default_sheet = sheet
    if default_sheet is None:
        active = database.get_active_sheet()
        default_sheet = active.name if active else None

    entries = client.get_unimported_entries()
    result = import_entries(entries, default_sheet)

    if result.imported_ids:
        try:
            marked = client.mark_entries_as_imported(result.imported_ids)
        except ImportFailedError:
            logger.error(
                f"Persisted entries {result.imported_ids} but could not mark them as imported"
            )
            raise
        logger.info(
            f"Marked {marked.imported_count} entries as imported, {marked.remaining_count} remaining"
        )

    result.message = f"Successfully imported {len(result.imported_ids)} of {result.total} entries."
    logger.info(result.message)
    return result
