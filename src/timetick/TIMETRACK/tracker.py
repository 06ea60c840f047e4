# TIMETRACK/tracker.py
"""
Tracking state machine.

The state is never cached in memory: every call reads the active sheet and the
open entry back from the database, so separate invocations of the CLI always
agree with each other.

    NO_ACTIVE_SHEET --select_or_create_sheet--> IDLE --start--> TRACKING
                                                 ^                  |
                                                 +-------stop-------+
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from timetick.errors import (
    AlreadyTrackingError, DuplicateNameError, InvalidTimeError, NoActiveSheetError, NoOpenEntryError
)
from timetick.TIMETRACK import database
from timetick.TIMETRACK.model import Entry, Sheet
from timetick.utils.logging import get_logger

logger = get_logger("tracker")

NO_ACTIVE_SHEET = "NoActiveSheet"
IDLE = "ActiveSheetIdle"
TRACKING = "ActiveSheetTracking"


@dataclass
class OpenEntryStatus:
    entry: Entry
    sheet: Optional[Sheet]
    elapsed: timedelta


def current_state() -> str:
    if database.find_open_entry() is not None:
        return TRACKING
    if database.get_active_sheet_id() is None:
        return NO_ACTIVE_SHEET
    return IDLE


def select_or_create_sheet(name: str) -> bool:
    """Activate `name`, creating the sheet first if needed. Returns True when it was created."""
    if not name or not name.strip():
        raise ValueError("Sheet name must not be empty.")

    created = False
    if not database.sheet_exists(name):
        try:
            database.create_sheet(name)
            created = True
        except DuplicateNameError:
            # Someone else created it between the check and the insert; reuse it.
            pass
    database.activate_sheet(name)
    logger.info(f"Sheet {'created and ' if created else ''}selected name={name}")
    return created


def start(note: Optional[str] = "", at: Optional[datetime] = None) -> Entry:
    sheet_id = database.get_active_sheet_id()
    if sheet_id is None:
        raise NoActiveSheetError()

    open_entry = database.find_open_entry()
    if open_entry is not None:
        sheet = database.get_sheet_by_id(open_entry.sheet_id)
        raise AlreadyTrackingError(sheet.name if sheet else str(open_entry.sheet_id))

    start_time = at or datetime.now()
    entry = database.create_entry(sheet_id, start_time, note or "")
    logger.info(f"Start tracking sheet_id={sheet_id} entry_id={entry.id} note={note!r}")
    return entry


def resolve_stop_note(stored: Optional[str], supplied: Optional[str]) -> Tuple[str, bool]:
    """Return (note to store, whether the user still has to be asked).

    A note given at start always wins over the one given at stop.
    """
    stored = stored or ""
    supplied = supplied or ""
    if stored:
        return stored, False
    if supplied:
        return supplied, False
    return "", True


def stop(note: Optional[str] = "",
         prompt: Optional[Callable[[], str]] = None,
         at: Optional[datetime] = None) -> Entry:
    open_entry = database.find_open_entry()
    if open_entry is None:
        raise NoOpenEntryError()

    end_time = at or datetime.now()
    if end_time < open_entry.start_time:
        raise InvalidTimeError(
            f"End time {end_time.strftime('%Y-%m-%d %H:%M:%S')} is before start time "
            f"{open_entry.start_time.strftime('%Y-%m-%d %H:%M:%S')}."
        )

    final_note, needs_prompt = resolve_stop_note(open_entry.note, note)
    if needs_prompt and prompt is not None:
        final_note = (prompt() or "").strip()

    database.close_open_entry(open_entry.id, end_time, final_note)
    logger.info(
        f"Stop tracking entry_id={open_entry.id} dur={int((end_time - open_entry.start_time).total_seconds())}s"
    )
    open_entry.end_time = end_time
    open_entry.note = final_note
    return open_entry


def open_entry_status(now: Optional[datetime] = None) -> Optional[OpenEntryStatus]:
    entry = database.find_open_entry()
    if entry is None:
        return None
    now = now or datetime.now()
    return OpenEntryStatus(
        entry=entry,
        sheet=database.get_sheet_by_id(entry.sheet_id),
        elapsed=max(now - entry.start_time, timedelta(0)),
    )
