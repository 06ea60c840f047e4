# TIMETRACK/database.py
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from timetick.config import Settings, app_dir
from timetick.errors import DuplicateNameError, NoOpenEntryError, SheetNotFoundError, StorageError
from timetick.TIMETRACK.model import Entry, Sheet
from timetick.utils.logging import get_logger

DATABASE_FILE = "database.db"
SCHEMA_VERSION = 1

logger = get_logger("database")

# Set by tests or by the CLI when a path is given explicitly
_DB_PATH_OVERRIDE: Optional[Path] = None

ENTRY_COLUMNS = "id, sheet_id, start_time, end_time, note, created_at"


def set_db_path(path: Optional[Path]) -> None:
    global _DB_PATH_OVERRIDE
    _DB_PATH_OVERRIDE = path


def db_path() -> Path:
    if _DB_PATH_OVERRIDE:
        return _DB_PATH_OVERRIDE
    configured = Settings.load().database_path
    if configured:
        return Path(configured).expanduser()
    return app_dir() / DATABASE_FILE


def get_db_connection() -> sqlite3.Connection:
    path = db_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path)
    except (OSError, sqlite3.Error) as e:
        raise StorageError(f"Failed to open database {path}: {e}") from e
    conn.row_factory = sqlite3.Row  # Allows accessing columns by name
    try:
        conn.execute("PRAGMA foreign_keys = ON")
    except sqlite3.Error as e:
        conn.close()
        raise StorageError(f"Failed to configure database {path}: {e}") from e
    return conn


@contextmanager
def _transaction() -> Iterator[sqlite3.Connection]:
    """Yield a connection whose work is committed on success and rolled back on any error."""
    conn = get_db_connection()
    try:
        with conn:
            yield conn
    except sqlite3.Error as e:
        logger.error(f"Database error, transaction rolled back: {e}")
        raise StorageError(f"Database error: {e}") from e
    finally:
        conn.close()


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_entry(row: sqlite3.Row) -> Entry:
    return Entry(
        id=row['id'],
        sheet_id=row['sheet_id'],
        start_time=_parse_ts(row['start_time']),
        end_time=_parse_ts(row['end_time']),
        note=row['note'],
        created_at=_parse_ts(row['created_at']),
    )


def _row_to_sheet(row: sqlite3.Row) -> Sheet:
    return Sheet(
        id=row['id'],
        name=row['name'],
        active=bool(row['active']),
        created_at=_parse_ts(row['created_at']),
    )


def create_tables():
    with _transaction() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sheets (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                active INTEGER NOT NULL DEFAULT 0,
                created_at TEXT DEFAULT (datetime('now', 'localtime'))
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                sheet_id INTEGER NOT NULL,
                start_time TEXT NOT NULL,
                end_time TEXT,
                note TEXT,
                created_at TEXT DEFAULT (datetime('now', 'localtime')),
                FOREIGN KEY (sheet_id) REFERENCES sheets (id)
            )
        """)
        # The store itself refuses a second active sheet
        cursor.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_sheets_single_active ON sheets (active) WHERE active = 1"
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_entries_start_time ON entries (start_time)")
        cursor.execute(
            "INSERT OR IGNORE INTO meta (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),),
        )


# --- Sheet Operations ---
def sheet_exists(name: str) -> bool:
    with _transaction() as conn:
        row = conn.execute("SELECT EXISTS(SELECT 1 FROM sheets WHERE name = ?)", (name,)).fetchone()
    return bool(row[0])


def create_sheet(name: str) -> Sheet:
    if not name or not name.strip():
        raise ValueError("Sheet name must not be empty.")
    with _transaction() as conn:
        try:
            cursor = conn.execute("INSERT INTO sheets (name) VALUES (?)", (name,))
        except sqlite3.IntegrityError:
            raise DuplicateNameError(name) from None
        sheet_id = cursor.lastrowid
    logger.info(f"Created sheet name={name} id={sheet_id}")
    return Sheet(name=name, id=sheet_id)


def get_sheet_by_name(name: str) -> Optional[Sheet]:
    with _transaction() as conn:
        row = conn.execute(
            "SELECT id, name, active, created_at FROM sheets WHERE name = ?", (name,)
        ).fetchone()
    return _row_to_sheet(row) if row else None


def get_sheet_by_id(sheet_id: int) -> Optional[Sheet]:
    with _transaction() as conn:
        row = conn.execute(
            "SELECT id, name, active, created_at FROM sheets WHERE id = ?", (sheet_id,)
        ).fetchone()
    return _row_to_sheet(row) if row else None


def get_all_sheets() -> List[Sheet]:
    with _transaction() as conn:
        rows = conn.execute("SELECT id, name, active, created_at FROM sheets ORDER BY name").fetchall()
    return [_row_to_sheet(row) for row in rows]


def list_sheet_names() -> List[str]:
    with _transaction() as conn:
        rows = conn.execute("SELECT name FROM sheets ORDER BY name").fetchall()
    return [row['name'] for row in rows]


def activate_sheet(name: str) -> None:
    """Make `name` the only active sheet, all-or-nothing."""
    with _transaction() as conn:
        conn.execute("UPDATE sheets SET active = 0 WHERE active = 1")
        cursor = conn.execute("UPDATE sheets SET active = 1 WHERE name = ?", (name,))
        if cursor.rowcount == 0:
            # Leaving the block with an exception rolls the deactivation back
            raise SheetNotFoundError(name)
    logger.info(f"Activated sheet name={name}")


def get_active_sheet_id() -> Optional[int]:
    with _transaction() as conn:
        row = conn.execute("SELECT id FROM sheets WHERE active = 1").fetchone()
    return row['id'] if row else None


def get_active_sheet() -> Optional[Sheet]:
    with _transaction() as conn:
        row = conn.execute("SELECT id, name, active, created_at FROM sheets WHERE active = 1").fetchone()
    return _row_to_sheet(row) if row else None


# --- Entry Operations ---
def create_entry(sheet_id: int, start_time: datetime, note: Optional[str] = "") -> Entry:
    with _transaction() as conn:
        cursor = conn.execute(
            "INSERT INTO entries (sheet_id, start_time, note) VALUES (?, ?, ?)",
            (sheet_id, start_time.isoformat(), note or ""),
        )
        entry_id = cursor.lastrowid
    return Entry(sheet_id=sheet_id, start_time=start_time, note=note or "", id=entry_id)


def create_full_entry(sheet_id: int,
                      start_time: datetime,
                      end_time: Optional[datetime],
                      note: Optional[str] = "") -> Entry:
    """Insert an entry with its end time already known (import path)."""
    with _transaction() as conn:
        cursor = conn.execute(
            "INSERT INTO entries (sheet_id, start_time, end_time, note) VALUES (?, ?, ?, ?)",
            (sheet_id, start_time.isoformat(),
             end_time.isoformat() if end_time else None, note or ""),
        )
        entry_id = cursor.lastrowid
    return Entry(sheet_id=sheet_id, start_time=start_time, end_time=end_time, note=note or "", id=entry_id)


def find_open_entry() -> Optional[Entry]:
    with _transaction() as conn:
        row = conn.execute(
            f"SELECT {ENTRY_COLUMNS} FROM entries WHERE end_time IS NULL ORDER BY id LIMIT 1"
        ).fetchone()
    return _row_to_entry(row) if row else None


def close_open_entry(entry_id: int, end_time: datetime, note: Optional[str]) -> None:
    with _transaction() as conn:
        cursor = conn.execute(
            "UPDATE entries SET end_time = ?, note = ? WHERE id = ? AND end_time IS NULL",
            (end_time.isoformat(), note or "", entry_id),
        )
        if cursor.rowcount == 0:
            raise NoOpenEntryError()


def get_entry_by_id(entry_id: int) -> Optional[Entry]:
    with _transaction() as conn:
        row = conn.execute(f"SELECT {ENTRY_COLUMNS} FROM entries WHERE id = ?", (entry_id,)).fetchone()
    return _row_to_entry(row) if row else None


def query_closed_entries_in_range(start: datetime,
                                  end: datetime) -> List[Tuple[str, datetime, datetime, str]]:
    """Closed entries whose start falls in [start, end), ordered by sheet name."""
    with _transaction() as conn:
        rows = conn.execute(
            """
            SELECT s.name, e.start_time, e.end_time, e.note
            FROM sheets s
            JOIN entries e ON e.sheet_id = s.id
            WHERE e.start_time >= ? AND e.start_time < ? AND e.end_time IS NOT NULL
            ORDER BY s.name, e.start_time, e.id
            """,
            (start.isoformat(), end.isoformat()),
        ).fetchall()
    logger.debug(f"Range query {start.isoformat()} .. {end.isoformat()} returned {len(rows)} rows")
    return [
        (row['name'], _parse_ts(row['start_time']), _parse_ts(row['end_time']), row['note'] or "")
        for row in rows
    ]
