import logging
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture(autouse=True)
def app_home(tmp_path, monkeypatch):
    """Point settings, logs and the default database at a temporary directory"""
    home = tmp_path / "home"
    monkeypatch.setenv("TIMETICK_HOME", str(home))
    return home


@pytest.fixture(autouse=True)
def reset_state():
    """Reset the database override and logging handlers after each test"""
    yield

    # Import here so collection does not depend on the package
    from timetick.TIMETRACK import database
    database.set_db_path(None)

    logger = logging.getLogger("timetick")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def temp_db(tmp_path):
    """Create a fresh database for one test"""
    from timetick.TIMETRACK import database

    path = tmp_path / "test.db"
    database.set_db_path(path)
    database.create_tables()
    return path


@pytest.fixture
def count_open_entries(temp_db):
    """Return a callable counting entries without an end time"""
    from timetick.TIMETRACK import database

    def _count() -> int:
        conn = database.get_db_connection()
        try:
            return conn.execute("SELECT COUNT(*) FROM entries WHERE end_time IS NULL").fetchone()[0]
        finally:
            conn.close()

    return _count


@pytest.fixture
def wednesday():
    """Wednesday 2024-06-12 14:00"""
    return datetime(2024, 6, 12, 14, 0)
