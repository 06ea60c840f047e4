"""
Tests for persisting fetched entries and the import run.
"""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from timetick.errors import (
    AlreadyTrackingError, ImportFailedError, ImportTransportError, InvalidTimeError, SheetNotFoundError
)
from timetick.IMPORT.client import APIEntry, MarkImportedResponse
from timetick.IMPORT.importer import import_entries, run_import
from timetick.TIMETRACK import database, tracker


def api_entry(entry_id, start_h=9, end_h=10, note="", sheet=None, valid=True):
    return APIEntry(
        id=entry_id,
        start_time=datetime(2024, 6, 12, start_h),
        end_time={"Time": datetime(2024, 6, 12, end_h).isoformat(), "Valid": valid},
        note=note,
        sheet=sheet,
    )


def stored_notes():
    rows = database.query_closed_entries_in_range(datetime(2024, 6, 12), datetime(2024, 6, 13))
    return [r[3] for r in rows]


@pytest.fixture
def work_sheet(temp_db):
    return database.create_sheet("work")


class TestImportEntries:
    def test_all_entries_imported(self, work_sheet):
        result = import_entries([api_entry(1, note="a"), api_entry(2, 11, 12, note="b")], "work")

        assert result.ok
        assert result.imported_ids == [1, 2]
        assert stored_notes() == ["a", "b"]

    def test_stops_at_first_failure(self, work_sheet):
        """Test that entries after a failing one are not persisted"""
        entries = [
            api_entry(1, note="first"),
            api_entry(2, 11, 12, note="second", sheet="missing"),
            api_entry(3, 13, 14, note="third"),
        ]

        result = import_entries(entries, "work")

        assert not result.ok
        assert isinstance(result.error, SheetNotFoundError)
        assert result.imported_ids == [1]
        assert result.total == 3
        assert stored_notes() == ["first"]

    def test_end_before_start_rejected(self, work_sheet):
        result = import_entries([api_entry(1, 10, 9)], "work")

        assert isinstance(result.error, InvalidTimeError)
        assert result.imported_ids == []

    def test_open_ended_entry(self, work_sheet):
        """Test that an entry without a valid end time is stored open"""
        result = import_entries([api_entry(1, valid=False, note="running")], "work")

        assert result.imported_ids == [1]
        assert database.find_open_entry().note == "running"

    def test_open_entry_refused_while_tracking(self, work_sheet, count_open_entries):
        """Test that an open-ended entry is not stored while another one is running"""
        database.activate_sheet("work")
        tracker.start("local", at=datetime(2024, 6, 12, 8))

        result = import_entries([api_entry(1, valid=False), api_entry(2, 11, 12)], "work")

        assert isinstance(result.error, AlreadyTrackingError)
        assert result.imported_ids == []
        assert count_open_entries() == 1
        assert database.find_open_entry().note == "local"

    def test_second_open_entry_in_batch_refused(self, work_sheet, count_open_entries):
        result = import_entries([api_entry(1, valid=False), api_entry(2, 11, 12, valid=False)], "work")

        assert result.imported_ids == [1]
        assert isinstance(result.error, AlreadyTrackingError)
        assert count_open_entries() == 1

    def test_entry_sheet_overrides_default(self, work_sheet):
        home = database.create_sheet("home")

        import_entries([api_entry(1, sheet="home")], "work")

        assert database.find_open_entry() is None
        rows = database.query_closed_entries_in_range(datetime(2024, 6, 12), datetime(2024, 6, 13))
        assert rows[0][0] == home.name

    def test_no_target_sheet(self, temp_db):
        result = import_entries([api_entry(1)], None)

        assert isinstance(result.error, ImportFailedError)
        assert result.imported_ids == []


class TestRunImport:
    @pytest.fixture
    def client(self):
        with patch("timetick.IMPORT.importer.APIClient") as mock_cls:
            client = MagicMock()
            client.mark_entries_as_imported.return_value = MarkImportedResponse(imported_count=1)
            mock_cls.return_value = client
            yield client

    def test_marks_only_persisted_ids(self, work_sheet, client):
        """Test that the source is told only about entries that were stored"""
        client.get_unimported_entries.return_value = [
            api_entry(7, note="ok"),
            api_entry(8, 11, 12, sheet="missing"),
            api_entry(9, 13, 14),
        ]

        result = run_import("http://source.test", "work")

        client.mark_entries_as_imported.assert_called_once_with([7])
        assert result.message == "Successfully imported 1 of 3 entries."
        assert not result.ok

    def test_skips_mark_when_nothing_imported(self, work_sheet, client):
        client.get_unimported_entries.return_value = []

        result = run_import("http://source.test", "work")

        client.mark_entries_as_imported.assert_not_called()
        assert result.ok
        assert result.message == "Successfully imported 0 of 0 entries."

    def test_defaults_to_active_sheet(self, work_sheet, client):
        database.activate_sheet("work")
        client.get_unimported_entries.return_value = [api_entry(1, note="standup")]

        result = run_import("http://source.test")

        assert result.imported_ids == [1]
        assert stored_notes() == ["standup"]

    def test_passes_timeout(self, work_sheet):
        with patch("timetick.IMPORT.importer.APIClient") as mock_cls:
            mock_cls.return_value.get_unimported_entries.return_value = []
            run_import("http://source.test", "work", timeout=4)

        mock_cls.assert_called_once_with("http://source.test", timeout=4)

    def test_fetch_failure_propagates(self, work_sheet, client):
        client.get_unimported_entries.side_effect = ImportTransportError("connection refused")

        with pytest.raises(ImportTransportError):
            run_import("http://source.test", "work")

    def test_mark_failure_propagates(self, work_sheet, client):
        """Test that a failed mark call is reported after entries were stored"""
        client.get_unimported_entries.return_value = [api_entry(1, note="kept")]
        client.mark_entries_as_imported.side_effect = ImportTransportError("timed out")

        with pytest.raises(ImportTransportError):
            run_import("http://source.test", "work")

        assert stored_notes() == ["kept"]
