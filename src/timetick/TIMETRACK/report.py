# TIMETRACK/report.py
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple, Union

from timetick.errors import InvalidPeriodError
from timetick.TIMETRACK import database
from timetick.TIMETRACK.model import ReportRow, SheetReport
from timetick.utils.logging import get_logger

logger = get_logger("report")

PERIODS = ("day", "week", "month", "year")
DAY_FORMAT = "%b %d, %Y"
TIME_FORMAT = "%H:%M:%S"


def format_duration(duration: Union[timedelta, int, float]) -> str:
    """Render a duration as H:MM:SS, truncating sub-second remainders.

    Examples:
    - 59 -> "0:00:59"
    - 3661 -> "1:01:01"
    - 360000 -> "100:00:00"
    """
    if isinstance(duration, timedelta):
        total_seconds = int(duration.total_seconds())
    else:
        total_seconds = int(duration)
    sign = "-" if total_seconds < 0 else ""
    hours, remainder = divmod(abs(total_seconds), 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{sign}{hours}:{minutes:02}:{seconds:02}"


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def period_range(kind: str, now: datetime) -> Tuple[datetime, datetime]:
    """Return the half-open [start, end) window of the period containing `now`."""
    today = _midnight(now)
    if kind == "day":
        return today, today + timedelta(days=1)
    if kind == "week":
        # weekday() is 0 on Monday, so a Sunday goes back six days
        start = today - timedelta(days=now.weekday())
        return start, start + timedelta(days=7)
    if kind == "month":
        start = today.replace(day=1)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
        return start, end
    if kind == "year":
        start = today.replace(month=1, day=1)
        return start, start.replace(year=start.year + 1)
    raise InvalidPeriodError(kind)


def build_report(rows: Iterable[Tuple[str, datetime, datetime, Optional[str]]]) -> List[SheetReport]:
    """Group (sheet, start, end, note) rows into one report per sheet.

    Sheets keep the order in which they first appear. Rows are kept in the
    order given; the day label is only printed on the first row of a run of
    rows falling on the same day.
    """
    reports = {}
    last_day = {}
    for sheet_name, start_time, end_time, note in rows:
        report = reports.get(sheet_name)
        if report is None:
            report = reports[sheet_name] = SheetReport(name=sheet_name)

        duration = end_time - start_time
        if duration < timedelta(0):
            logger.warning(
                f"Skipping entry with end before start sheet={sheet_name} "
                f"start={start_time.isoformat()} end={end_time.isoformat()}"
            )
            report.rejected.append((start_time, end_time, note or ""))
            continue

        day = start_time.strftime(DAY_FORMAT)
        label = day if last_day.get(sheet_name) != day else ""
        last_day[sheet_name] = day
        report.rows.append(ReportRow(
            day=label,
            start_time=start_time,
            end_time=end_time,
            duration=duration,
            note=note or "",
        ))
    return list(reports.values())


def collect_report(kind: str, now: Optional[datetime] = None) -> List[SheetReport]:
    start, end = period_range(kind, now or datetime.now())
    return build_report(database.query_closed_entries_in_range(start, end))
