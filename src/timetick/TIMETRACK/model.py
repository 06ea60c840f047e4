# TIMETRACK/model.py
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional


@dataclass
class Sheet:
    name: str
    id: Optional[int] = None
    active: bool = False
    created_at: Optional[datetime] = None

    def __repr__(self):
        return f"<Sheet(id={self.id}, name='{self.name}', active={self.active})>"


@dataclass
class Entry:
    sheet_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    note: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def __repr__(self):
        return (f"<Entry(id={self.id}, sheet_id={self.sheet_id}, "
                f"start_time={self.start_time}, end_time={self.end_time}, "
                f"note='{self.note}')>")


@dataclass
class ReportRow:
    # Empty when the previous row of the same sheet fell on the same day
    day: str
    start_time: datetime
    end_time: datetime
    duration: timedelta
    note: str = ""


@dataclass
class SheetReport:
    name: str
    rows: List[ReportRow] = field(default_factory=list)
    # (start, end, note) tuples whose end precedes their start
    rejected: List[tuple] = field(default_factory=list)

    @property
    def total(self) -> timedelta:
        return sum((row.duration for row in self.rows), timedelta(0))
