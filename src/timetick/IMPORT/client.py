# IMPORT/client.py
from datetime import datetime
from typing import Any, List, Optional

import requests
from pydantic import BaseModel, Field, ValidationError

from timetick.errors import ImportProtocolError, ImportTransportError
from timetick.utils.logging import get_logger

logger = get_logger("import.client")

DEFAULT_TIMEOUT = 10


def to_local_naive(value: datetime) -> datetime:
    """Entries are stored in local wall-clock time without tzinfo."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


# --- Wire models ---
class Envelope(BaseModel):
    success: bool
    code: Optional[str] = None
    message: Optional[str] = None
    data: Any = None


class NullTime(BaseModel):
    """End time sent as an explicit {Time, Valid} pair rather than null."""
    time: Optional[datetime] = Field(default=None, alias="Time")
    valid: bool = Field(default=False, alias="Valid")

    @property
    def value(self) -> Optional[datetime]:
        if not self.valid or self.time is None:
            return None
        return to_local_naive(self.time)


class APIEntry(BaseModel):
    id: int
    start_time: datetime
    end_time: NullTime = Field(default_factory=NullTime)
    note: Optional[str] = ""
    # Optional target sheet; the importer falls back to its default sheet
    sheet: Optional[str] = None

    @property
    def start(self) -> datetime:
        return to_local_naive(self.start_time)

    @property
    def end(self) -> Optional[datetime]:
        return self.end_time.value


class EntriesResponse(BaseModel):
    total: int = 0
    entries: List[APIEntry] = []


class MarkImportedResponse(BaseModel):
    imported_count: int = 0
    remaining_count: int = 0


class APIClient:
    def __init__(self, base_url: str, timeout: int = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _send(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        logger.info(f"{method} {url}")
        try:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise ImportTransportError(f"Request to {url} timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise ImportTransportError(f"Error making request to {url}: {e}") from e

        if response.status_code != 200:
            raise ImportTransportError(self._error_message(response))

        try:
            envelope = Envelope(**response.json())
        except (TypeError, ValueError, ValidationError) as e:
            raise ImportProtocolError(f"Error decoding response from {url}: {e}") from e

        if not envelope.success:
            raise ImportProtocolError(envelope.message or f"Request to {url} was not successful")
        return envelope.data

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            envelope = Envelope(**response.json())
        except (TypeError, ValueError, ValidationError):
            return f"HTTP {response.status_code} from {response.url}"
        return envelope.message or f"HTTP {response.status_code} from {response.url}"

    def get_unimported_entries(self) -> List[APIEntry]:
        """Fetch all entries the source has not handed out yet."""
        data = self._send("GET", "/api/entries")
        try:
            payload = EntriesResponse(**(data or {}))
        except (TypeError, ValidationError) as e:
            raise ImportProtocolError(f"Error decoding entries data: {e}") from e
        logger.info(f"Fetched {len(payload.entries)} unimported entries (total={payload.total})")
        return payload.entries

    def mark_entries_as_imported(self, entry_ids: List[int]) -> MarkImportedResponse:
        data = self._send("POST", "/api/entries/mark", json={"entry_ids": list(entry_ids)})
        try:
            return MarkImportedResponse(**(data or {}))
        except (TypeError, ValidationError) as e:
            raise ImportProtocolError(f"Error decoding mark response data: {e}") from e
