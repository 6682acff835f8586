"""
Keyed durable storage for job checkpoints, cached Event blobs, continuation
handles and leases.

Values are JSON blobs. Expiry is advisory cleanup: runners delete what they
consume and never rely on a TTL for correctness.
"""
import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from .config import JOBS_SHEET
from .dates import Clock, system_clock
from .models import SheetRef
from .sheets import SheetStore

_CELL_CHUNK = 45000   # Sheets caps a cell at 50k chars
_HEADER = ["Key", "ExpiresAt", "Value"]

_DOC_LOCKS: Dict[str, threading.Lock] = {}
_DOC_LOCKS_GUARD = threading.Lock()


def _document_lock(document_id: str) -> threading.Lock:
    """One lock per backing document, shared by every store instance in the process."""
    with _DOC_LOCKS_GUARD:
        return _DOC_LOCKS.setdefault(document_id, threading.Lock())


class CheckpointStore(ABC):
    def __init__(self, clock: Clock = system_clock):
        self.clock = clock

    @abstractmethod
    def _read(self, key: str) -> Optional[Tuple[str, Optional[datetime]]]: ...

    @abstractmethod
    def _write(self, key: str, blob: str, expires_at: Optional[datetime]) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def keys(self) -> List[str]: ...

    def put(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self.clock() + timedelta(seconds=ttl_seconds) if ttl_seconds else None
        self._write(key, json.dumps(value), expires_at)

    def get(self, key: str) -> Any:
        found = self._read(key)
        if found is None:
            return None
        blob, expires_at = found
        if expires_at is not None and expires_at <= self.clock():
            self.delete(key)
            return None
        return json.loads(blob)

    def pop(self, key: str) -> Any:
        value = self.get(key)
        if value is not None:
            self.delete(key)
        return value


class MemoryCheckpointStore(CheckpointStore):
    def __init__(self, clock: Clock = system_clock):
        super().__init__(clock)
        self._data: Dict[str, Tuple[str, Optional[datetime]]] = {}

    def _read(self, key):
        return self._data.get(key)

    def _write(self, key, blob, expires_at):
        self._data[key] = (blob, expires_at)

    def delete(self, key):
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class WorksheetCheckpointStore(CheckpointStore):
    """
    Rows of a hidden ``_Jobs`` sheet: Key | ExpiresAt | Value[, Value...].
    Long blobs continue into the following columns. Cells are read raw so a
    chunk edge that falls on whitespace survives.
    """

    def __init__(self, sheets: SheetStore, document_id: str, clock: Clock = system_clock):
        super().__init__(clock)
        self.sheets = sheets
        self.ref = SheetRef(document_id, JOBS_SHEET)
        self._lock = _document_lock(document_id)
        self._ready = False

    def _ensure_sheet(self) -> None:
        if self._ready:
            return
        if not self.sheets.has_worksheet(self.ref):
            self.sheets.add_worksheet(self.ref.document_id, self.ref.title, rows=200, cols=6)
            self.sheets.write_range(self.ref, 1, 1, [_HEADER])
            self.sheets.hide_worksheet(self.ref)
        self._ready = True

    def _rows(self) -> List[List[str]]:
        self._ensure_sheet()
        return self.sheets.read_raw(self.ref)

    def _find_row(self, key: str) -> Tuple[Optional[int], Optional[list], int]:
        """(1-based row of key or None, that row's cells, first free row)."""
        grid = self._rows()
        free = None
        for idx, row in enumerate(grid[1:], start=2):
            k = row[0] if row else ""
            if k == key:
                return idx, row, idx
            if not k and free is None:
                free = idx
        return None, None, free if free is not None else len(grid) + 1

    def _read(self, key):
        _, row, _ = self._find_row(key)
        if row is None:
            return None
        expires_at = datetime.fromisoformat(row[1]) if len(row) > 1 and row[1] else None
        return "".join(row[2:]), expires_at

    def _write(self, key, blob, expires_at):
        chunks = [blob[i:i + _CELL_CHUNK] for i in range(0, len(blob), _CELL_CHUNK)] or [""]
        cells = [key, expires_at.isoformat() if expires_at else ""] + chunks
        # row lookup and write must not interleave with another key claiming the same free row
        with self._lock:
            r, old, free = self._find_row(key)
            if old is not None and len(old) > len(cells):
                cells += [""] * (len(old) - len(cells))
            self.sheets.write_range(self.ref, r or free, 1, [cells])

    def delete(self, key):
        with self._lock:
            r, old, _ = self._find_row(key)
            if r is not None:
                self.sheets.clear_row(self.ref, r, len(old))

    def keys(self) -> List[str]:
        return [row[0] for row in self._rows()[1:] if row and row[0]]
