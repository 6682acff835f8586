"""
Pytest configuration and shared fixtures.

In-memory stand-ins for Sheets, Drive and the continuation scheduler, so the
entry points run end to end without network access.
"""
import itertools
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from gspread import WorksheetNotFound

from ess_app.checkpoints import MemoryCheckpointStore
from ess_app.config import (
    AVAILABILITY_FOLDER, EVENTS_FOLDER, INDIVIDUALS_FOLDER, MAIN_FOLDER, MASTER_FILE, MASTER_SHEET,
    ROSTERING_FOLDER,
)
from ess_app.drive import FOLDER_MIME, SHEETS_MIME, DriveStore
from ess_app.entrypoints import Workspace, set_background_workspace
from ess_app.models import FileRef, FolderRef, SheetRef
from ess_app.sheets import SheetStore
from ess_app.triggers import Scheduler, resolve_callback


class MemorySheetStore(SheetStore):
    def __init__(self):
        self.docs: Dict[str, Dict[str, List[List[str]]]] = {}
        self.hidden = set()
        self.writes = 0

    def add_document(self, document_id: str, tabs: Optional[Dict[str, List[List[str]]]] = None):
        self.docs[document_id] = {t: [list(r) for r in g] for t, g in (tabs or {"Sheet1": []}).items()}

    def _grid(self, ref: SheetRef) -> List[List[str]]:
        try:
            return self.docs[ref.document_id][ref.title]
        except KeyError:
            raise WorksheetNotFound(ref.title) from None

    def read_raw(self, ref):
        return [list(r) for r in self._grid(ref)]

    def write_range(self, ref, row, col, values):
        grid = self._grid(ref)
        self.writes += 1
        for i, vals in enumerate(values):
            r = row - 1 + i
            while len(grid) <= r:
                grid.append([])
            line = grid[r]
            for j, v in enumerate(vals):
                c = col - 1 + j
                while len(line) <= c:
                    line.append("")
                line[c] = str(v)

    def append_row(self, ref, values):
        grid = self._grid(ref)
        while grid and not any(str(c).strip() for c in grid[-1]):
            grid.pop()
        grid.append([str(v) for v in values])

    def worksheet_titles(self, document_id):
        return list(self.docs.get(document_id, {}))

    def add_worksheet(self, document_id, title, rows=1000, cols=26):
        self.docs.setdefault(document_id, {}).setdefault(title, [])
        return SheetRef(document_id, title)

    def rename_worksheet(self, ref, new_title):
        tabs = self.docs[ref.document_id]
        self.docs[ref.document_id] = {(new_title if t == ref.title else t): g for t, g in tabs.items()}
        return SheetRef(ref.document_id, new_title)

    def hide_worksheet(self, ref):
        self._grid(ref)
        self.hidden.add(ref)

    def grid(self, document_id: str, title: str) -> List[List[str]]:
        return self.read_grid(SheetRef(document_id, title))


class MemoryDriveStore(DriveStore):
    """Folders and spreadsheets in insertion order; new spreadsheets appear in ``sheets`` with a 'Sheet1' tab."""

    def __init__(self, sheets: MemorySheetStore):
        self.sheets = sheets
        self.nodes: Dict[str, dict] = {}
        self._ids = itertools.count(1)

    def _add(self, name, parent_id, mime) -> str:
        node_id = f"{'fo' if mime == FOLDER_MIME else 'ss'}{next(self._ids)}"
        self.nodes[node_id] = {"name": name, "parent": parent_id, "mime": mime}
        return node_id

    def _search(self, name, parent_id, mime):
        return [
            FileRef(i, n["name"]) for i, n in self.nodes.items()
            if n["mime"] == mime
            and (name is None or n["name"] == name)
            and (parent_id is None or n["parent"] == parent_id)
        ]

    def _create_folder(self, name, parent_id):
        return FolderRef(self._add(name, parent_id, FOLDER_MIME), name)

    def _create_spreadsheet(self, name, parent_id):
        node_id = self._add(name, parent_id, SHEETS_MIME)
        self.sheets.add_document(node_id)
        return FileRef(node_id, name)

    def add_spreadsheet(self, name: str, parent: Optional[FolderRef], tabs: Dict[str, List[List[str]]]) -> FileRef:
        node_id = self._add(name, parent.id if parent else None, SHEETS_MIME)
        self.sheets.add_document(node_id, tabs)
        return FileRef(node_id, name)

    def children(self, parent: FolderRef, mime: str = FOLDER_MIME) -> List[str]:
        return [n["name"] for n in self.nodes.values() if n["parent"] == parent.id and n["mime"] == mime]


class FakeScheduler(Scheduler):
    def __init__(self):
        self.jobs: Dict[str, tuple] = {}
        self.cancelled: List[str] = []
        self._ids = itertools.count(1)

    def schedule_once(self, callback_name, delay_ms, kwargs=None):
        resolve_callback(callback_name)
        handle = f"h{next(self._ids)}"
        self.jobs[handle] = (callback_name, delay_ms, dict(kwargs or {}))
        return handle

    def cancel(self, handle):
        self.cancelled.append(handle)
        return self.jobs.pop(handle, None) is not None

    def list_scheduled(self):
        return list(self.jobs)

    def fire(self, handle: str):
        name, _, kwargs = self.jobs.pop(handle)
        resolve_callback(name)(**kwargs)

    def fire_all(self):
        while self.jobs:
            self.fire(next(iter(self.jobs)))


class FakeClock:
    def __init__(self, at: datetime):
        self.now = at

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int):
        self.now += timedelta(milliseconds=ms)


@pytest.fixture
def clock():
    """Mid-June 2026, past the next-month rollover day."""
    return FakeClock(datetime(2026, 6, 15, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def sheets():
    return MemorySheetStore()


@pytest.fixture
def drive(sheets):
    return MemoryDriveStore(sheets)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def store(clock):
    return MemoryCheckpointStore(clock)


@pytest.fixture
def layout(drive):
    """ESS Main Folder with Individuals and the 2026 year tree, plus the master crew workbook."""
    root = drive.create_folder(MAIN_FOLDER)
    individuals = drive.create_folder(INDIVIDUALS_FOLDER, root)
    year = drive.create_folder("ESS 2026", root)
    events = drive.create_folder(EVENTS_FOLDER, year)
    availability = drive.create_folder(AVAILABILITY_FOLDER, year)
    rostering = drive.create_folder(ROSTERING_FOLDER, year)
    master = drive.add_spreadsheet(MASTER_FILE, root, {MASTER_SHEET: [
        ["ESS ID", "Name", "Mobile", "Location"],
        ["1", "David", "91234567", "Jurong"],
        ["2", "Mei Ling", "98765432", "Tampines"],
        ["10", "Arun", "90001111", "Woodlands"],
    ]})
    return {
        "root": root, "individuals": individuals, "year": year, "events": events,
        "availability": availability, "rostering": rostering, "master": master,
    }


@pytest.fixture
def notices():
    return []


@pytest.fixture
def workspace(sheets, drive, store, scheduler, clock, layout, notices):
    def make(notify=None):
        return Workspace(
            sheets=sheets, drive=drive, store=store, scheduler=scheduler,
            master_document_id=layout["master"].id, clock=clock, notify=notify,
            budget_ms=1000, continuation_delay_ms=500,
        )

    set_background_workspace(make)
    return make(notify=lambda level, message: notices.append((level, message)))
