"""
Availability plumbing between the three kinds of sheets:

* an individual's file ``{id}_{name}`` with one ``{Mon} {yy}`` tab of
  (date, availability) rows,
* the yearly availability workbook, one ``{Mon}`` tab keyed by ESS ID,
* the yearly roster mastersheet, one ``{Mon}`` tab where each day is a
  five-column block (availability, partial, role, event name, event id).
"""
from typing import Dict, List, Optional, Sequence

from .config import PARTIAL_AVAILABILITY, ROSTER_DAY_BLOCK
from .models import AvailabilityRow, FileRef, SheetRef
from .sheets import SheetStore
from .utils import get_cell, id_sort_key, split_member_file_name

AVAILABILITY_DATA_ROW = 3   # 1-based, below the two header rows
ROSTER_DATA_ROW = 3


class IdTable:
    """Rows of a sheet keyed by the id in column A, with buffered writes."""

    def __init__(self, sheets: SheetStore, ref: SheetRef, data_row: int):
        self.sheets = sheets
        self.ref = ref
        self.data_row = data_row
        grid = sheets.read_grid(ref)
        self.rows: List[List[str]] = [list(r) for r in grid[data_row - 1:]]
        self.index: Dict[str, int] = {}
        self.last_used = -1
        for i, row in enumerate(self.rows):
            rid = get_cell(row, 0)
            if rid:
                self.index.setdefault(rid, i)
                self.last_used = i
        self._dirty: set[int] = set()

    def get(self, row_id: str) -> Optional[List[str]]:
        i = self.index.get(row_id)
        return self.rows[i] if i is not None else None

    def upsert(self, values: List[str], replace: bool) -> str:
        """
        replace=True: incoming values win. replace=False: non-empty cells
        already on the sheet win. Returns "appended", "updated" or "unchanged".
        """
        row_id = values[0]
        i = self.index.get(row_id)
        if i is None:
            self.last_used += 1
            i = self.last_used
            while len(self.rows) <= i:
                self.rows.append([])
            self.rows[i] = list(values)
            self.index[row_id] = i
            self._dirty.add(i)
            return "appended"
        old = self.rows[i]
        width = max(len(old), len(values))
        old_p = old + [""] * (width - len(old))
        new_p = list(values) + [""] * (width - len(values))
        if replace:
            merged = [old_p[0], new_p[1] or old_p[1]] + new_p[2:]
        else:
            merged = [o if o != "" else n for o, n in zip(old_p, new_p)]
        if merged == old_p:
            return "unchanged"
        self.rows[i] = merged
        self._dirty.add(i)
        return "updated"

    def flush(self) -> int:
        """Write dirty rows, one range per contiguous run. Returns the number of ranges written."""
        runs = 0
        pending = sorted(self._dirty)
        while pending:
            start = end = pending.pop(0)
            while pending and pending[0] == end + 1:
                end = pending.pop(0)
            block = self.rows[start:end + 1]
            width = max(len(r) for r in block)
            self.sheets.write_range(self.ref, self.data_row + start, 1,
                                    [r + [""] * (width - len(r)) for r in block])
            runs += 1
        self._dirty.clear()
        return runs


def read_individual_availability(sheets: SheetStore, member_file: FileRef, sheet_title: str) -> Optional[AvailabilityRow]:
    """None when the member file has no tab for this month yet."""
    crew_id, name = split_member_file_name(member_file.name)
    ref = SheetRef(member_file.id, sheet_title)
    if not sheets.has_worksheet(ref):
        return None
    grid = sheets.read_grid(ref)
    return AvailabilityRow(id=crew_id, name=name, data=[get_cell(r, 1) for r in grid[1:]])


def availability_values(row: AvailabilityRow) -> List[str]:
    return [row.id, row.name] + list(row.data)


def _roster_day_block(avail: str) -> List[str]:
    block = [""] * ROSTER_DAY_BLOCK
    if avail in PARTIAL_AVAILABILITY:
        block[0], block[1] = "Others", avail
    else:
        block[0] = avail
    return block


def personal_data(master_grid: Sequence[Sequence[str]]) -> Dict[str, tuple[str, str]]:
    """ESS ID -> (mobile, location) from the master crew sheet (header on row 1)."""
    out: Dict[str, tuple[str, str]] = {}
    for row in master_grid[1:]:
        rid = get_cell(row, 0)
        if rid:
            out.setdefault(rid, (get_cell(row, 2), get_cell(row, 3)))
    return out


def roster_rows(avail_grid: Sequence[Sequence[str]], master_grid: Sequence[Sequence[str]]) -> List[List[str]]:
    """Availability tab rows -> roster rows, sorted by ESS ID for display."""
    people = personal_data(master_grid)
    out: List[List[str]] = []
    for row in avail_grid[AVAILABILITY_DATA_ROW - 1:]:
        rid = get_cell(row, 0)
        if not rid:
            continue
        mobile, location = people.get(rid, ("", ""))
        values = [rid, get_cell(row, 1), mobile, location]
        for c in range(2, len(row)):
            values += _roster_day_block(get_cell(row, c))
        out.append(values)
    out.sort(key=lambda v: id_sort_key(v[0]))
    return out
