"""
Tabular store accessor.

Spreadsheets are addressed by plain ``SheetRef(document_id, title)`` records;
``SheetStore`` is the stateless service that performs the I/O. The gspread
implementation is what the app runs against; tests swap in an in-memory store
with the same surface.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence

import gspread
import gspread.utils as a1
from gspread import WorksheetNotFound

from .models import HeaderHit, SheetRef
from .quotas import with_backoff
from .utils import cell_text, pad_grid


def find_header_in_grid(grid: Sequence[Sequence[str]], label: str) -> List[HeaderHit]:
    """Every row holding ``label``, with all the columns it occupies in that row."""
    hits: List[HeaderHit] = []
    for r, row in enumerate(grid):
        cols = [c for c, v in enumerate(row) if cell_text(v) == label]
        if cols:
            hits.append(HeaderHit(row=r, cols=cols))
    return hits


class SheetStore(ABC):

    @abstractmethod
    def read_raw(self, ref: SheetRef) -> List[List[str]]:
        """Cells exactly as stored, ragged rows, no normalisation."""

    def read_grid(self, ref: SheetRef) -> List[List[str]]:
        return pad_grid(self.read_raw(ref))

    @abstractmethod
    def write_range(self, ref: SheetRef, row: int, col: int, values: List[List[str]]) -> None:
        """Write a rectangle whose top-left cell is (row, col), both 1-based."""

    @abstractmethod
    def append_row(self, ref: SheetRef, values: List[str]) -> None: ...

    @abstractmethod
    def worksheet_titles(self, document_id: str) -> List[str]: ...

    @abstractmethod
    def add_worksheet(self, document_id: str, title: str, rows: int = 1000, cols: int = 26) -> SheetRef: ...

    @abstractmethod
    def rename_worksheet(self, ref: SheetRef, new_title: str) -> SheetRef: ...

    @abstractmethod
    def hide_worksheet(self, ref: SheetRef) -> None: ...

    def has_worksheet(self, ref: SheetRef) -> bool:
        return ref.title in self.worksheet_titles(ref.document_id)

    def find_header(self, ref: SheetRef, label: str) -> List[HeaderHit]:
        return find_header_in_grid(self.read_grid(ref), label)

    def clear_row(self, ref: SheetRef, row: int, width: int) -> None:
        self.write_range(ref, row, 1, [[""] * width])


class GspreadSheetStore(SheetStore):
    def __init__(self, client: gspread.Client):
        self.client = client
        self._ss_by_id: Dict[str, gspread.Spreadsheet] = {}

    def _spreadsheet(self, document_id: str) -> gspread.Spreadsheet:
        ss = self._ss_by_id.get(document_id)
        if ss is None:
            ss = with_backoff(self.client.open_by_key, document_id)
            self._ss_by_id[document_id] = ss
        return ss

    def _worksheet(self, ref: SheetRef) -> gspread.Worksheet:
        return with_backoff(self._spreadsheet(ref.document_id).worksheet, ref.title)

    def _ensure_size(self, ws: gspread.Worksheet, rows: int, cols: int) -> None:
        # writes past the grid edge are rejected by the API
        if ws.row_count < rows:
            with_backoff(ws.add_rows, rows - ws.row_count)
        if ws.col_count < cols:
            with_backoff(ws.add_cols, cols - ws.col_count)

    def read_raw(self, ref: SheetRef) -> List[List[str]]:
        return [[str(c) for c in r] for r in with_backoff(self._worksheet(ref).get_all_values) or []]

    def write_range(self, ref: SheetRef, row: int, col: int, values: List[List[str]]) -> None:
        if not values or not values[0]:
            return
        ws = self._worksheet(ref)
        width = max(len(r) for r in values)
        self._ensure_size(ws, row + len(values) - 1, col + width - 1)
        start = a1.rowcol_to_a1(row, col)
        end = a1.rowcol_to_a1(row + len(values) - 1, col + width - 1)
        rect = [list(r) + [""] * (width - len(r)) for r in values]
        with_backoff(ws.update, range_name=f"{start}:{end}", values=rect, value_input_option="RAW")

    def append_row(self, ref: SheetRef, values: List[str]) -> None:
        with_backoff(self._worksheet(ref).append_row, values, value_input_option="RAW")

    def worksheet_titles(self, document_id: str) -> List[str]:
        return [w.title for w in with_backoff(self._spreadsheet(document_id).worksheets)]

    def add_worksheet(self, document_id: str, title: str, rows: int = 1000, cols: int = 26) -> SheetRef:
        ss = self._spreadsheet(document_id)
        try:
            with_backoff(ss.add_worksheet, title=title, rows=rows, cols=cols)
        except gspread.exceptions.APIError as e:
            if "already exists" not in str(e).lower():
                raise
        return SheetRef(document_id, title)

    def rename_worksheet(self, ref: SheetRef, new_title: str) -> SheetRef:
        with_backoff(self._worksheet(ref).update_title, new_title)
        return SheetRef(ref.document_id, new_title)

    def hide_worksheet(self, ref: SheetRef) -> None:
        with_backoff(self._worksheet(ref).hide)

    def has_worksheet(self, ref: SheetRef) -> bool:
        try:
            self._worksheet(ref)
        except WorksheetNotFound:
            return False
        return True

