from typing import Dict, List, Sequence

from .config import HDR_DATE, HDR_NAME, HDR_NO, HDR_ROLE_SHORT, HDR_SERIAL_NO
from .errors import HeaderNotFound
from .models import CrewAssignment, SheetRef
from .sheets import SheetStore, find_header_in_grid
from .utils import get_cell, join_unique


def _col_in_row(grid, row: int, label: str, where: str) -> int:
    for hit in find_header_in_grid(grid, label):
        if hit.row == row:
            return hit.cols[0]
    raise HeaderNotFound(label, where)


def timesheet_row(member: CrewAssignment) -> Dict[str, str]:
    return {
        HDR_SERIAL_NO: member.id,
        HDR_NAME: member.name,
        HDR_ROLE_SHORT: join_unique(member.roles),
        HDR_DATE: join_unique(member.dates),
    }


def insert_timesheet_data(sheets: SheetStore, ref: SheetRef, crew: Sequence[CrewAssignment]) -> dict:
    """
    Merge one event's crew into its timesheet.

    Rows whose "ESS Serial No." matches a crew id only get their empty Name /
    Role / Date cells filled; crew not on the sheet yet are appended below the
    last used row and numbered by position. Returns counts for the caller's log.
    """
    grid = sheets.read_grid(ref)
    no_hits = find_header_in_grid(grid, HDR_NO)
    if not no_hits:
        raise HeaderNotFound(HDR_NO, ref.title)
    header_row, no_col = no_hits[0].row, no_hits[0].cols[0]
    cols = {label: _col_in_row(grid, header_row, label, ref.title)
            for label in (HDR_SERIAL_NO, HDR_NAME, HDR_ROLE_SHORT, HDR_DATE)}
    first_col = min([no_col] + list(cols.values()))
    last_col = max([no_col] + list(cols.values()))

    body = grid[header_row + 1:]
    row_by_serial: Dict[str, int] = {}
    last_used = -1
    for i, row in enumerate(body):
        serial = get_cell(row, cols[HDR_SERIAL_NO])
        if serial and serial not in row_by_serial:
            row_by_serial[serial] = i
        if serial or get_cell(row, no_col):
            last_used = i

    updated = 0
    new_members: List[CrewAssignment] = []
    for member in crew:
        i = row_by_serial.get(member.id)
        if i is None:
            new_members.append(member)
            continue
        row = body[i]
        segment = [get_cell(row, c) for c in range(first_col, last_col + 1)]
        changed = False
        for label, value in timesheet_row(member).items():
            c = cols[label] - first_col
            if segment[c] == "" and value:
                segment[c] = value
                changed = True
        if changed:
            sheets.write_range(ref, header_row + 2 + i, first_col + 1, [segment])
            updated += 1

    start = last_used + 1
    appended: List[List[str]] = []
    for k, member in enumerate(new_members):
        segment = [""] * (last_col - first_col + 1)
        segment[no_col - first_col] = str(start + k + 1)
        for label, value in timesheet_row(member).items():
            segment[cols[label] - first_col] = value
        appended.append(segment)
    if appended:
        sheets.write_range(ref, header_row + 2 + start, first_col + 1, appended)
    return {"updated": updated, "appended": len(appended)}
