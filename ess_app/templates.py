from datetime import date
from enum import Enum

from .config import (
    HDR_AVAILABILITY, HDR_DATE, HDR_ESS_ID, HDR_EVENT_ID, HDR_NAME, HDR_NO, HDR_ROLE,
    HDR_ROLE_SHORT, HDR_SERIAL_NO, ROSTER_DAY_BLOCK,
)
from .dates import month_labels
from .models import SheetRef
from .sheets import SheetStore


class TemplateType(str, Enum):
    AVAILABILITY = "availability"
    ROSTER = "roster"
    TIMESHEET = "timesheet"
    INDIVIDUALS = "individuals"


ROSTER_PERSONAL_HEADER = [
    HDR_ESS_ID, HDR_NAME, "Mobile",
    "Indicate the area that you are living in. (e.g. Jurong, Sengkang, Woodlands, Tampines, etc)",
]
ROSTER_DAY_HEADER = [
    HDR_AVAILABILITY,
    "Partially Available (e.g. Free Till 3pm OR Free AFTER 3pm.)",
    HDR_ROLE,
    "Rostered For (Event Name)",
    HDR_EVENT_ID,
]
TIMESHEET_HEADER = [
    "", HDR_NO, HDR_SERIAL_NO, HDR_NAME, HDR_ROLE_SHORT, HDR_DATE, "Start Time", "End Time",
    "Duration", "Rate", "Amount", "Transport Claims", "Meals Claims", "ART Claims", "Amount", "Remarks",
]
TIMESHEET_HEADER_ROW = 4
INDIVIDUAL_HEADER = [HDR_DATE, HDR_AVAILABILITY]


def insert_sheet(sheets: SheetStore, document_id: str, title: str, cols: int = 26) -> SheetRef:
    """Reuse ``title`` if present, rename a lone untouched 'Sheet1', else add a tab."""
    if not isinstance(title, str):
        raise TypeError("Please choose the correct format!")
    titles = sheets.worksheet_titles(document_id)
    if title in titles:
        return SheetRef(document_id, title)
    if titles == ["Sheet1"]:
        return sheets.rename_worksheet(SheetRef(document_id, "Sheet1"), title)
    return sheets.add_worksheet(document_id, title, rows=1000, cols=cols)


def _month_and_year(sheet_name: str, today: date) -> tuple[str, int]:
    # "Jun" or "Jun 26"
    parts = sheet_name.split()
    if len(parts) > 1 and parts[1].isdigit():
        year = int(parts[1])
        return parts[0][:3], (2000 + year if year < 100 else year)
    return parts[0][:3], today.year


def generate_template(sheets: SheetStore, document_id: str, kind: TemplateType, sheet_name: str,
                      today: date) -> SheetRef:
    if kind is TemplateType.TIMESHEET:
        ref = insert_sheet(sheets, document_id, sheet_name, cols=len(TIMESHEET_HEADER))
        sheets.write_range(ref, 1, 1, [
            ["Input Event Code (Refer to Master Account Sheet)"],
            ["Valuation Data (Refer to Bank Statement)"],
            ["Done By (Input your Name)"],
            TIMESHEET_HEADER,
        ])
        return ref

    month, year = _month_and_year(sheet_name, today)
    if kind is TemplateType.INDIVIDUALS:
        labels = month_labels(month, year, with_year=True)
        ref = insert_sheet(sheets, document_id, sheet_name, cols=len(INDIVIDUAL_HEADER))
        sheets.write_range(ref, 1, 1, [INDIVIDUAL_HEADER] + [[d, ""] for d in labels])
        return ref

    labels = month_labels(month, year)
    if kind is TemplateType.AVAILABILITY:
        ref = insert_sheet(sheets, document_id, sheet_name, cols=2 + len(labels))
        sheets.write_range(ref, 1, 1, [
            ["", "", "Date"] + [""] * (len(labels) - 1),
            [HDR_ESS_ID, HDR_NAME] + labels,
        ])
        return ref

    if kind is TemplateType.ROSTER:
        width = len(ROSTER_PERSONAL_HEADER) + ROSTER_DAY_BLOCK * len(labels)
        ref = insert_sheet(sheets, document_id, sheet_name, cols=width)
        title_row = ["ESS Roster Sheet", "", "", ""]
        for label in labels:
            title_row += [label] + [""] * (ROSTER_DAY_BLOCK - 1)
        sheets.write_range(ref, 1, 1, [title_row, ROSTER_PERSONAL_HEADER + ROSTER_DAY_HEADER * len(labels)])
        return ref

    raise ValueError(f"There is an issue taking in the parameter: {kind}!")
