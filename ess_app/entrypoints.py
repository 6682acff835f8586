"""
Menu and trigger entry points.

Each entry point takes a ``Workspace`` (stores, scheduler, clock, notifier)
and is wrapped by ``entry_point``: errors are classified, written to the
error log, and alerted only when a user is there to see it. Continuations
armed by the runner come back through ``register_continuation`` callbacks,
which rebuild a background workspace and re-enter with ``is_resumed=True``.
"""
import functools
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .availability import (
    AVAILABILITY_DATA_ROW, ROSTER_DATA_ROW, IdTable, availability_values,
    read_individual_availability, roster_rows,
)
from .checkpoints import CheckpointStore
from .config import (
    AVAILABILITY_FOLDER, CHECKPOINT_TTL_SEC, CONTINUATION_DELAY_MS, ERROR_LOG_FILE, ERROR_LOG_SHEET,
    EVENTS_FOLDER, INDIVIDUALS_FOLDER, JOB_BUDGET_MS, LEASE_TTL_SEC, MAIN_FOLDER, MASTER_FILE,
    MASTER_SHEET, NEXT_MONTH_AFTER_DAY, ROSTERING_FOLDER, TIMESHEET_FILE_FMT, TIMESHEET_FOLDER,
    TIMESHEET_SHEET, YEAR_FOLDER_FMT, YEARLY_AVAILABILITY_FILE, YEARLY_ROSTER_FILE,
)
from .dates import (
    Clock, individual_sheet_title, individual_tab_year, month_name, next_month, short_month, system_clock,
    year_end,
)
from .drive import DriveStore, FolderSpec
from .errors import EssError, ErrorKind, alert_message, classify, insert_error_log
from .extract import crew_for_event, extract_events
from .locks import acquire_lease, release_lease
from .models import FileRef, FolderRef, JobKey, SheetRef, events_from_json, events_to_json
from .runner import ResumableJobRunner, RunResult, RunStatus
from .sheets import SheetStore
from .templates import TemplateType, generate_template
from .timesheet import insert_timesheet_data
from .triggers import Scheduler, SchedulerBridge, register_continuation
from .utils import get_cell, id_sort_key, split_member_file_name

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]   # (level, message); level in info/success/warning/error

BACKGROUND_NOTICE = "This job is taking a while. The rest will continue in the background."


@dataclass
class Workspace:
    sheets: SheetStore
    drive: DriveStore
    store: CheckpointStore
    scheduler: Scheduler
    master_document_id: str
    clock: Clock = system_clock
    notify: Optional[Notifier] = None
    budget_ms: int = JOB_BUDGET_MS
    continuation_delay_ms: int = CONTINUATION_DELAY_MS
    error_log_document_id: Optional[str] = None
    bridge: SchedulerBridge = field(init=False)
    runner: ResumableJobRunner = field(init=False)

    def __post_init__(self):
        self.bridge = SchedulerBridge(self.store, self.scheduler, clock=self.clock)
        self.runner = ResumableJobRunner(
            self.store, self.bridge, clock=self.clock, budget_ms=self.budget_ms,
            continuation_delay_ms=self.continuation_delay_ms, checkpoint_ttl_sec=CHECKPOINT_TTL_SEC,
        )

    @property
    def interactive(self) -> bool:
        return self.notify is not None

    def today(self):
        return self.clock().date()

    def error_log_ref(self) -> SheetRef:
        if self.error_log_document_id is None:
            year_folder = find_year_folder(self, self.today().year, required=False)
            log_file, _ = self.drive.ensure_spreadsheet(ERROR_LOG_FILE, year_folder)
            self.error_log_document_id = log_file.id
        return SheetRef(self.error_log_document_id, ERROR_LOG_SHEET)


_background_factory: Optional[Callable[[], Workspace]] = None


def set_background_workspace(factory: Callable[[], Workspace]) -> None:
    """How continuations get a workspace when no user session exists."""
    global _background_factory
    _background_factory = factory


def _background_workspace() -> Workspace:
    if _background_factory is None:
        raise RuntimeError("No background workspace configured for continuations.")
    return _background_factory()


def entry_point(fn):
    @functools.wraps(fn)
    def wrapper(ws: Workspace, *args, **kwargs):
        try:
            return fn(ws, *args, **kwargs)
        except Exception as e:
            insert_error_log(ws, fn.__name__, e)
            if ws.interactive:
                ws.notify("error", alert_message(classify(e)))
            return None
    return wrapper


# ---------- drive lookups ----------

def find_year_folder(ws: Workspace, year: int, required: bool = True) -> Optional[FolderRef]:
    name = YEAR_FOLDER_FMT.format(year=year)
    root = ws.drive.find_folder(MAIN_FOLDER)
    folder = ws.drive.find_folder(name, root) if root else ws.drive.find_folder(name)
    if folder is None and required:
        raise EssError(ErrorKind.STRUCTURE, f"Folder '{name}' not found.")
    return folder


def _require_folder(ws: Workspace, name: str, parent: Optional[FolderRef]) -> FolderRef:
    folder = ws.drive.find_folder(name, parent)
    if folder is None:
        raise EssError(ErrorKind.STRUCTURE, f"Folder '{name}' not found.")
    return folder


def _require_file(ws: Workspace, name: str, parent: Optional[FolderRef] = None) -> FileRef:
    found = ws.drive.find_file(name, parent)
    if found is None:
        raise EssError(ErrorKind.STRUCTURE, f"Spreadsheet '{name}' not found.")
    return found


def _require_sheet(ws: Workspace, ref: SheetRef) -> SheetRef:
    if not ws.sheets.has_worksheet(ref):
        raise EssError(ErrorKind.STRUCTURE,
                       f"Unable to find the sheet '{ref.title}'. Please ensure that the sheet name is correct!")
    return ref


def _individuals_folder(ws: Workspace) -> FolderRef:
    root = _require_folder(ws, MAIN_FOLDER, None)
    return _require_folder(ws, INDIVIDUALS_FOLDER, root)


def year_hierarchy(year: int) -> FolderSpec:
    return FolderSpec(YEAR_FOLDER_FMT.format(year=year), [
        FolderSpec(EVENTS_FOLDER, [
            FolderSpec(f"OTH #{year}-999 Completed Projects {year}"),
            FolderSpec(f"OTH #{year}-998 Cancelled Projects {year}"),
        ]),
        FolderSpec(AVAILABILITY_FOLDER),
        FolderSpec(ROSTERING_FOLDER),
    ])


# ---------- resumable plumbing ----------

def run_resumable(
    ws: Workspace,
    key: JobKey,
    is_resumed: bool,
    build_items: Callable[[], List[Any]],
    per_item: Callable[[Any], None],
    callback_kwargs: Optional[Dict[str, Any]] = None,
) -> RunResult:
    """
    One invocation of a resumable job: hold the lease, take over the stored
    remainder (resumed) or start fresh, run until done or out of budget.
    """
    start = ws.clock()
    owner = uuid.uuid4().hex
    acquire_lease(ws.store, key, owner, LEASE_TTL_SEC, start)
    try:
        if is_resumed:
            items = ws.runner.resume(key)
            if items is None:
                logger.info("%s: nothing left to resume", key)
                ws.runner.drop_blob(key)
                return RunResult(RunStatus.COMPLETED)
        else:
            ws.runner.cancel(key)
            items = build_items()
        result = ws.runner.run(key, items, start, per_item, key.operation, callback_kwargs)
        if result.completed:
            ws.runner.drop_blob(key)
        elif ws.interactive:
            ws.notify("info", BACKGROUND_NOTICE)
        return result
    finally:
        release_lease(ws.store, key, owner)


# ---------- entry points ----------

@entry_point
def generate_timesheet(ws: Workspace, document_id: str, sheet_name: str, is_resumed: bool = False) -> RunResult:
    """Roster month tab -> one timesheet spreadsheet per event under the year's events folder."""
    key = JobKey(document_id, "generate_timesheet", sheet_name)
    state: Dict[str, Any] = {}

    def build_items():
        grid = ws.sheets.read_grid(_require_sheet(ws, SheetRef(document_id, sheet_name)))
        events = extract_events(grid)
        ws.runner.cache_blob(key, events_to_json(events))
        state["events"] = events
        return [e.id for e in events]

    def events():
        if "events" not in state:
            blob = ws.runner.load_blob(key)
            if blob is None:
                raise EssError(ErrorKind.STRUCTURE, "Cached roster data expired; run Generate Timesheet again.")
            state["events"] = events_from_json(blob)
        return state["events"]

    def events_folder():
        if "folder" not in state:
            state["folder"] = _require_folder(ws, EVENTS_FOLDER, find_year_folder(ws, ws.today().year))
        return state["folder"]

    def per_item(event_id: str):
        event_folder = ws.drive.generate_hierarchy(FolderSpec(event_id, [FolderSpec(TIMESHEET_FOLDER)]),
                                                   events_folder())
        timesheet_folder = _require_folder(ws, TIMESHEET_FOLDER, event_folder)
        ts_file, created = ws.drive.ensure_spreadsheet(TIMESHEET_FILE_FMT.format(event_id=event_id),
                                                       timesheet_folder)
        if created:
            generate_template(ws.sheets, ts_file.id, TemplateType.TIMESHEET, TIMESHEET_SHEET, ws.today())
        counts = insert_timesheet_data(ws.sheets, SheetRef(ts_file.id, TIMESHEET_SHEET),
                                       crew_for_event(events(), event_id))
        logger.info("Timesheet %s: %s", event_id, counts)

    return run_resumable(ws, key, is_resumed, build_items, per_item,
                         {"document_id": document_id, "sheet_name": sheet_name})


@entry_point
def refresh_availability_data(ws: Workspace, document_id: str, sheet_name: str, is_resumed: bool = False,
                              year: Optional[int] = None) -> RunResult:
    """
    Pull every individual's ``{Mon} {yy}`` tab into the yearly availability ``{Mon}`` tab.

    ``year`` picks the individual tab; by default it follows the monthly
    rollover, so a December refresh of ``Jan`` reads next year's tab.
    """
    key = JobKey(document_id, "refresh_availability_data", sheet_name)
    ref = SheetRef(document_id, sheet_name)
    if year is None:
        year = individual_tab_year(ws.today(), sheet_name)
    individual_title = individual_sheet_title(sheet_name, year)
    state: Dict[str, Any] = {}

    def build_items():
        _require_sheet(ws, ref)
        files = ws.drive.list_spreadsheets(_individuals_folder(ws))
        files.sort(key=lambda f: id_sort_key(split_member_file_name(f.name)[0]))
        return [[f.id, f.name] for f in files]

    def table() -> IdTable:
        if "table" not in state:
            state["table"] = IdTable(ws.sheets, _require_sheet(ws, ref), AVAILABILITY_DATA_ROW)
        return state["table"]

    def per_item(item):
        file_id, file_name = item
        row = read_individual_availability(ws.sheets, FileRef(file_id, file_name), individual_title)
        if row is None or not row.id:
            return
        table().upsert(availability_values(row), replace=True)
        table().flush()

    return run_resumable(ws, key, is_resumed, build_items, per_item,
                         {"document_id": document_id, "sheet_name": sheet_name, "year": year})


@entry_point
def update_roster_spreadsheet(ws: Workspace, document_id: str, sheet_name: str) -> Dict[str, int]:
    """Yearly availability + master crew data -> roster ``{Mon}`` tab; filled roster cells are kept."""
    roster_ref = _require_sheet(ws, SheetRef(document_id, sheet_name))
    year_folder = find_year_folder(ws, ws.today().year)
    avail_file = _require_file(ws, YEARLY_AVAILABILITY_FILE, year_folder)
    avail_ref = _require_sheet(ws, SheetRef(avail_file.id, sheet_name or short_month(ws.today())))
    avail_grid = ws.sheets.read_grid(avail_ref)
    if len(avail_grid) < AVAILABILITY_DATA_ROW:
        raise EssError(ErrorKind.STRUCTURE, "Empty Sheet is found")
    master_file = _require_file(ws, MASTER_FILE)
    master_grid = ws.sheets.read_grid(SheetRef(master_file.id, MASTER_SHEET))

    table = IdTable(ws.sheets, roster_ref, ROSTER_DATA_ROW)
    counts = {"appended": 0, "updated": 0, "unchanged": 0}
    for values in roster_rows(avail_grid, master_grid):
        counts[table.upsert(values, replace=False)] += 1
    table.flush()
    logger.info("Roster %s updated: %s", sheet_name, counts)
    return counts


def _master_members(ws: Workspace, document_id: str, sheet_name: str) -> List[List[str]]:
    grid = ws.sheets.read_grid(_require_sheet(ws, SheetRef(document_id, sheet_name)))
    return [[get_cell(r, 0), get_cell(r, 1)] for r in grid[1:]]


def _month_titles(ws: Workspace) -> tuple[str, Optional[str]]:
    """This month's individual tab, plus next month's once past the rollover day."""
    today = ws.today()
    current = individual_sheet_title(month_name(today), today.year)
    if today.day <= NEXT_MONTH_AFTER_DAY:
        return current, None
    nxt, nxt_year = next_month(today)
    return current, individual_sheet_title(nxt, nxt_year)


def _ensure_individual_tabs(ws: Workspace, file_id: str) -> List[str]:
    added = []
    current, upcoming = _month_titles(ws)
    for title in (current, upcoming):
        if title and not ws.sheets.has_worksheet(SheetRef(file_id, title)):
            generate_template(ws.sheets, file_id, TemplateType.INDIVIDUALS, title, ws.today())
            added.append(title)
    return added


@entry_point
def create_new_individual_template(ws: Workspace, document_id: Optional[str] = None,
                                   sheet_name: str = MASTER_SHEET, is_resumed: bool = False) -> RunResult:
    """Existing member files get this month's tab (and next month's after the 10th)."""
    document_id = document_id or ws.master_document_id
    key = JobKey(document_id, "create_new_individual_template")

    def build_items():
        members = _master_members(ws, document_id, sheet_name)
        ids = {m[0] for m in members if m[0]}
        names = {m[1] for m in members if m[1]}
        items = []
        for f in ws.drive.list_spreadsheets(_individuals_folder(ws)):
            crew_id, name = split_member_file_name(f.name)
            if crew_id in ids and name in names:
                items.append([f.id, f.name])
        return items

    def per_item(item):
        added = _ensure_individual_tabs(ws, item[0])
        if added:
            logger.info("%s: added %s", item[1], ", ".join(added))

    return run_resumable(ws, key, is_resumed, build_items, per_item,
                         {"document_id": document_id, "sheet_name": sheet_name})


@entry_point
def generate_individual_spreadsheet(ws: Workspace, document_id: Optional[str] = None,
                                    sheet_name: str = MASTER_SHEET, is_resumed: bool = False) -> RunResult:
    """A ``{id}_{name}`` availability spreadsheet for every crew member without one."""
    document_id = document_id or ws.master_document_id
    key = JobKey(document_id, "generate_individual_spreadsheet")
    state: Dict[str, Any] = {}

    def folder():
        if "folder" not in state:
            state["folder"] = _individuals_folder(ws)
        return state["folder"]

    def build_items():
        existing = [split_member_file_name(f.name) for f in ws.drive.list_spreadsheets(folder())]
        ids = {e[0] for e in existing}
        names = {e[1] for e in existing}
        return [m for m in _master_members(ws, document_id, sheet_name)
                if m[0] and m[1] and m[0] not in ids and m[1] not in names]

    def per_item(member):
        member_file, _ = ws.drive.ensure_spreadsheet(f"{member[0]}_{member[1]}", folder())
        _ensure_individual_tabs(ws, member_file.id)

    return run_resumable(ws, key, is_resumed, build_items, per_item,
                         {"document_id": document_id, "sheet_name": sheet_name})


@entry_point
def create_year_hierarchy(ws: Workspace, next_year: bool = False) -> FolderRef:
    year = ws.today().year + (1 if next_year else 0)
    root = _require_folder(ws, MAIN_FOLDER, None)
    return ws.drive.generate_hierarchy(year_hierarchy(year), root)


@entry_point
def create_year_spreadsheets(ws: Workspace, next_year: bool = False) -> Dict[str, str]:
    """Yearly availability and roster workbooks, each with its first month tab."""
    today = date(ws.today().year + 1, 1, 1) if next_year else ws.today()
    year = today.year
    month = short_month(today)
    year_folder = find_year_folder(ws, year, required=False)
    if year_folder is None:
        root = _require_folder(ws, MAIN_FOLDER, None)
        year_folder = ws.drive.generate_hierarchy(year_hierarchy(year), root)
    out = {}
    for file_name, folder_name, kind in (
        (YEARLY_AVAILABILITY_FILE, AVAILABILITY_FOLDER, TemplateType.AVAILABILITY),
        (YEARLY_ROSTER_FILE, ROSTERING_FOLDER, TemplateType.ROSTER),
    ):
        folder = _require_folder(ws, folder_name, year_folder)
        book, _ = ws.drive.ensure_spreadsheet(file_name, folder)
        if not ws.sheets.has_worksheet(SheetRef(book.id, month)):
            generate_template(ws.sheets, book.id, kind, month, today)
        out[file_name] = book.id
    return out


@entry_point
def create_monthly_sheet(ws: Workspace, document_id: str, kind: TemplateType) -> Optional[SheetRef]:
    """Add next month's tab after the 10th. December is left to the yearly rollover."""
    today = ws.today()
    if today.month == 12 or today.day <= NEXT_MONTH_AFTER_DAY:
        return None
    nxt = next_month(today)[0][:3]
    if ws.sheets.has_worksheet(SheetRef(document_id, nxt)):
        return None
    return generate_template(ws.sheets, document_id, kind, nxt, today)


@entry_point
def schedule_yearly_rollover(ws: Workspace) -> str:
    """Arm the one-shot rollover for this year's end (or next year's, once past it)."""
    now = ws.clock()
    at = year_end(now.date())
    if at <= now.date():
        at = at.replace(year=at.year + 1)
    fire_at = datetime.combine(at, datetime.min.time(), tzinfo=now.tzinfo)
    delay_ms = int((fire_at - now) / timedelta(milliseconds=1))
    return ws.bridge.arm(JobKey(ws.master_document_id, "yearly_rollover"), "yearly_rollover", delay_ms)


@entry_point
def rearm_continuations(ws: Workspace) -> List[str]:
    """Put back continuations a previous server process had armed."""
    rearmed = ws.bridge.rearm_orphans()
    if rearmed:
        logger.info("Re-armed %d continuation(s): %s", len(rearmed), ", ".join(rearmed))
    return rearmed


def job_status(ws: Workspace, key: JobKey) -> Dict[str, Any]:
    pending = ws.runner.status(key)
    return {
        "key": str(key),
        "state": "never ran" if pending is None else ("finished" if not pending else "suspended"),
        "pending": len(pending or []),
        "continuation": ws.bridge.handle_for(key),
    }


# ---------- continuations (scheduler thread, no UI) ----------

@register_continuation("generate_timesheet")
def _continue_generate_timesheet(**kwargs):
    generate_timesheet(_background_workspace(), is_resumed=True, **kwargs)


@register_continuation("refresh_availability_data")
def _continue_refresh_availability_data(**kwargs):
    refresh_availability_data(_background_workspace(), is_resumed=True, **kwargs)


@register_continuation("create_new_individual_template")
def _continue_create_new_individual_template(**kwargs):
    create_new_individual_template(_background_workspace(), is_resumed=True, **kwargs)


@register_continuation("generate_individual_spreadsheet")
def _continue_generate_individual_spreadsheet(**kwargs):
    generate_individual_spreadsheet(_background_workspace(), is_resumed=True, **kwargs)


@register_continuation("yearly_rollover")
def _yearly_rollover(**kwargs):
    ws = _background_workspace()
    create_year_hierarchy(ws, next_year=True)
    create_year_spreadsheets(ws, next_year=True)
    ws.store.delete(JobKey(ws.master_document_id, "yearly_rollover").trigger_slot)
