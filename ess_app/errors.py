import logging
import traceback
from datetime import datetime
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    INPUT = "input"            # wrong argument type/shape
    STRUCTURE = "structure"    # sheet/header/file missing or empty
    CONCURRENT = "concurrent"  # another invocation holds the job
    INTERNAL = "internal"      # anything unclassified


class EssError(Exception):
    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class HeaderNotFound(EssError):
    def __init__(self, label: str, where: str = ""):
        where_txt = f" in '{where}'" if where else ""
        super().__init__(ErrorKind.STRUCTURE, f"Could not find header '{label}'{where_txt}.")
        self.label = label


class JobBusy(EssError):
    def __init__(self, job_key: str, owner: str):
        super().__init__(ErrorKind.CONCURRENT, f"Job {job_key} is already running ({owner}).")
        self.owner = owner


def classify(exc: BaseException) -> ErrorKind:
    if isinstance(exc, EssError):
        return exc.kind
    if isinstance(exc, (TypeError, ValueError)):
        return ErrorKind.INPUT
    return ErrorKind.INTERNAL


_ALERTS = {
    ErrorKind.INPUT: "Internal Error. Please wait for awhile and try again later!",
    ErrorKind.INTERNAL: "Internal Error. Please wait for awhile and try again later!",
    ErrorKind.STRUCTURE: "Please ensure that the HEADER NAMING CONVENTION HAS NOT CHANGED",
    ErrorKind.CONCURRENT: "This job is already running. Please wait for it to finish and try again.",
}


def alert_message(kind: ErrorKind) -> str:
    return _ALERTS[kind]


ERROR_LOG_HEADER = ["Timestamp", "Entry point", "Kind", "Message", "Traceback"]


def error_log_row(entry_point: str, exc: BaseException, now: datetime) -> list[str]:
    tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip()
    return [
        now.isoformat(timespec="seconds"),
        entry_point,
        classify(exc).value,
        str(exc),
        tb[-45000:],  # a Sheets cell holds 50k chars
    ]


def insert_error_log(workspace, entry_point: str, exc: BaseException) -> Optional[list[str]]:
    """Append the error to the durable log sheet. Returns the row written, None if the log itself failed."""
    row = error_log_row(entry_point, exc, workspace.clock())
    logger.error("%s failed (%s): %s", entry_point, row[2], exc)
    try:
        ref = workspace.error_log_ref()
        if not workspace.sheets.has_worksheet(ref):
            workspace.sheets.add_worksheet(ref.document_id, ref.title, rows=1000, cols=len(ERROR_LOG_HEADER))
            workspace.sheets.write_range(ref, 1, 1, [ERROR_LOG_HEADER])
        workspace.sheets.append_row(ref, row)
    except Exception:
        logger.exception("Could not write to the error log")
        return None
    return row
