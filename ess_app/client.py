import functools
from typing import Optional

import gspread
import streamlit as st
from google.oauth2.service_account import Credentials
from gspread.utils import extract_id_from_url

from .checkpoints import WorksheetCheckpointStore
from .drive import GspreadDriveStore
from .entrypoints import Notifier, Workspace, rearm_continuations, set_background_workspace
from .sheets import GspreadSheetStore
from .triggers import ApsScheduler

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",   # folder search and file creation
]


@st.cache_resource(show_spinner=False)
def get_gspread_client() -> gspread.Client:
    creds_dict = dict(st.secrets.get("gcp_service_account", {}))  # type: ignore
    if not creds_dict:
        st.error("Missing service account in secrets (gcp_service_account).")
        st.stop()
    credentials = Credentials.from_service_account_info(creds_dict, scopes=SCOPES)
    return gspread.authorize(credentials)


@st.cache_resource(show_spinner=False)
def get_scheduler(_client: gspread.Client, master_id: str) -> ApsScheduler:
    """
    One continuation scheduler per server process, shared by every session.
    Continuations still recorded in ``_Jobs`` from an earlier process are re-armed here.
    """
    scheduler = ApsScheduler()
    scheduler.start()
    # continuations fire on the scheduler thread, outside any script run
    factory = functools.partial(make_workspace, _client, master_id, scheduler)
    set_background_workspace(factory)
    rearm_continuations(factory())
    return scheduler


def master_document_id() -> str:
    url = st.secrets.get("SHEET_URL", "")
    if not url:
        st.error("Missing SHEET_URL in secrets (the 'Event Crew' master spreadsheet).")
        st.stop()
    return extract_id_from_url(url) if url.startswith("http") else url


def make_workspace(client: gspread.Client, master_id: str, scheduler: ApsScheduler,
                   notify: Optional[Notifier] = None) -> Workspace:
    sheets = GspreadSheetStore(client)
    return Workspace(
        sheets=sheets,
        drive=GspreadDriveStore(client),
        store=WorksheetCheckpointStore(sheets, master_id),
        scheduler=scheduler,
        master_document_id=master_id,
        notify=notify,
    )


def session_workspace(notify: Notifier) -> Workspace:
    """Workspace for the current Streamlit run."""
    client = get_gspread_client()
    master_id = master_document_id()
    scheduler = get_scheduler(client, master_id)
    return make_workspace(client, master_id, scheduler, notify=notify)
