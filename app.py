from __future__ import annotations
import logging

import pandas as pd
import streamlit as st

from ess_app.client import session_workspace
from ess_app.config import (
    ERROR_LOG_SHEET, JOBS_SHEET, MASTER_SHEET, YEARLY_AVAILABILITY_FILE, YEARLY_ROSTER_FILE,
)
from ess_app.entrypoints import (
    create_monthly_sheet, create_new_individual_template, create_year_hierarchy,
    create_year_spreadsheets, find_year_folder, generate_individual_spreadsheet,
    generate_timesheet, job_status, refresh_availability_data, schedule_yearly_rollover,
    update_roster_spreadsheet,
)
from ess_app.models import JobKey, SheetRef
from ess_app.templates import TemplateType
from ess_app.ui_peek import peek_roster_events, peek_sheet

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _notify(level: str, message: str):
    getattr(st, level, st.info)(message)


# ---------- page ----------
st.set_page_config(page_title="ESS Roster Console", page_icon="🗓️", layout="wide")
st.title("🗓️ ESS Roster Console")
st.caption("Pick a workbook and month tab in the sidebar; every menu action runs against that tab.")

ws = session_workspace(_notify)


@st.cache_data(ttl=300, show_spinner=False)
def resolve_workbook(kind: str, year: int) -> str | None:
    """Document id of the master / yearly roster / yearly availability workbook."""
    if kind == "Master":
        return ws.master_document_id
    name = YEARLY_ROSTER_FILE if kind == "Roster" else YEARLY_AVAILABILITY_FILE
    year_folder = find_year_folder(ws, year, required=False)
    found = ws.drive.find_file(name, year_folder) if year_folder else None
    return found.id if found else None


@st.cache_data(ttl=60, show_spinner=False)
def list_tabs(document_id: str) -> list[str]:
    deny = {JOBS_SHEET.lower(), ERROR_LOG_SHEET.lower()}
    return [t for t in ws.sheets.worksheet_titles(document_id) if t.strip().lower() not in deny]


# ---------- sidebar ----------
with st.sidebar:
    st.subheader("Workbook")
    kind = st.radio("Menu", ["Roster", "Availability", "Master"], key="menu_kind")
    doc_id = resolve_workbook(kind, ws.today().year)
    active_tab = None
    if not doc_id:
        st.warning(f"No {kind.lower()} workbook for {ws.today().year}. Use Admin → Create year spreadsheets.")
    else:
        tabs = list_tabs(doc_id)
        default = MASTER_SHEET if kind == "Master" else ws.today().strftime("%b")
        active_tab = st.selectbox("Tab", tabs, index=tabs.index(default) if default in tabs else 0,
                                  key="active_tab_select") if tabs else None

    if st.button("↻ Refresh"):
        st.cache_data.clear()
        st.rerun()


def _report(result, label: str):
    if result is None:
        return  # failure already alerted
    completed = getattr(result, "completed", True)
    if completed:
        st.success(f"{label}: done.")


# ---------- menus ----------
if doc_id and active_tab:
    if kind == "Roster":
        c1, c2, c3 = st.columns(3)
        if c1.button("Update roster from availability"):
            counts = update_roster_spreadsheet(ws, doc_id, active_tab)
            if counts is not None:
                st.success(f"Roster updated: {counts['appended']} added, {counts['updated']} filled in.")
        if c2.button("Generate timesheets"):
            _report(generate_timesheet(ws, doc_id, active_tab), "Generate timesheets")
        if c3.button("Add next month's tab"):
            ref = create_monthly_sheet(ws, doc_id, TemplateType.ROSTER)
            st.info(f"Created '{ref.title}'." if ref else "Nothing to create yet.")
        peek_roster_events(ws.sheets, SheetRef(doc_id, active_tab))
        keys = [JobKey(doc_id, "generate_timesheet", active_tab)]

    elif kind == "Availability":
        c1, c2 = st.columns(2)
        if c1.button("Refresh availability from individuals"):
            _report(refresh_availability_data(ws, doc_id, active_tab), "Refresh availability")
        if c2.button("Add next month's tab"):
            ref = create_monthly_sheet(ws, doc_id, TemplateType.AVAILABILITY)
            st.info(f"Created '{ref.title}'." if ref else "Nothing to create yet.")
        keys = [JobKey(doc_id, "refresh_availability_data", active_tab)]

    else:
        c1, c2 = st.columns(2)
        if c1.button("Create spreadsheets for new crew"):
            _report(generate_individual_spreadsheet(ws, doc_id, active_tab), "New crew spreadsheets")
        if c2.button("Add month tabs for existing crew"):
            _report(create_new_individual_template(ws, doc_id, active_tab), "Month tabs")
        keys = [JobKey(doc_id, "generate_individual_spreadsheet"),
                JobKey(doc_id, "create_new_individual_template")]

    peek_sheet(ws.sheets, SheetRef(doc_id, active_tab), header_row=0 if kind == "Master" else 1)

    with st.expander("Background jobs"):
        st.dataframe(pd.DataFrame([job_status(ws, k) for k in keys]), width="stretch")

# ---------- admin ----------
with st.expander("Admin", expanded=False):
    nxt = st.checkbox("Next year", value=False)
    c1, c2, c3 = st.columns(3)
    if c1.button("Create year folders"):
        folder = create_year_hierarchy(ws, next_year=nxt)
        if folder is not None:
            st.success(f"'{folder.name}' is ready.")
    if c2.button("Create year spreadsheets"):
        books = create_year_spreadsheets(ws, next_year=nxt)
        if books is not None:
            st.success("Ready: " + ", ".join(books))
            st.cache_data.clear()
    if c3.button("Schedule year-end rollover"):
        handle = schedule_yearly_rollover(ws)
        if handle is not None:
            st.info(f"Rollover armed ({handle}).")
