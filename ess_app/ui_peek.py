from typing import List, Sequence

import pandas as pd
import plotly.express as px
import streamlit as st

from .errors import EssError
from .extract import extract_events
from .models import Event, SheetRef
from .sheets import SheetStore
from .utils import id_sort_key


def grid_dataframe(grid: Sequence[Sequence[str]], header_row: int = 0) -> pd.DataFrame:
    """Grid -> DataFrame using ``header_row`` as column names; duplicate/blank headers get suffixed."""
    if len(grid) <= header_row:
        return pd.DataFrame()
    seen = {}
    columns = []
    for i, label in enumerate(grid[header_row]):
        label = label or f"col{i + 1}"
        n = seen.get(label, 0)
        seen[label] = n + 1
        columns.append(label if n == 0 else f"{label} ({n + 1})")
    return pd.DataFrame([list(r) for r in grid[header_row + 1:]], columns=columns)


def build_crew_dataframe(events: List[Event]) -> pd.DataFrame:
    """One row per (event, crew member): roles and dates joined for display."""
    rows = []
    for event in events:
        for member in sorted(event.crew, key=lambda c: id_sort_key(c.id)):
            rows.append({
                "Event ID": event.id,
                "ESS ID": member.id,
                "Name": member.name,
                "Roles": ", ".join(member.roles),
                "Dates": ", ".join(member.dates),
                "Shifts": len(member.dates),
            })
    return pd.DataFrame(rows, columns=["Event ID", "ESS ID", "Name", "Roles", "Dates", "Shifts"])


def render_crew_chart(df: pd.DataFrame, *, title: str = "Crew per event"):
    if df.empty:
        st.info("No rostered crew found on this sheet.")
        return
    per_event = df.groupby("Event ID", as_index=False).agg(Crew=("ESS ID", "nunique"), Shifts=("Shifts", "sum"))
    fig = px.bar(per_event, x="Event ID", y=["Crew", "Shifts"], barmode="group", title=title)
    fig.update_layout(margin=dict(l=10, r=10, t=40, b=10), legend_title_text="")
    st.plotly_chart(fig, use_container_width=True, theme="streamlit")


def peek_sheet(sheets: SheetStore, ref: SheetRef, header_row: int = 0):
    # Creates its own expander; don't wrap it in another one.
    with st.expander(f"Peek '{ref.title}' (exactly as in sheet)"):
        max_rows = st.number_input("Max rows to show (0 = all)", min_value=0, value=0, step=1,
                                   key=f"peek_rows_{ref.document_id}_{ref.title}")
        df = grid_dataframe(sheets.read_grid(ref), header_row)
        if df.empty:
            st.info("This worksheet is empty.")
            return
        if max_rows:
            df = df.head(int(max_rows))
        st.dataframe(df, height=520, width="stretch")


def peek_roster_events(sheets: SheetStore, ref: SheetRef):
    """Events as the timesheet generator will see them, plus a chart."""
    with st.expander("Rostered events (what Generate Timesheet will write)"):
        try:
            events = extract_events(sheets.read_grid(ref))
        except EssError as e:
            st.info(f"No events to show: {e}")
            return
        df = build_crew_dataframe(events)
        st.dataframe(df, width="stretch")
        render_crew_chart(df, title=f"Crew per event ({ref.title})")
