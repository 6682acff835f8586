from typing import Dict, List, Optional, Sequence

from .config import (
    HDR_AVAILABILITY, HDR_ESS_ID, HDR_EVENT_ID, HDR_NAME, HDR_ROLE, NOT_AVAILABLE,
)
from .errors import HeaderNotFound
from .models import CrewAssignment, Event, HeaderHit
from .sheets import find_header_in_grid
from .utils import get_cell

_SKIP_AVAILABILITY = {"", NOT_AVAILABLE}


def _first_hit(grid, label: str) -> HeaderHit:
    hits = find_header_in_grid(grid, label)
    if not hits:
        raise HeaderNotFound(label)
    return hits[0]


def date_axis(grid: Sequence[Sequence[str]], first_block_col: int, date_row: int = 0) -> List[str]:
    """Non-empty labels on ``date_row`` from the first per-date column onward, left to right."""
    if date_row >= len(grid):
        return []
    row = grid[date_row]
    return [get_cell(row, c) for c in range(first_block_col, len(row)) if get_cell(row, c)]


def extract_events(grid: Sequence[Sequence[str]], dates: Optional[Sequence[str]] = None,
                   date_row: int = 0) -> List[Event]:
    """
    Fold a roster grid into Events.

    Columns labelled "Event ID" / "Rostered Role" / "Availability" repeat once
    per date block; "ESS ID" / "Name" are read from their first occurrence.
    A (row, date) pair counts only when its availability is neither empty nor
    "Not Available" and it names an event. Events and crew keep first-seen order.
    """
    event_hit = _first_hit(grid, HDR_EVENT_ID)
    role_hit = _first_hit(grid, HDR_ROLE)
    avail_hit = _first_hit(grid, HDR_AVAILABILITY)
    id_col = _first_hit(grid, HDR_ESS_ID).cols[0]
    name_col = _first_hit(grid, HDR_NAME).cols[0]

    if dates is None:
        first_block = min(event_hit.cols[0], role_hit.cols[0], avail_hit.cols[0])
        dates = date_axis(grid, first_block, date_row)
    blocks = min(len(dates), len(event_hit.cols), len(role_hit.cols), len(avail_hit.cols))

    header_row = max(event_hit.row, role_hit.row, avail_hit.row)
    rows = grid[header_row + 1:]

    events: List[Event] = []
    by_id: Dict[str, Event] = {}
    for i in range(blocks):
        label = dates[i]
        for row in rows:
            if get_cell(row, avail_hit.cols[i]) in _SKIP_AVAILABILITY:
                continue
            event_id = get_cell(row, event_hit.cols[i])
            if not event_id:
                continue
            crew_id = get_cell(row, id_col)
            role = get_cell(row, role_hit.cols[i])
            event = by_id.get(event_id)
            if event is None:
                event = Event(id=event_id)
                by_id[event_id] = event
                events.append(event)
            member = event.crew_member(crew_id)
            if member is None:
                member = CrewAssignment(id=crew_id, name=get_cell(row, name_col))
                event.crew.append(member)
            member.add(role, label)
    return events


def crew_for_event(events: Sequence[Event], event_id: str) -> List[CrewAssignment]:
    return [c for e in events if e.id == event_id for c in e.crew]
