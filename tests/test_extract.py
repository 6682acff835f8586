"""Tests for folding a roster grid into events."""

import pytest

from ess_app.errors import ErrorKind, HeaderNotFound
from ess_app.extract import crew_for_event, date_axis, extract_events

BLOCK = ["Availability", "Partially Available", "Rostered Role", "Rostered For (Event Name)", "Event ID"]


def roster_grid(*rows, dates=("1 June", "2 June")):
    title = ["ESS Roster Sheet", "", "", ""]
    for d in dates:
        title += [d, "", "", "", ""]
    header = ["ESS ID", "Name", "Mobile", "Area"] + BLOCK * len(dates)
    return [title, header] + [list(r) for r in rows]


def person(crew_id, name, *blocks):
    row = [crew_id, name, "", ""]
    for avail, role, event_id in blocks:
        row += [avail, "", role, "", event_id]
    return row


class TestExtractEvents:
    def test_same_event_on_two_dates_merges_into_one_assignment(self):
        grid = roster_grid(person("1", "David", ("Available", "IC", "OTH#1"), ("Available", "Usher", "OTH#1")))

        events = extract_events(grid)

        assert len(events) == 1
        assert events[0].id == "OTH#1"
        [david] = events[0].crew
        assert (david.id, david.name) == ("1", "David")
        assert david.roles == ["IC", "Usher"]
        assert david.dates == ["1 June", "2 June"]

    def test_not_available_and_blank_availability_contribute_nothing(self):
        grid = roster_grid(
            person("1", "David", ("Not Available", "IC", "OTH#1"), ("", "Usher", "OTH#2")),
            person("2", "Mei Ling", ("Available", "IC", "OTH#3"), ("Not Available", "IC", "OTH#3")),
        )

        events = extract_events(grid)

        assert [e.id for e in events] == ["OTH#3"]
        assert events[0].crew[0].dates == ["1 June"]

    def test_empty_event_id_is_skipped(self):
        grid = roster_grid(person("1", "David", ("Available", "IC", ""), ("Available", "Usher", "OTH#1")))

        events = extract_events(grid)

        assert [e.id for e in events] == ["OTH#1"]
        assert events[0].crew[0].roles == ["Usher"]

    def test_events_and_crew_keep_first_seen_order(self):
        grid = roster_grid(
            person("10", "Arun", ("Available", "IC", "OTH#2"), ("Available", "IC", "OTH#1")),
            person("2", "Mei Ling", ("Available", "Usher", "OTH#1"), ("Available", "Usher", "OTH#2")),
        )

        events = extract_events(grid)

        assert [e.id for e in events] == ["OTH#2", "OTH#1"]
        assert [c.id for c in events[0].crew] == ["10", "2"]
        assert [c.id for c in events[1].crew] == ["2", "10"]

    def test_roles_and_dates_stay_parallel(self):
        grid = roster_grid(
            person("1", "David", ("Available", "IC", "OTH#1"), ("till 3pm", "", "OTH#1")),
            person("2", "Mei Ling", ("Available", "Usher", "OTH#1"), ("Available", "IC", "OTH#4")),
        )

        for event in extract_events(grid):
            for member in event.crew:
                assert len(member.roles) == len(member.dates)

    def test_repeated_extraction_is_identical(self):
        grid = roster_grid(
            person("1", "David", ("Available", "IC", "OTH#1"), ("Available", "Usher", "OTH#2")),
            person("2", "Mei Ling", ("Available", "Usher", "OTH#2"), ("Available", "IC", "OTH#1")),
        )

        assert extract_events(grid) == extract_events(grid)

    def test_explicit_dates_override_the_title_row(self):
        grid = roster_grid(person("1", "David", ("Available", "IC", "OTH#1"), ("Available", "IC", "OTH#1")))

        events = extract_events(grid, dates=["1 Jun", "2 Jun"])

        assert events[0].crew[0].dates == ["1 Jun", "2 Jun"]

    def test_missing_header_is_a_structure_error(self):
        grid = roster_grid(person("1", "David", ("Available", "IC", "OTH#1"), ("", "", "")))
        grid[1] = [("Event Code" if v == "Event ID" else v) for v in grid[1]]

        with pytest.raises(HeaderNotFound) as exc:
            extract_events(grid)
        assert exc.value.kind is ErrorKind.STRUCTURE


def test_date_axis_reads_labels_from_first_block():
    grid = roster_grid(dates=("1 June", "2 June", "3 June"))

    assert date_axis(grid, 4) == ["1 June", "2 June", "3 June"]


def test_crew_for_event_unknown_id_is_empty():
    grid = roster_grid(person("1", "David", ("Available", "IC", "OTH#1"), ("", "", "")))

    assert crew_for_event(extract_events(grid), "OTH#9") == []
