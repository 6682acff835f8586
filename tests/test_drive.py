"""Tests for folder/file search and hierarchy creation."""

import pytest

from ess_app.drive import FolderSpec, SHEETS_MIME


class TestFindFolder:
    def test_depth_first_first_match_wins(self, drive):
        root = drive.create_folder("root")
        a = drive.create_folder("a", root)
        b = drive.create_folder("b", root)
        deep = drive.create_folder("target", drive.create_folder("a1", a))
        drive.create_folder("target", b)

        assert drive.find_folder("target", root) == deep

    def test_parent_itself_can_match(self, drive):
        root = drive.create_folder("root")

        assert drive.find_folder("root", root) == root

    def test_global_lookup_and_missing(self, drive):
        folder = drive.create_folder("Individuals")

        assert drive.find_folder("Individuals") == folder
        assert drive.find_folder("Nope") is None
        assert drive.find_folder("Nope", folder) is None

    def test_non_string_name_is_rejected(self, drive):
        with pytest.raises(TypeError):
            drive.find_folder(42)


class TestFindFile:
    def test_files_in_a_folder_are_checked_before_its_subfolders(self, drive):
        root = drive.create_folder("root")
        sub = drive.create_folder("sub", root)
        drive.create_spreadsheet("Error Log", sub)
        top = drive.create_spreadsheet("Error Log", root)

        assert drive.find_file("Error Log", root) == top

    def test_ensure_spreadsheet_reuses_existing(self, drive, sheets):
        root = drive.create_folder("root")

        first, created = drive.ensure_spreadsheet("12_Jane", root)
        again, created_again = drive.ensure_spreadsheet("12_Jane", root)

        assert created and not created_again
        assert first == again
        assert sheets.worksheet_titles(first.id) == ["Sheet1"]

    def test_list_spreadsheets_is_not_recursive(self, drive):
        root = drive.create_folder("root")
        drive.create_spreadsheet("1_David", root)
        drive.create_spreadsheet("2_Mei Ling", drive.create_folder("old", root))

        assert [f.name for f in drive.list_spreadsheets(root)] == ["1_David"]


class TestHierarchy:
    SPEC = FolderSpec("ESS 2027", [
        FolderSpec("Events", [FolderSpec("Completed"), FolderSpec("Cancelled")]),
        FolderSpec("Availability"),
    ])

    def test_generate_is_idempotent(self, drive):
        root = drive.create_folder("root")

        top = drive.generate_hierarchy(self.SPEC, root)
        count = len(drive.nodes)
        again = drive.generate_hierarchy(self.SPEC, root)

        assert again == top
        assert len(drive.nodes) == count == 6

    def test_missing_parts_are_filled_in(self, drive):
        root = drive.create_folder("root")
        year = drive.create_folder("ESS 2027", root)
        events = drive.create_folder("Events", year)

        drive.generate_hierarchy(self.SPEC, root)

        assert sorted(drive.children(events)) == ["Cancelled", "Completed"]
        assert sorted(drive.children(year)) == ["Availability", "Events"]

    def test_folder_tree(self, drive):
        root = drive.create_folder("root")
        drive.generate_hierarchy(self.SPEC, root)

        tree = drive.folder_tree(root)

        [year] = tree["subDirectories"]
        assert year["name"] == "ESS 2027"
        assert {d["name"] for d in year["subDirectories"]} == {"Events", "Availability"}
        assert all(not d["subDirectories"] for d in year["subDirectories"] if d["name"] == "Availability")
        assert drive.children(root, SHEETS_MIME) == []
