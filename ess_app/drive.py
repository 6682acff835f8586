"""
Folder / file store accessor over Google Drive.

Searches below a parent folder are depth-first and the first match wins. They
walk an explicit stack rather than recursing, so deep year/event trees cannot
hit the interpreter's recursion limit.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

import gspread
from gspread.urls import DRIVE_FILES_API_V3_URL

from .models import FileRef, FolderRef
from .quotas import with_backoff

FOLDER_MIME = "application/vnd.google-apps.folder"
SHEETS_MIME = "application/vnd.google-apps.spreadsheet"


@dataclass
class FolderSpec:
    """A folder name plus the folders that must exist inside it."""
    name: str
    subfolders: List["FolderSpec"] = field(default_factory=list)


class DriveStore(ABC):

    # ---- primitives ----
    @abstractmethod
    def _search(self, name: Optional[str], parent_id: Optional[str], mime: str) -> List[FileRef]:
        """Non-recursive lookup, in Drive's listing order."""

    @abstractmethod
    def _create_folder(self, name: str, parent_id: Optional[str]) -> FolderRef: ...

    @abstractmethod
    def _create_spreadsheet(self, name: str, parent_id: Optional[str]) -> FileRef: ...

    def _subfolders(self, folder: FolderRef) -> List[FolderRef]:
        return [FolderRef(f.id, f.name) for f in self._search(None, folder.id, FOLDER_MIME)]

    # ---- public ops ----
    def find_folder(self, name: str, parent: Optional[FolderRef] = None) -> Optional[FolderRef]:
        if not isinstance(name, str):
            raise TypeError("There is some errors in retrieving the folder!")
        if parent is None:
            hits = self._search(name, None, FOLDER_MIME)
            return FolderRef(hits[0].id, hits[0].name) if hits else None
        stack = [parent]
        while stack:
            folder = stack.pop()
            if folder.name == name:
                return folder
            stack.extend(reversed(self._subfolders(folder)))
        return None

    def find_file(self, name: str, parent: Optional[FolderRef] = None) -> Optional[FileRef]:
        if not isinstance(name, str):
            raise TypeError("There is some errors in retrieving the file!")
        if parent is None:
            hits = self._search(name, None, SHEETS_MIME)
            return hits[0] if hits else None
        stack = [parent]
        while stack:
            folder = stack.pop()
            hits = self._search(name, folder.id, SHEETS_MIME)
            if hits:
                return hits[0]
            stack.extend(reversed(self._subfolders(folder)))
        return None

    def create_folder(self, name: str, parent: Optional[FolderRef] = None) -> FolderRef:
        return self._create_folder(name, parent.id if parent else None)

    def create_spreadsheet(self, name: str, parent: Optional[FolderRef] = None) -> FileRef:
        if not isinstance(name, str):
            raise TypeError("There is some errors in retrieving the file!")
        return self._create_spreadsheet(name, parent.id if parent else None)

    def list_spreadsheets(self, folder: FolderRef) -> List[FileRef]:
        return self._search(None, folder.id, SHEETS_MIME)

    def ensure_folder(self, name: str, parent: Optional[FolderRef] = None) -> FolderRef:
        found = self.find_folder(name, parent)
        return found if found is not None else self.create_folder(name, parent)

    def ensure_spreadsheet(self, name: str, parent: Optional[FolderRef] = None) -> tuple[FileRef, bool]:
        """(file, created) – reuses an existing spreadsheet of the same name."""
        found = self.find_file(name, parent)
        if found is not None:
            return found, False
        return self.create_spreadsheet(name, parent), True

    def generate_hierarchy(self, spec: FolderSpec, root: Optional[FolderRef] = None) -> FolderRef:
        """Create whatever part of ``spec`` is missing under ``root``; existing folders are reused."""
        top = self.ensure_folder(spec.name, root)
        work = [(spec, top)]
        while work:
            node, folder = work.pop()
            for child in node.subfolders:
                work.append((child, self.ensure_folder(child.name, folder)))
        return top

    def folder_tree(self, root: FolderRef) -> dict:
        tree = {"id": root.id, "name": root.name, "subDirectories": []}
        work = [(root, tree)]
        while work:
            folder, node = work.pop()
            for sub in self._subfolders(folder):
                child = {"id": sub.id, "name": sub.name, "subDirectories": []}
                node["subDirectories"].append(child)
                work.append((sub, child))
        return tree


def _q_escape(s: str) -> str:
    return s.replace("\\", "\\\\").replace("'", "\\'")


class GspreadDriveStore(DriveStore):
    """Drive v3 through gspread's authorised session (needs the full drive scope)."""

    def __init__(self, client: gspread.Client):
        self.client = client

    def _request(self, method: str, **kwargs):
        return with_backoff(self.client.http_client.request, method, DRIVE_FILES_API_V3_URL, **kwargs)

    def _search(self, name: Optional[str], parent_id: Optional[str], mime: str) -> List[FileRef]:
        clauses = [f"mimeType='{mime}'", "trashed=false"]
        if name is not None:
            clauses.append(f"name='{_q_escape(name)}'")
        if parent_id is not None:
            clauses.append(f"'{_q_escape(parent_id)}' in parents")
        params = {
            "q": " and ".join(clauses),
            "pageSize": 1000,
            "fields": "nextPageToken, files(id, name)",
            "orderBy": "createdTime",
            "supportsAllDrives": True,
            "includeItemsFromAllDrives": True,
        }
        out: List[FileRef] = []
        while True:
            res = self._request("get", params=params).json()
            out.extend(FileRef(f["id"], f["name"]) for f in res.get("files", []))
            token = res.get("nextPageToken")
            if not token:
                return out
            params["pageToken"] = token

    def _create_folder(self, name: str, parent_id: Optional[str]) -> FolderRef:
        body = {"name": name, "mimeType": FOLDER_MIME}
        if parent_id:
            body["parents"] = [parent_id]
        res = self._request("post", json=body, params={"supportsAllDrives": True}).json()
        return FolderRef(res["id"], res.get("name", name))

    def _create_spreadsheet(self, name: str, parent_id: Optional[str]) -> FileRef:
        ss = with_backoff(self.client.create, name, folder_id=parent_id)
        return FileRef(ss.id, name)
