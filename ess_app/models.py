from dataclasses import dataclass, field, asdict
from typing import List, Optional


@dataclass
class CrewAssignment:
    id: str
    name: str
    roles: List[str] = field(default_factory=list)
    dates: List[str] = field(default_factory=list)

    def add(self, role: str, date_label: str) -> None:
        # roles[i] and dates[i] describe the same occurrence
        self.roles.append(role)
        self.dates.append(date_label)


@dataclass
class Event:
    id: str
    crew: List[CrewAssignment] = field(default_factory=list)

    def crew_member(self, crew_id: str) -> Optional[CrewAssignment]:
        return next((c for c in self.crew if c.id == crew_id), None)


def events_to_json(events: List[Event]) -> list:
    return [asdict(e) for e in events]


def events_from_json(raw: list) -> List[Event]:
    out: List[Event] = []
    for e in raw or []:
        crew = [
            CrewAssignment(id=c["id"], name=c["name"], roles=list(c["roles"]), dates=list(c["dates"]))
            for c in e.get("crew", [])
        ]
        out.append(Event(id=e["id"], crew=crew))
    return out


TRIGGER_SUFFIX = "_trigger"


@dataclass(frozen=True)
class JobKey:
    document_id: str
    operation: str
    sheet_id: Optional[str] = None

    def __str__(self) -> str:
        if self.sheet_id is not None:
            return f"{self.document_id}_{self.sheet_id}_{self.operation}"
        return f"{self.document_id}_{self.operation}"

    @property
    def events_slot(self) -> str:
        return f"{self}_events"

    @property
    def trigger_slot(self) -> str:
        return f"{self}{TRIGGER_SUFFIX}"

    @property
    def lease_slot(self) -> str:
        return f"{self}_lease"


@dataclass(frozen=True)
class SheetRef:
    document_id: str
    title: str


@dataclass(frozen=True)
class FolderRef:
    id: str
    name: str


@dataclass(frozen=True)
class FileRef:
    id: str
    name: str


@dataclass
class HeaderHit:
    row: int           # 0-based row in the grid
    cols: List[int]    # 0-based columns holding the label


@dataclass
class AvailabilityRow:
    id: str
    name: str
    data: List[str] = field(default_factory=list)
