import re, unicodedata
from typing import Iterable, List, Sequence


def collapse_spaces(s: str) -> str:
    return re.sub(r"\s+", " ", s).strip()


def cell_text(value) -> str:
    """
    Normalize a raw cell to the string the sheet shows:
    - None -> ""
    - whole floats lose their ".0" (ids come back as 1.0 from some readers)
    - surrounding whitespace dropped
    """
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return unicodedata.normalize("NFKC", str(value)).strip()


def id_sort_key(crew_id: str):
    # display sort only: numeric ids first in numeric order, the rest by text
    s = cell_text(crew_id)
    if s.isdigit():
        return (0, int(s), "")
    return (1, 0, s.lower())


def join_unique(values: Iterable[str], sep: str = ",") -> str:
    """Order-preserving set union; a blank role is a member like any other."""
    return sep.join(dict.fromkeys(values))


def get_cell(row: Sequence, col: int) -> str:
    return cell_text(row[col]) if 0 <= col < len(row) else ""


def pad_grid(rows: List[List], width: int | None = None) -> List[List[str]]:
    w = width if width is not None else max((len(r) for r in rows), default=0)
    out = []
    for r in rows:
        vals = [cell_text(c) for c in r[:w]]
        out.append(vals + [""] * (w - len(vals)))
    return out


def split_member_file_name(file_name: str) -> tuple[str, str]:
    """'12_Jane Tan' -> ('12', 'Jane Tan'); names without '_' yield ('', name)."""
    head, sep, tail = (file_name or "").partition("_")
    if not sep:
        return "", collapse_spaces(head)
    return cell_text(head), collapse_spaces(tail)
