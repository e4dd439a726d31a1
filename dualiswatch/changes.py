"""
Record set operations.

- dedupe_records: merge records gathered from several pages (first one wins)
- find_newly_graded: courses that went from "not graded" to "graded"

Only ids present in both sets are compared. A course that shows up for the
first time is never reported, even if it already has a grade.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Optional

from dualiswatch.model import Record

if TYPE_CHECKING:
    from dualiswatch.storage import Snapshot


def dedupe_records(records: Iterable[Record]) -> List[Record]:
    """
    Keep the first record per id, in input order.
    """
    seen: set[str] = set()
    out: List[Record] = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        out.append(record)
    return out


def find_newly_graded(previous: Iterable[Record], current: Iterable[Record]) -> List[Record]:
    """
    Return the current records whose id was stored as ungraded before
    and is graded now, in the order of the current set.
    """
    previously_graded = {r.id: r.graded for r in previous}

    changed: List[Record] = []
    for record in current:
        if record.id not in previously_graded:
            continue
        if record.graded and not previously_graded[record.id]:
            changed.append(record)
    return changed


def detect_transitions(snapshot: "Snapshot", current: List[Record]) -> Optional[List[Record]]:
    """
    Diff against a loaded snapshot.

    Returns None if there is no usable history (no snapshot or a corrupt one),
    otherwise the list of newly graded records (possibly empty).
    """
    if not snapshot.found:
        return None
    return find_newly_graded(snapshot.records, current)
