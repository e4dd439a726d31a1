"""
Persistent storage for the last extracted record set.

This module manages the file:

    dualis_results.json   (path configurable, see config.py)

Format: a JSON list of {"id": str, "name": str, "graded": bool}, in the order
of the record set.

Design rationale:
- encode_records / decode_records only deal with bytes, so any backend with
  load() -> bytes | None and save(bytes) can hold a snapshot
- "no snapshot yet" and "snapshot cannot be read" are different results,
  because the first is a normal first run and the second hints at a bug
"""

from __future__ import annotations

import enum
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol

from dualiswatch.errors import CorruptSnapshot
from dualiswatch.model import Record


DEFAULT_RESULTS_FILE = "dualis_results.json"

_FIELDS = (("id", str), ("name", str), ("graded", bool))


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


def encode_records(records: Iterable[Record]) -> bytes:
    payload = [{"id": r.id, "name": r.name, "graded": r.graded} for r in records]
    return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")


def _decode_entry(index: int, entry: Any) -> Record:
    if not isinstance(entry, dict):
        raise CorruptSnapshot(f"entry {index} is not an object")

    values = {}
    for name, expected in _FIELDS:
        if name not in entry:
            raise CorruptSnapshot(f"entry {index} is missing {name!r}")
        value = entry[name]
        if not isinstance(value, expected):
            raise CorruptSnapshot(f"entry {index}: {name!r} must be {expected.__name__}")
        values[name] = value

    if not values["id"].strip():
        raise CorruptSnapshot(f"entry {index} has an empty id")

    return Record(**values)


def decode_records(data: bytes) -> List[Record]:
    """
    Decode a snapshot written by encode_records.

    Raises CorruptSnapshot for anything that is not a list of complete records.
    """
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptSnapshot(f"snapshot is not valid JSON: {exc}") from exc

    if not isinstance(payload, list):
        raise CorruptSnapshot("snapshot must be a JSON list")

    return [_decode_entry(i, entry) for i, entry in enumerate(payload)]


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


class SnapshotStorage(Protocol):
    def load(self) -> Optional[bytes]: ...

    def save(self, data: bytes) -> None: ...


class FileStorage:
    """
    Stores the snapshot in a single local file.
    """

    def __init__(self, path: str | Path = DEFAULT_RESULTS_FILE) -> None:
        self.path = Path(path)

    def load(self) -> Optional[bytes]:
        # First run: file does not exist yet
        if not self.path.exists():
            return None
        return self.path.read_bytes()

    def save(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write next to the target and swap, so a crash never leaves half a file
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_bytes(data)
        os.replace(tmp_path, self.path)


# ---------------------------------------------------------------------------
# Loading with status
# ---------------------------------------------------------------------------


class SnapshotStatus(enum.Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    CORRUPT = "corrupt"


@dataclass
class Snapshot:
    status: SnapshotStatus
    records: List[Record] = field(default_factory=list)
    error: Optional[CorruptSnapshot] = None

    @property
    def found(self) -> bool:
        return self.status is SnapshotStatus.FOUND


def load_snapshot(storage: SnapshotStorage) -> Snapshot:
    data = storage.load()
    if data is None:
        return Snapshot(SnapshotStatus.NOT_FOUND)

    try:
        records = decode_records(data)
    except CorruptSnapshot as exc:
        return Snapshot(SnapshotStatus.CORRUPT, error=exc)

    return Snapshot(SnapshotStatus.FOUND, records=records)


def save_snapshot(storage: SnapshotStorage, records: Iterable[Record]) -> None:
    storage.save(encode_records(records))
