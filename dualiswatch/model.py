"""
Central data model shared by the extractors, the change detector and storage.

A Record is one course result as shown by Dualis. Records are compared by
value, but inside one record set the course id alone identifies a course:
the same id may show up with slightly different names on different pages.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class Record:
    """
    One course (or sub-course) result.

    - id: course code, e.g. "T3INF1002" or "T3INF1001.1"
    - name: whitespace-normalized course title
    - graded: True once an official result has been entered
    """

    id: str
    name: str
    graded: bool
