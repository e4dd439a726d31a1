"""
Notifications for newly graded courses.

One webhook message per course. The payload {"content": "..."} is what
Discord expects; most chat webhooks accept the same shape.
"""

from __future__ import annotations

from typing import Iterable

import requests

from dualiswatch.errors import NotificationFailed
from dualiswatch.model import Record


def format_message(record: Record) -> str:
    return f"New result in Dualis: {record.id} {record.name}".strip()


def send_webhook(url: str, records: Iterable[Record], timeout: float = 10.0) -> int:
    """
    Post one message per record. Returns the number of messages sent.
    """
    sent = 0
    for record in records:
        try:
            resp = requests.post(url, json={"content": format_message(record)}, timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise NotificationFailed(record.id, str(exc)) from exc
        sent += 1
    return sent
