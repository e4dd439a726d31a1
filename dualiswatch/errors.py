"""
Exception types.

Only conditions the caller has to react to are exceptions. Structural noise
in the result tables (skipped rows, missing icons) is handled inside the
parsers and never raised.
"""

from __future__ import annotations


class DualisWatchError(Exception):
    """Base class for all errors raised by dualiswatch."""


class MalformedPage(DualisWatchError):
    """A page lacks an element the parser cannot do without (e.g. the heading)."""


class CorruptSnapshot(DualisWatchError):
    """A stored snapshot exists but cannot be decoded into records."""


class ConfigError(DualisWatchError):
    """Invalid configuration value."""


class LoginFailed(DualisWatchError):
    """Dualis did not hand out a session."""


class NotificationFailed(DualisWatchError):
    """A webhook could not be delivered."""

    def __init__(self, course_id: str, reason: str) -> None:
        super().__init__(f"Notification for {course_id} failed: {reason}")
        self.course_id = course_id
