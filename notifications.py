# -*- coding: utf-8 -*-
"""
Notification Center

User-visible notifications with severity levels, kept separate from
log output so a host UI can show them as toasts or status messages.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, List

from oat_types import Severity


@dataclass(frozen=True)
class Notification:
    """A single user-visible message."""
    severity: Severity
    message: str
    timestamp: datetime = field(default_factory=datetime.now)


class NotificationCenter:
    """Collects notifications and forwards them to listeners.

    Thread Safety:
        All public methods are thread-safe via RLock protection.
    """

    HISTORY_LIMIT = 100

    def __init__(self, history_limit: int = HISTORY_LIMIT):
        self._lock = threading.RLock()
        self._history: Deque[Notification] = deque(maxlen=history_limit)
        self._listeners: List[Callable[[Notification], None]] = []

    def notify(self, message: str, severity: Severity = Severity.INFO) -> Notification:
        """Record a notification and deliver it to listeners.

        Args:
            message: Notification text.
            severity: Message severity.

        Returns:
            The recorded notification.
        """
        note = Notification(severity, message)
        with self._lock:
            self._history.append(note)
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(note)
            except Exception:
                pass  # Don't let listener errors break delivery
        return note

    def show_information(self, message: str) -> Notification:
        return self.notify(message, Severity.INFO)

    def show_success(self, message: str) -> Notification:
        return self.notify(message, Severity.SUCCESS)

    def show_warning(self, message: str) -> Notification:
        return self.notify(message, Severity.WARNING)

    def show_error(self, message: str) -> Notification:
        return self.notify(message, Severity.ERROR)

    def add_listener(self, callback: Callable[[Notification], None]) -> None:
        """Add a notification listener.

        Args:
            callback: Function called with each new Notification.
        """
        with self._lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[Notification], None]) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def history(self, severity: Severity = None) -> List[Notification]:
        """Return recorded notifications, optionally filtered by severity."""
        with self._lock:
            if severity is None:
                return list(self._history)
            return [n for n in self._history if n.severity == severity]

    def clear(self) -> None:
        with self._lock:
            self._history.clear()
