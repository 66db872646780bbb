# -*- coding: utf-8 -*-
"""
Trigger State for the OAT Safe Time Flip

Mutable state owned by a single trigger, and the immutable snapshots
published to observers after every transition. Observers (a UI, a status
page, tests) subscribe to snapshots instead of binding to the trigger.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from oat_types import TriggerPhase

UNKNOWN_DISPLAY = "--:--"


def format_safe_time(hours: Optional[float]) -> str:
    """Format safe time hours as HH:MM.

    Args:
        hours: Safe time in hours, or None.

    Returns:
        "HH:MM", prefixed with '-' for negative readings, or "--:--".
    """
    if hours is None or hours != hours:
        return UNKNOWN_DISPLAY
    sign = "-" if hours < 0 else ""
    total_minutes = int(abs(hours) * 60)
    return f"{sign}{total_minutes // 60:02d}:{total_minutes % 60:02d}"


@dataclass
class TriggerState:
    """State of one trigger attached to one running sequence."""
    phase: TriggerPhase = TriggerPhase.IDLE
    last_poll_instant: datetime = datetime.min
    last_safe_time_hours: Optional[float] = None
    flip_in_progress: bool = False
    earliest_flip_time: Optional[datetime] = None
    latest_flip_time: Optional[datetime] = None
    was_guiding_before_flip: bool = False

    def clear_prediction(self) -> None:
        """Reset predicted flip times to unknown."""
        self.earliest_flip_time = None
        self.latest_flip_time = None

    def snapshot(self) -> 'TriggerSnapshot':
        return TriggerSnapshot(
            phase=self.phase,
            last_poll_instant=self.last_poll_instant,
            last_safe_time_hours=self.last_safe_time_hours,
            flip_in_progress=self.flip_in_progress,
            earliest_flip_time=self.earliest_flip_time,
            latest_flip_time=self.latest_flip_time,
            was_guiding_before_flip=self.was_guiding_before_flip,
        )


@dataclass(frozen=True)
class TriggerSnapshot:
    """Immutable view of trigger state at one instant."""
    phase: TriggerPhase
    last_poll_instant: datetime
    last_safe_time_hours: Optional[float]
    flip_in_progress: bool
    earliest_flip_time: Optional[datetime]
    latest_flip_time: Optional[datetime]
    was_guiding_before_flip: bool

    @property
    def predicted_flip_instant(self) -> Optional[datetime]:
        return self.earliest_flip_time

    @property
    def safe_time_minutes(self) -> Optional[float]:
        if self.last_safe_time_hours is None:
            return None
        return self.last_safe_time_hours * 60.0

    @property
    def safe_time_display(self) -> str:
        return format_safe_time(self.last_safe_time_hours)


class StatePublisher:
    """Delivers trigger snapshots to subscribers.

    Thread Safety:
        Subscription changes and publishing are guarded by an RLock.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._subscribers: List[Callable[[TriggerSnapshot], None]] = []
        self._latest: Optional[TriggerSnapshot] = None

    @property
    def latest(self) -> Optional[TriggerSnapshot]:
        with self._lock:
            return self._latest

    def subscribe(self, callback: Callable[[TriggerSnapshot], None]) -> None:
        """Add a snapshot subscriber.

        Args:
            callback: Function called with each published snapshot.
        """
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[TriggerSnapshot], None]) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def publish(self, snapshot: TriggerSnapshot) -> None:
        with self._lock:
            self._latest = snapshot
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception:
                pass  # Subscriber errors must not disturb the trigger
