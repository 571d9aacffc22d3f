from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Callable, List

from .config import Settings

logger = logging.getLogger(__name__)

PERMISSION_GRANTED = "granted"


@dataclass(frozen=True)
class Reminder:
    at: dt.time
    title: str
    body: str


NotificationSink = Callable[[str, str], None]


def log_sink(title: str, body: str) -> None:
    logger.info("Notification: %s - %s", title, body)


def format_hour(at: dt.time) -> str:
    """Render ``at`` the way reminder text reads it: ``8am``, ``4pm``, ``7:30am``."""
    hour = at.hour % 12 or 12
    suffix = "am" if at.hour < 12 else "pm"
    if at.minute:
        return f"{hour}:{at.minute:02d}{suffix}"
    return f"{hour}{suffix}"


def default_reminders(config: Settings) -> List[Reminder]:
    clock_in = config.clock_in_reminder_time
    clock_out = config.clock_out_reminder_time
    return [
        Reminder(clock_in, "Clock In Reminder", f"Please clock in before {format_hour(clock_in)}"),
        Reminder(clock_out, "Clock Out Reminder", f"Don't forget to clock out by {format_hour(clock_out)}"),
    ]


class Notifier:
    """Delivers reminders once the user has granted notification permission."""

    def __init__(self, permission: str, sink: NotificationSink = log_sink) -> None:
        self.permission = permission
        self.sink = sink

    @property
    def enabled(self) -> bool:
        return self.permission == PERMISSION_GRANTED

    def notify(self, reminder: Reminder) -> bool:
        if not self.enabled:
            logger.debug("Notification %r suppressed, permission is %s", reminder.title, self.permission)
            return False
        self.sink(reminder.title, reminder.body)
        return True


__all__ = ["PERMISSION_GRANTED", "Reminder", "NotificationSink", "log_sink", "format_hour", "default_reminders", "Notifier"]
