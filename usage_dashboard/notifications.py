"""User-visible notifications raised by the request gateway."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str


Notifier = Callable[[Notification], None]


class NotificationCenter:
    """Queue of pending notifications drained by the hosting page.

    Producers run on the event-loop thread and the page drains on its own
    thread, so access is guarded by a lock.
    """

    def __init__(self, max_pending: int = 50) -> None:
        self._pending: deque[Notification] = deque(maxlen=max_pending)
        self._lock = threading.Lock()

    def __call__(self, notification: Notification) -> None:
        self.push(notification)

    def push(self, notification: Notification) -> None:
        with self._lock:
            self._pending.append(notification)

    def success(self, message: str) -> None:
        self.push(Notification(NotificationLevel.SUCCESS, message))

    def drain(self) -> list[Notification]:
        with self._lock:
            items = list(self._pending)
            self._pending.clear()
        return items
