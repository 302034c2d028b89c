"""
Notifications

User-facing messages emitted by the engine. The display surface that
renders them is external; it only needs to implement Notifier.handle.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class NotificationLevel(Enum):
    """Severity class of a user notification."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

    def __str__(self):
        return self.value

    @property
    def log_level(self) -> int:
        """Matching `logging` level."""
        levels = {
            NotificationLevel.INFO: logging.INFO,
            NotificationLevel.SUCCESS: logging.INFO,
            NotificationLevel.WARNING: logging.WARNING,
            NotificationLevel.ERROR: logging.ERROR,
        }
        return levels[self]


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    timestamp: datetime = field(default_factory=datetime.now)


@runtime_checkable
class Notifier(Protocol):
    def handle(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Writes notifications to a logger."""

    def __init__(self, name: str = "threat_analysis.notify"):
        self._logger = logging.getLogger(name)

    def handle(self, notification: Notification) -> None:
        self._logger.log(
            notification.level.log_level,
            "[%s] %s", notification.level, notification.message
        )


class CollectingNotifier:
    """Keeps every notification in memory, oldest first."""

    def __init__(self):
        self._lock = threading.Lock()
        self._items: List[Notification] = []

    def handle(self, notification: Notification) -> None:
        with self._lock:
            self._items.append(notification)

    @property
    def notifications(self) -> List[Notification]:
        with self._lock:
            return list(self._items)

    def messages(self, level: NotificationLevel) -> List[str]:
        return [n.message for n in self.notifications if n.level == level]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


class NotificationCenter:
    """Fans notifications out to registered handlers."""

    def __init__(self):
        self._handlers: List[Notifier] = []

    def add_handler(self, handler: Notifier) -> None:
        self._handlers.append(handler)

    def notify(self, level: NotificationLevel, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        logger.log(level.log_level, "%s", message)
        for handler in self._handlers:
            handler.handle(notification)
        return notification

    def info(self, message: str) -> Notification:
        return self.notify(NotificationLevel.INFO, message)

    def success(self, message: str) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message)

    def warning(self, message: str) -> Notification:
        return self.notify(NotificationLevel.WARNING, message)

    def error(self, message: str) -> Notification:
        return self.notify(NotificationLevel.ERROR, message)
