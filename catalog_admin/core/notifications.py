"""Transient user-facing notifications.

Successes and failures of catalog operations are surfaced as short-lived
notifications rather than blocking dialogs.
"""

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from catalog_admin.config import settings
from catalog_admin.infra.logging import get_logger

logger = get_logger(__name__)

NotificationLevel = Literal["success", "error", "warning"]

MAX_NOTIFICATIONS = 50


@dataclass(frozen=True)
class Notification:
    """A single notification.

    Attributes:
        level: success, error or warning
        message: Text shown to the user
        created_at: Epoch seconds
        retry: Name of the operation offered as a retry action, if any
    """

    level: NotificationLevel
    message: str
    created_at: float
    retry: str | None = None


class Notifier:
    """Bounded in-memory notification feed."""

    def __init__(
        self,
        display_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._display_seconds = (
            display_seconds if display_seconds is not None else settings.notification_display_seconds
        )
        self._clock = clock
        self._items: deque[Notification] = deque(maxlen=MAX_NOTIFICATIONS)

    def notify(
        self,
        level: NotificationLevel,
        message: str,
        retry: str | None = None,
    ) -> Notification:
        notification = Notification(
            level=level,
            message=message,
            created_at=self._clock(),
            retry=retry,
        )
        self._items.append(notification)

        log = logger.error if level == "error" else logger.warning if level == "warning" else logger.info
        log("Notification", level=level, message=message, retry=retry)
        return notification

    def success(self, message: str) -> Notification:
        return self.notify("success", message)

    def error(self, message: str, retry: str | None = None) -> Notification:
        return self.notify("error", message, retry=retry)

    def warning(self, message: str) -> Notification:
        return self.notify("warning", message)

    def active(self, now: float | None = None) -> list[Notification]:
        """Notifications still within their display window, oldest first."""
        current = now if now is not None else self._clock()
        return [n for n in self._items if current - n.created_at < self._display_seconds]

    def history(self) -> list[Notification]:
        """All retained notifications, oldest first."""
        return list(self._items)


# Singleton instance
_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """Get the shared notification feed."""
    global _notifier
    if _notifier is None:
        _notifier = Notifier()
    return _notifier
