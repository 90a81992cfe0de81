from __future__ import annotations

import itertools
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class NotificationLevel(str, Enum):
    INFO = "info"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    id: str
    level: NotificationLevel
    title: str
    description: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: Optional[float] = field(default=None, compare=False)


class NotificationCenter:
    """Keeps the toasts a session would currently show, keyed by id.

    Loading toasts stay until dismissed. Every other toast expires after
    ``default_duration`` seconds unless shown with its own ``duration``. At
    most ``max_active`` toasts are kept; the oldest is dropped first.
    """

    def __init__(
        self,
        default_duration: float = 4.0,
        max_active: int = 20,
        clock: Clock = time.monotonic,
    ) -> None:
        self.default_duration = default_duration
        self.max_active = max_active
        self._clock = clock
        self._counter = itertools.count(1)
        self._active: "OrderedDict[str, Notification]" = OrderedDict()

    def show(
        self,
        title: str,
        description: Optional[str] = None,
        level: NotificationLevel = NotificationLevel.INFO,
        duration: Optional[float] = None,
    ) -> str:
        self._prune()
        notification_id = f"toast-{next(self._counter)}"
        expires_at = None
        if level is not NotificationLevel.LOADING:
            expires_at = self._clock() + (duration if duration is not None else self.default_duration)
        self._active[notification_id] = Notification(
            id=notification_id,
            level=level,
            title=title,
            description=description,
            expires_at=expires_at,
        )
        while len(self._active) > self.max_active:
            self._active.popitem(last=False)
        logger.debug("Notification %s (%s): %s", notification_id, level.value, title)
        return notification_id

    def loading(self, title: str, description: Optional[str] = None) -> str:
        return self.show(title, description, NotificationLevel.LOADING)

    def success(self, title: str, description: Optional[str] = None, duration: Optional[float] = None) -> str:
        return self.show(title, description, NotificationLevel.SUCCESS, duration)

    def error(self, title: str, description: Optional[str] = None, duration: Optional[float] = None) -> str:
        return self.show(title, description, NotificationLevel.ERROR, duration)

    def dismiss(self, notification_id: Optional[str]) -> None:
        if notification_id is None:
            return
        self._active.pop(notification_id, None)

    def get(self, notification_id: str) -> Optional[Notification]:
        self._prune()
        return self._active.get(notification_id)

    def active(self) -> List[Notification]:
        self._prune()
        return list(self._active.values())

    def clear(self) -> None:
        self._active.clear()

    def __len__(self) -> int:
        return len(self._active)

    def _prune(self) -> None:
        now = self._clock()
        expired = [
            key
            for key, item in self._active.items()
            if item.expires_at is not None and item.expires_at <= now
        ]
        for key in expired:
            del self._active[key]
