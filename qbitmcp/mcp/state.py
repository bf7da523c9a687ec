"""
Server-wide mutable state: tool visibility and queued server events.

Both records are shared by every transport and session, and are guarded by
a threading.Lock held only for the duration of a check, a set or a
check-and-clear. Nothing here is ever awaited while a lock is held.
"""

import enum
import threading
from collections import deque
from typing import Optional

from .logger import get_logger
from .protocol import notification

logger = get_logger("qbitmcp-state")


class Visibility(enum.Enum):
    RESTRICTED = "restricted"
    FULL = "full"


class VisibilityState:
    """
    Lazy tool visibility as a two-state machine.

    RESTRICTED -> FULL is the only transition, triggered by reveal_all().
    The transition arms a one-shot "tools changed" flag that the transport
    consumes right after sending the response that followed it.
    """

    def __init__(self, lazy_mode: bool = False):
        self._lock = threading.Lock()
        self._lazy_mode = lazy_mode
        self._visibility = Visibility.RESTRICTED if lazy_mode else Visibility.FULL
        self._should_notify = False

    @property
    def lazy_mode(self) -> bool:
        """Whether the server was started with the restricted tool set."""
        return self._lazy_mode

    @property
    def visibility(self) -> Visibility:
        with self._lock:
            return self._visibility

    @property
    def tools_loaded(self) -> bool:
        return self.visibility is Visibility.FULL

    def reveal_all(self) -> bool:
        """
        Switch to the full tool set.

        Returns:
            True if this call performed the RESTRICTED -> FULL transition,
            False if the full set was already visible.
        """
        with self._lock:
            if self._visibility is Visibility.FULL:
                return False
            self._visibility = Visibility.FULL
            self._should_notify = True
        logger.info("Tool visibility switched to full")
        return True

    def consume_notification(self) -> bool:
        """Check-and-clear the one-shot tools-changed flag."""
        with self._lock:
            armed = self._should_notify
            self._should_notify = False
            return armed


class NotificationQueue:
    """FIFO of server-originated notifications awaiting delivery."""

    def __init__(self, maxlen: int = 1000):
        self._lock = threading.Lock()
        self._items: deque = deque(maxlen=maxlen)

    def push(self, method: str, params: Optional[dict] = None) -> None:
        with self._lock:
            if len(self._items) == self._items.maxlen:
                logger.warning("Notification queue full - dropping oldest event")
            self._items.append(notification(method, params))

    def drain(self) -> list[dict]:
        with self._lock:
            items = list(self._items)
            self._items.clear()
            return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
