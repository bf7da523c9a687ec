"""
Session registry for the SSE transport.

Each GET /sse connection owns one Session: an outbound message queue that
its event stream drains, plus the set of in-flight request tasks posted to
/message for that session.

Architecture:
- Sessions are created on connect and removed when the stream closes
- The registry map is guarded by a threading.Lock held only for
  insert, remove and lookup; nothing is awaited while it is held
- Removing a session cancels its in-flight tasks
"""

import asyncio
import json
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from ..logger import get_logger
from ..utils import config

logger = get_logger("qbitmcp-sessions")


@dataclass
class OutboundQueue:
    """
    SSE message queue with drop tracking and event-based notification.

    Only server-originated notifications are ever dropped. A response (a
    message carrying an "id") is always queued, even past the limit.
    """

    messages: deque
    limit: int
    dropped_count: int = 0
    last_drop_notified: bool = True  # True = no pending notification
    _event: asyncio.Event = field(default_factory=asyncio.Event)

    def append(self, message: dict) -> bool:
        """
        Append a message to the queue and signal the waiting stream.
        Returns True if no notification had to be dropped.
        """
        dropped = False
        if len(self.messages) >= self.limit:
            oldest = next((m for m in self.messages if "id" not in m), None)
            if oldest is not None:
                self.messages.remove(oldest)
                dropped = True
            elif "id" not in message:
                self._record_drop()
                return False
        if dropped:
            self._record_drop()
        self.messages.append(message)
        self._event.set()
        return not dropped

    def _record_drop(self) -> None:
        self.dropped_count += 1
        self.last_drop_notified = False

    def popleft(self) -> Optional[dict]:
        if self.messages:
            return self.messages.popleft()
        return None

    async def wait_for_message(self, timeout: float) -> bool:
        """
        Wait for a message to be available.

        Returns:
            True if a message is available, False if timeout occurred
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        self._event.clear()
        return True

    def get_drop_notification(self) -> Optional[dict]:
        """
        Get a warning event if messages were dropped since last check.
        Returns None if no notification needed.
        """
        if self.last_drop_notified or self.dropped_count == 0:
            return None
        self.last_drop_notified = True
        count = self.dropped_count
        self.dropped_count = 0
        return {
            "event": "warning",
            "data": json.dumps(
                {
                    "type": "messages_dropped",
                    "count": count,
                    "message": f"{count} message(s) were dropped due to slow consumption.",
                }
            ),
        }

    def __len__(self):
        return len(self.messages)


@dataclass
class Session:
    """One connected SSE client."""

    session_id: str
    queue: OutboundQueue
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    tasks: Set[asyncio.Task] = field(default_factory=set)

    @property
    def endpoint(self) -> str:
        """Relative URL the client posts its requests to."""
        return f"/message?session_id={self.session_id}"

    def send(self, message: dict) -> bool:
        self.last_activity = time.time()
        return self.queue.append(message)

    def track(self, task: asyncio.Task) -> None:
        """Keep a request task alive until it finishes or the session closes."""
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    def cancel_tasks(self) -> int:
        pending = [task for task in self.tasks if not task.done()]
        for task in pending:
            task.cancel()
        return len(pending)


class SessionRegistry:
    """
    Thread-safe map of session id -> Session.

    Usage:
        registry = SessionRegistry()
        session = registry.create()
        ...
        registry.get(session.session_id).send(response)
        registry.remove(session.session_id)
    """

    def __init__(self, queue_size: Optional[int] = None):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._queue_size = queue_size or config.SSE_QUEUE_SIZE

    def create(self) -> Session:
        """Mint a fresh session id and register its queue."""
        session = Session(
            session_id=uuid.uuid4().hex,
            queue=OutboundQueue(messages=deque(), limit=self._queue_size),
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info("SSE session opened: %s", session.session_id[:8])
        return session

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[Session]:
        """Unregister a session and cancel its in-flight requests."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        cancelled = session.cancel_tasks()
        logger.info(
            "SSE session closed: %s (%d request(s) cancelled)",
            session_id[:8],
            cancelled,
        )
        return session

    def sessions(self) -> List[Session]:
        """Snapshot of the open sessions."""
        with self._lock:
            return list(self._sessions.values())

    def broadcast(self, message: dict) -> int:
        """Queue a message on every open session. Returns the session count."""
        targets = self.sessions()
        for session in targets:
            session.send(message)
        return len(targets)

    def close_all(self) -> int:
        """Remove every session (called on shutdown)."""
        with self._lock:
            session_ids = list(self._sessions)
        for session_id in session_ids:
            self.remove(session_id)
        return len(session_ids)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
