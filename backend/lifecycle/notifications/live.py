"""Live delta publisher: best-effort pushes to a recipient's open WebSockets.

Nothing here is durable. Events for recipients with no open socket are
dropped; the notification rows are the source of truth. ``push`` can be called
from any thread (the inactivity engine runs in a worker thread): delivery is
always scheduled on the event loop the server runs on.
"""

import asyncio
import logging
import threading
from typing import Protocol
from uuid import UUID

from fastapi import WebSocket

from .models import Notification
from .schemas import LiveEvent, NotificationCreatedEvent, NotificationResponse, UnreadCountData, UnreadCountEvent

logger = logging.getLogger(__name__)


class DeltaPublisher(Protocol):
    def push(self, recipient_id: UUID, event: LiveEvent) -> bool: ...
    def push_notification(self, notification: Notification) -> bool: ...
    def push_unread_count(self, recipient_id: UUID, unread_count: int) -> bool: ...


class LiveDeltaPublisher:
    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = {}
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        # Strong references to in-flight sends scheduled from the loop thread.
        self._pending: set[asyncio.Task] = set()

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    # ── Session registry ──────────────────────────────────────────────

    async def connect(self, recipient_id: UUID, websocket: WebSocket) -> None:
        await websocket.accept()
        with self._lock:
            self._connections.setdefault(str(recipient_id), set()).add(websocket)
        logger.info("Recipient %s connected (%d open sockets)", recipient_id, self.socket_count(recipient_id))

    def disconnect(self, recipient_id: UUID, websocket: WebSocket) -> None:
        key = str(recipient_id)
        with self._lock:
            sockets = self._connections.get(key)
            if sockets is None:
                return
            sockets.discard(websocket)
            if not sockets:
                del self._connections[key]
        logger.info("Recipient %s disconnected", recipient_id)

    def is_connected(self, recipient_id: UUID) -> bool:
        with self._lock:
            return str(recipient_id) in self._connections

    def socket_count(self, recipient_id: UUID) -> int:
        with self._lock:
            return len(self._connections.get(str(recipient_id), ()))

    def connected_recipients_count(self) -> int:
        with self._lock:
            return len(self._connections)

    # ── Delivery ──────────────────────────────────────────────────────

    def push(self, recipient_id: UUID, event: LiveEvent) -> bool:
        """Schedule delivery of ``event`` to every open socket of the recipient.

        Returns False when the event was dropped (no socket, no loop).
        """
        with self._lock:
            sockets = list(self._connections.get(str(recipient_id), ()))
        if not sockets:
            logger.debug("No open socket for %s, dropping %s event", recipient_id, event.event)
            return False

        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Publisher not bound to a running loop, dropping %s event", event.event)
            return False

        payload = event.model_dump(mode="json")
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        for websocket in sockets:
            coro = self._send(recipient_id, websocket, payload)
            if running is loop:
                task = loop.create_task(coro)
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
            else:
                asyncio.run_coroutine_threadsafe(coro, loop)
        return True

    def push_notification(self, notification: Notification) -> bool:
        event = NotificationCreatedEvent(data=NotificationResponse.model_validate(notification))
        return self.push(notification.user_id, event)

    def push_unread_count(self, recipient_id: UUID, unread_count: int) -> bool:
        return self.push(recipient_id, UnreadCountEvent(data=UnreadCountData(unread_count=unread_count)))

    async def _send(self, recipient_id: UUID, websocket: WebSocket, payload: dict) -> None:
        try:
            await websocket.send_json(payload)
        except Exception as exc:
            logger.warning("Push to %s failed, dropping socket: %s", recipient_id, exc)
            self.disconnect(recipient_id, websocket)
